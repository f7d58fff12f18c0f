#!/usr/bin/env python3
"""
Command-line modes of spell_gen.
"""

import json

from spell_gen import Config, main, make_record
from spell_sampler import SampleResult
from wands import CHAINSAW, LIGHT_BULLET, LIGHT_BULLET_TRIGGER

SPELLS = {CHAINSAW, LIGHT_BULLET, LIGHT_BULLET_TRIGGER}


def test_sample_plain_output(capsys):
    assert main(['sample', '--wand', 'projectile', '--n', '5', '--seed', '3', '--no-ansi']) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 5
    assert all(line in SPELLS for line in lines)


def test_sample_is_reproducible(capsys):
    main(['sample', '--wand', 'spam', '--n', '20', '--seed', '7', '--no-ansi'])
    first = capsys.readouterr().out
    main(['sample', '--wand', 'spam', '--n', '20', '--seed', '7', '--no-ansi'])
    second = capsys.readouterr().out
    assert first == second
    for line in first.splitlines():
        tokens = line.split(' ')
        assert tokens[-1] == CHAINSAW
        assert set(tokens) <= SPELLS


def test_sample_table_output(capsys):
    assert main(['sample', '--wand', 'two_chainsaws', '--n', '3', '--seed', '1', '--show-expr']) == 0
    out = capsys.readouterr().out
    assert CHAINSAW in out
    assert 'Expression' in out


def test_live_writes_jsonl(tmp_path, capsys):
    out = tmp_path / 'draws.jsonl'
    assert main(['live', '--wand', 'spam', '--seed', '9', '--max-draws', '50', '--out', str(out)]) == 0

    records = [json.loads(line) for line in out.read_text().splitlines()]
    assert len(records) == 50
    assert [r['draw_index'] for r in records] == list(range(50))
    for record in records:
        assert record['wand'] == 'spam'
        assert record['seed'] == 9
        assert record['length'] == len(record['tokens'])
        assert record['ref_depth'] == record['length']
    assert '[Complete: 50 draws' in capsys.readouterr().err


def test_stats_json(capsys):
    assert main(['stats', '--wand', 'projectile', '--n', '6000', '--seed', '2', '--no-ansi']) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload['report']['draws'] == 6000
    for name in SPELLS:
        assert abs(payload['presence'][name] - 1 / 3) < 0.04
    shares = payload['expected_shares']
    assert [entry['option'] for entry in shares] == [CHAINSAW, LIGHT_BULLET, LIGHT_BULLET_TRIGGER]
    assert all(abs(entry['share'] - 1 / 3) < 1e-9 for entry in shares)


def test_stats_tables(capsys):
    assert main(['stats', '--wand', 'maybe_chainsaw', '--n', '500', '--seed', '2']) == 0
    out = capsys.readouterr().out
    assert 'frequencies' in out
    assert 'CHAINSAW' in out
    assert 'mean length' in out


def test_validate_passes(capsys):
    assert main(['validate']) == 0
    out = capsys.readouterr().out
    assert 'FAILED: 0' in out


def test_bad_max_depth(capsys):
    assert main(['sample', '--max-depth', '0']) == 2
    assert '--max-depth' in capsys.readouterr().err


def test_make_record():
    config = Config(wand='projectile', seed=4)
    record = make_record(config, SampleResult(tokens=[CHAINSAW], ref_depth=0, node_depth=2), 3)
    assert record == {
        'wand': 'projectile',
        'tokens': [CHAINSAW],
        'length': 1,
        'ref_depth': 0,
        'draw_index': 3,
        'seed': 4,
    }


def test_stats_json_keeps_identical_options(monkeypatch, capsys):
    import spell_gen
    from spell_expr import alternative, token, weight

    twin = alternative(weight(token(CHAINSAW), 1), weight(token(CHAINSAW), 1))
    monkeypatch.setattr(spell_gen, 'get_wand', lambda name: twin)
    assert main(['stats', '--n', '100', '--seed', '1', '--no-ansi']) == 0
    shares = json.loads(capsys.readouterr().out)['expected_shares']
    assert shares == [{'option': CHAINSAW, 'share': 0.5}, {'option': CHAINSAW, 'share': 0.5}]
