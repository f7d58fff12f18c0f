#!/usr/bin/env python3
"""
Draw statistics and the demo wand library.
"""

import random

import pytest

from spell_expr import RefTable, alternative, bind, self_ref, token, weight
from spell_metrics import SampleMetrics, expected_shares
from spell_sampler import Sampler, SampleResult
from wands import (
    CHAINSAW, LIGHT_BULLET, LIGHT_BULLET_TRIGGER, WAND_NAMES, build_wands, get_wand,
)


def test_metrics_update_and_report():
    metrics = SampleMetrics()
    metrics.update(SampleResult(tokens=['A', 'B', 'A'], ref_depth=2, node_depth=5))
    metrics.update(SampleResult(tokens=[], ref_depth=0, node_depth=1))
    metrics.record_depth_limited()

    report = metrics.report()
    assert report['draws'] == 2
    assert report['tokens'] == 3
    assert report['mean_length'] == 1.5
    assert report['max_ref_depth'] == 2
    assert report['empty_rate'] == 0.5
    assert report['depth_limited'] == 1

    assert metrics.token_frequencies() == {'A': 0.5, 'B': 0.5}
    assert metrics.mean_occurrences() == {'A': 1.0, 'B': 0.5}


def test_empty_metrics():
    metrics = SampleMetrics()
    assert metrics.token_frequencies() == {}
    assert metrics.report()['mean_length'] == 0
    assert metrics.percentile([], 0.5) == 0.0


def test_percentile():
    metrics = SampleMetrics()
    values = list(range(1, 101))
    assert metrics.percentile(values, 0.5) == 51
    assert metrics.percentile(values, 0.99) == 100
    assert metrics.percentile(values, 1.0) == 100


def test_expected_shares_of_alternative():
    expr = alternative(alternative(weight(token('A'), 1), weight(token('B'), 1)), weight(token('C'), 2))
    assert expected_shares(expr) == [('A', 0.25), ('B', 0.25), ('C', 0.5)]


def test_expected_shares_look_through_wrappers():
    spam = build_wands()['spam']
    shares = expected_shares(spam)
    assert [label for label, _ in shares][0] == CHAINSAW
    assert [share for _, share in shares] == pytest.approx([1 / 6, 5 / 6])

    assert expected_shares(weight(token('A'), 3)) == [('A', 1.0)]


def test_expected_shares_of_reference_cycle():
    ref = self_ref(RefTable())
    bind(ref, weight(ref, 1))
    assert expected_shares(ref) == [('@ref0', 1.0)]


def test_projectile_presence_matches_expected_shares():
    projectile = get_wand('projectile')
    sampler = Sampler()
    rng = random.Random(31)
    metrics = SampleMetrics()
    for _ in range(9000):
        metrics.update(sampler.draw(projectile, rng))

    freqs = metrics.token_frequencies()
    for label, share in expected_shares(projectile):
        assert abs(freqs[label] - share) < 0.03


def test_wand_library():
    wands = build_wands()
    assert set(wands) == set(WAND_NAMES)

    rng = random.Random(8)
    sampler = Sampler(max_depth=800)
    allowed = {CHAINSAW, LIGHT_BULLET, LIGHT_BULLET_TRIGGER}
    for name, expr in wands.items():
        for _ in range(200):
            assert set(sampler.sample(expr, rng)) <= allowed


def test_two_chainsaws_shapes():
    expr = get_wand('two_chainsaws')
    rng = random.Random(12)
    seen = {tuple(Sampler().sample(expr, rng)) for _ in range(500)}
    assert seen == {(CHAINSAW,), (CHAINSAW, CHAINSAW)}


def test_maybe_chainsaw_is_sometimes_empty():
    expr = get_wand('maybe_chainsaw')
    rng = random.Random(4)
    draws = [Sampler().sample(expr, rng) for _ in range(4000)]
    empty = sum(1 for d in draws if not d)
    assert 0.45 <= empty / len(draws) <= 0.55


def test_unknown_wand():
    with pytest.raises(KeyError):
        get_wand('fireball')
