#!/usr/bin/env python3
#
#Spell Wand Generator
#====================

#Draws random spell sequences from the demo wands.

#MODES:
#  - sample:   print N draws, tokens joined by spaces (or a table)
#  - live:     stream draws as JSONL with a status line on stderr
#  - stats:    empirical token frequencies next to the expected option shares
#  - validate: self-check of merge, sampling and self-reference behavior

#SCHEMA (JSONL per line, live mode):
#  {"wand": str, "tokens": [str], "length": int, "ref_depth": int,
#   "draw_index": int, "seed": int | null}

#USAGE:
#  Sample:   python spell_gen.py sample --wand spam --n 5 --seed 7
#  Live:     python spell_gen.py live --wand spam --out draws.jsonl --max-draws 10000
#  Stats:    python spell_gen.py stats --wand projectile --n 10000
#  Validate: python spell_gen.py validate
#

import argparse
import json
import logging
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

from rich import box
from rich.console import Console
from rich.table import Table

from spell_expr import (
    EmptyDistributionError, ExprError, RecursionLimitExceeded, RefTable, Sum,
    UnboundReferenceError, alternative, alternatives, bind, maybe, render, self_ref,
    sequence, sequence_of, token, weight,
)
from spell_metrics import SampleMetrics, expected_shares
from spell_sampler import DEFAULT_MAX_DEPTH, SampleResult, Sampler, make_rng
from wands import WAND_NAMES, get_wand

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIG
# ============================================================================

@dataclass
class Config:
    wand: str = 'spam'
    n: int = 10
    seed: Optional[int] = None
    max_depth: int = DEFAULT_MAX_DEPTH
    no_ansi: bool = False
    out: str = '-'
    rate: int = 0
    max_draws: Optional[int] = None


def make_record(config: Config, result: SampleResult, draw_index: int) -> Dict[str, Any]:
    return {
        'wand': config.wand,
        'tokens': result.tokens,
        'length': len(result.tokens),
        'ref_depth': result.ref_depth,
        'draw_index': draw_index,
        'seed': config.seed,
    }


def yield_draws(config: Config) -> Iterator[Tuple[int, Optional[SampleResult]]]:
    #Generator yielding (draw_index, result); depth-limited draws yield None.
    node = get_wand(config.wand)
    sampler = Sampler(config.max_depth)
    rng = make_rng(config.seed)
    draw_index = 0

    while True:
        try:
            result = sampler.draw(node, rng)
        except RecursionLimitExceeded as e:
            sys.stderr.write(f"\n[Warning: draw {draw_index} hit the depth ceiling: {e}]\n")
            sys.stderr.flush()
            result = None
        yield draw_index, result
        draw_index += 1

# ============================================================================
# MODES
# ============================================================================

def sample_mode(args, config: Config):
    node = get_wand(config.wand)
    sampler = Sampler(config.max_depth)
    rng = make_rng(config.seed)

    draws = [sampler.draw(node, rng) for _ in range(config.n)]

    if config.no_ansi:
        for result in draws:
            print(' '.join(result.tokens))
        return

    console = Console()
    table = Table(title=f"{config.wand} (n={len(draws)})", box=box.ROUNDED)
    table.add_column("#", justify="right")
    table.add_column("Spells")
    table.add_column("Len", justify="right")
    table.add_column("Depth", justify="right")
    for i, result in enumerate(draws):
        table.add_row(str(i), ' '.join(result.tokens) or '-', str(len(result.tokens)),
                      str(result.ref_depth))
    console.print(table)
    if args.show_expr:
        console.print(f"[bold]Expression:[/bold] {render(node)}")


def live_mode(args, config: Config):
    #Streaming mode with optional rate limiting.
    out_file = sys.stdout if config.out == '-' else open(config.out, 'w', buffering=1)
    metrics = SampleMetrics()
    min_interval = 1.0 / config.rate if config.rate > 0 else 0

    sys.stderr.write(f"[Starting draws from {config.wand} to {config.out}]\n")
    sys.stderr.flush()

    try:
        last_metric_time = time.time()
        last_emit_time = time.time()

        for draw_index, result in yield_draws(config):
            if result is None:
                metrics.record_depth_limited()
            else:
                out_file.write(json.dumps(make_record(config, result, draw_index)) + '\n')
                metrics.update(result)

            if time.time() - last_metric_time > 2.0:
                report = metrics.report()
                sys.stderr.write(
                    f"\r[{report['draws']} draws | {report['recent_rate']:.1f}/s | "
                    f"len={report['mean_length']:.1f} p95={report['length_p95']} | "
                    f"depth={report['mean_ref_depth']:.1f} max={report['max_ref_depth']}]")
                sys.stderr.flush()
                metrics.reset_recent()
                last_metric_time = time.time()

            if min_interval:
                elapsed = time.time() - last_emit_time
                if elapsed < min_interval:
                    time.sleep(min_interval - elapsed)
                last_emit_time = time.time()

            if config.max_draws and metrics.count + metrics.depth_limited >= config.max_draws:
                break

    except KeyboardInterrupt:
        sys.stderr.write("\n[Interrupted]\n")
    finally:
        if out_file is not sys.stdout:
            out_file.close()
        final_report = metrics.report()
        sys.stderr.write(f"\n[Complete: {final_report['draws']} draws | "
                         f"mean_len={final_report['mean_length']:.2f} | "
                         f"max_depth={final_report['max_ref_depth']} | "
                         f"depth_limited={final_report['depth_limited']}]\n")


def stats_mode(args, config: Config):
    node = get_wand(config.wand)
    sampler = Sampler(config.max_depth)
    rng = make_rng(config.seed)
    metrics = SampleMetrics()

    for _ in range(config.n):
        try:
            metrics.update(sampler.draw(node, rng))
        except RecursionLimitExceeded:
            metrics.record_depth_limited()

    report = metrics.report()
    presence = metrics.token_frequencies()
    occurrences = metrics.mean_occurrences()
    shares = expected_shares(node)

    if config.no_ansi:
        print(json.dumps({'report': report, 'presence': presence,
                          'mean_occurrences': occurrences,
                          'expected_shares': [{'option': label, 'share': share}
                                              for label, share in shares]}, indent=2))
        return

    console = Console()
    table = Table(title=f"Token frequencies ({config.wand}, n={report['draws']})", box=box.ROUNDED)
    table.add_column("Token")
    table.add_column("In draws", justify="right")
    table.add_column("Per draw", justify="right")
    for tok, freq in presence.items():
        table.add_row(tok, f"{freq:.3f}", f"{occurrences[tok]:.3f}")
    console.print(table)

    share_table = Table(title="Expected option shares", box=box.ROUNDED)
    share_table.add_column("Option")
    share_table.add_column("Share", justify="right")
    for label, share in shares:
        share_table.add_row(label, f"{share:.3f}")
    console.print(share_table)

    console.print(f"mean length {report['mean_length']:.2f} | "
                  f"mean ref depth {report['mean_ref_depth']:.2f} | "
                  f"empty {report['empty_rate']:.1%} | "
                  f"depth limited {report['depth_limited']}")


def validate_mode(args, config: Config) -> bool:
    #Run the self-check suite.
    print(f"\n{'='*60}")
    print("SPELL EXPRESSION VALIDATION SUITE")
    print('='*60)

    passed = 0
    failed = 0
    sampler = Sampler(config.max_depth)

    def check(label: str, ok: bool):
        nonlocal passed, failed
        if ok:
            passed += 1
            print(f"  ✓ {label}")
        else:
            failed += 1
            print(f"  ✗ {label}")

    print("\n[1] Flattening")
    a, b, c = token('A'), token('B'), token('C')
    wa, wb, wc = weight(a, 1), weight(b, 1), weight(c, 1)
    nested_sum = alternative(alternative(wa, wb), wc)
    check("alternative(alternative(A, B), C) has children [A, B, C]",
          list(nested_sum.children) == [wa, wb, wc])
    nested_prod = sequence(sequence(a, b), c)
    check("sequence(sequence(A, B), C) has children [A, B, C]",
          list(nested_prod.children) == [a, b, c])
    check("sequence(A, sequence(B, C)) keeps caller order",
          list(sequence(a, sequence(b, c)).children) == [a, b, c])

    print("\n[2] Weighted choice frequencies")
    rng = make_rng(config.seed if config.seed is not None else 42)
    coin = alternative(weight(token('A'), 1), weight(token('B'), 1))
    n = args.n
    heads = sum(1 for _ in range(n) if sampler.sample(coin, rng) == ['A'])
    check(f"A/B split within [0.45, 0.55] over {n} draws ({heads / n:.3f})",
          0.45 <= heads / n <= 0.55)

    print("\n[3] Optional boundaries")
    always = maybe(weight(a, 1.0))
    never = maybe(weight(a, 0.0))
    half = maybe(weight(a, 0.5))
    check("weight 1.0 always includes", all(sampler.sample(always, rng) == ['A'] for _ in range(n)))
    check("weight 0.0 never includes", all(sampler.sample(never, rng) == [] for _ in range(n)))
    included = sum(1 for _ in range(n) if sampler.sample(half, rng))
    check(f"weight 0.5 includes about half ({included / n:.3f})", 0.45 <= included / n <= 0.55)

    print("\n[4] Self-reference")
    table = RefTable()
    ref = self_ref(table)
    bind(ref, alternative(weight(token('END'), 1), weight(sequence(token('STEP'), ref), 0)))
    results = [sampler.draw(ref, rng) for _ in range(200)]
    check("zero-weight recursion only yields the terminator",
          all(r.tokens == ['END'] and r.ref_depth == 1 for r in results))

    unbound = self_ref(RefTable())
    try:
        sampler.sample(sequence(token('X'), unbound), rng)
        check("unbound reference is rejected", False)
    except UnboundReferenceError:
        check("unbound reference is rejected", True)

    runaway = self_ref(RefTable())
    bind(runaway, sequence(token('LOOP'), runaway))
    try:
        sampler.sample(runaway, rng)
        check("runaway recursion hits the depth ceiling", False)
    except RecursionLimitExceeded:
        check("runaway recursion hits the depth ceiling", True)

    print("\n[5] Construction")
    try:
        Sum((weight(a, 0),))
        check("all-zero alternative is rejected at construction", False)
    except EmptyDistributionError:
        check("all-zero alternative is rejected at construction", True)
    check("deterministic sequence yields [X, Y, Z]",
          sampler.sample(sequence_of(weight(token('X'), 1), weight(token('Y'), 1),
                                     weight(token('Z'), 1)), rng) == ['X', 'Y', 'Z'])
    check("alternatives() folds left", list(alternatives(wa, wb, wc).children) == [wa, wb, wc])

    print(f"\n{'='*60}")
    print(f"PASSED: {passed}  FAILED: {failed}")
    print('='*60)
    return failed == 0

# ============================================================================
# CLI
# ============================================================================

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Random spell wand generator')
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    subparsers = parser.add_subparsers(dest='mode', required=True)

    sample = subparsers.add_parser('sample')
    sample.add_argument('--wand', default='spam', choices=WAND_NAMES)
    sample.add_argument('--n', type=int, default=10)
    sample.add_argument('--seed', type=int)
    sample.add_argument('--max-depth', type=int, default=DEFAULT_MAX_DEPTH)
    sample.add_argument('--show-expr', action='store_true')
    sample.add_argument('--no-ansi', action='store_true', help='Plain output, one draw per line')

    live = subparsers.add_parser('live')
    live.add_argument('--wand', default='spam', choices=WAND_NAMES)
    live.add_argument('--rate', type=int, default=0, help='Target draws/sec (0=unlimited)')
    live.add_argument('--max-draws', type=int)
    live.add_argument('--out', default='-')
    live.add_argument('--seed', type=int)
    live.add_argument('--max-depth', type=int, default=DEFAULT_MAX_DEPTH)

    stats = subparsers.add_parser('stats')
    stats.add_argument('--wand', default='projectile', choices=WAND_NAMES)
    stats.add_argument('--n', type=int, default=10000)
    stats.add_argument('--seed', type=int)
    stats.add_argument('--max-depth', type=int, default=DEFAULT_MAX_DEPTH)
    stats.add_argument('--no-ansi', action='store_true', help='Emit JSON instead of tables')

    validate = subparsers.add_parser('validate')
    validate.add_argument('--n', type=int, default=10000)
    validate.add_argument('--seed', type=int, default=42)
    validate.add_argument('--max-depth', type=int, default=64)

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    config = Config()
    for name in ('wand', 'n', 'seed', 'max_depth', 'no_ansi', 'out', 'rate', 'max_draws'):
        if hasattr(args, name):
            setattr(config, name, getattr(args, name))

    if config.max_depth < 1:
        sys.stderr.write(f"[Error: --max-depth must be positive, got {config.max_depth}]\n")
        return 2
    logger.info("mode=%s wand=%s seed=%s max_depth=%d",
                args.mode, config.wand, config.seed, config.max_depth)

    try:
        if args.mode == 'sample':
            sample_mode(args, config)
        elif args.mode == 'live':
            live_mode(args, config)
        elif args.mode == 'stats':
            stats_mode(args, config)
        elif args.mode == 'validate':
            return 0 if validate_mode(args, config) else 1
    except ExprError as e:
        sys.stderr.write(f"[Error: {e}]\n")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
