#!/usr/bin/env python3
#
#Draw statistics for spell expressions.
#
#SampleMetrics tracks what a stream of draws looked like: token counts, how
#many draws contained each token, sequence lengths and self-reference depth.
#expected_shares() gives the analytic per-option probabilities of a wand's
#top-level alternative so the two can be compared.

import time
from collections import Counter, deque
from typing import Any, Dict, List, Tuple

from spell_expr import Expr, NodeKind, render
from spell_sampler import SampleResult


class SampleMetrics:
    #Track and report draw metrics.

    def __init__(self, window: int = 1000):
        self.count = 0
        self.tokens = 0
        self.empty = 0
        self.depth_limited = 0
        self.token_counts = Counter()
        self.presence_counts = Counter()
        self.lengths = deque(maxlen=window)
        self.ref_depths = deque(maxlen=window)
        self.max_ref_depth = 0
        self.start_time = time.time()
        self.last_time = time.time()
        self.recent_count = 0

    def update(self, result: SampleResult):
        self.count += 1
        self.recent_count += 1
        self.tokens += len(result.tokens)
        if not result.tokens:
            self.empty += 1
        self.token_counts.update(result.tokens)
        self.presence_counts.update(set(result.tokens))
        self.lengths.append(len(result.tokens))
        self.ref_depths.append(result.ref_depth)
        self.max_ref_depth = max(self.max_ref_depth, result.ref_depth)

    def record_depth_limited(self):
        self.depth_limited += 1

    def token_frequencies(self) -> Dict[str, float]:
        #Fraction of draws that contained each token.
        if self.count == 0:
            return {}
        return {tok: n / self.count for tok, n in self.presence_counts.most_common()}

    def mean_occurrences(self) -> Dict[str, float]:
        if self.count == 0:
            return {}
        return {tok: n / self.count for tok, n in self.token_counts.most_common()}

    def percentile(self, values: List[float], p: float) -> float:
        if not values:
            return 0.0
        sorted_vals = sorted(values)
        k = int(len(sorted_vals) * p)
        return sorted_vals[min(k, len(sorted_vals) - 1)]

    def report(self) -> Dict[str, Any]:
        now = time.time()
        elapsed = now - self.start_time
        recent_elapsed = now - self.last_time

        lengths = list(self.lengths)
        ref_depths = list(self.ref_depths)

        return {
            'draws': self.count,
            'draws_per_sec': round(self.count / elapsed, 1) if elapsed > 0 else 0,
            'recent_rate': round(self.recent_count / recent_elapsed, 1) if recent_elapsed > 0 else 0,
            'tokens': self.tokens,
            'mean_length': round(sum(lengths) / len(lengths), 2) if lengths else 0,
            'length_p50': self.percentile(lengths, 0.50),
            'length_p95': self.percentile(lengths, 0.95),
            'mean_ref_depth': round(sum(ref_depths) / len(ref_depths), 2) if ref_depths else 0,
            'max_ref_depth': self.max_ref_depth,
            'empty_rate': round(self.empty / self.count, 3) if self.count > 0 else 0,
            'depth_limited': self.depth_limited,
        }

    def reset_recent(self):
        self.last_time = time.time()
        self.recent_count = 0


def expected_shares(node: Expr) -> List[Tuple[str, float]]:
    """
    Analytic selection probability of each option of the top-level alternative.

    Weighted wrappers and bound self-references are looked through until a
    Sum is found. Any other node is a single option with share 1.0.
    """
    seen = set()
    while node.kind in (NodeKind.WEIGHTED, NodeKind.SELF_REF):
        if node.kind == NodeKind.WEIGHTED:
            node = node.node
        elif (id(node.table), node.handle) in seen:
            # Reference chain that never reaches a Sum
            break
        else:
            seen.add((id(node.table), node.handle))
            node = node.table.resolve(node.handle)

    if node.kind != NodeKind.SUM:
        return [(render(node), 1.0)]

    total = node.total_weight
    return [(render(child.node), child.weight / total) for child in node.children]
