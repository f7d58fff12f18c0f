#!/usr/bin/env python3
#
#Sampler for spell expressions.
#
#Walks an expression and draws one concrete token sequence. Randomness is only
#consumed at Sum and Maybe nodes, one uniform draw each. The random source is
#injected: anything with a random() method (random.Random) or a zero-argument
#callable returning floats in [0, 1).

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

from spell_expr import (
    Expr, NodeKind, RecursionLimitExceeded, SamplingError,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 256

RandomSource = Union[random.Random, Callable[[], float]]


def make_rng(seed: Optional[int] = None) -> random.Random:
    #Seeded generator; None seeds from OS entropy.
    if seed is None:
        return random.Random()
    return random.Random(int(seed))


def _uniform_source(rng: RandomSource) -> Callable[[], float]:
    draw = getattr(rng, 'random', None)
    if callable(draw):
        return draw
    if callable(rng):
        return rng
    raise TypeError(f"random source must have a random() method or be callable, got {type(rng).__name__}")


@dataclass
class SampleResult:
    #One draw plus how deep it went.
    tokens: List[str] = field(default_factory=list)
    ref_depth: int = 0  # Longest chain of nested self-reference expansions
    node_depth: int = 0  # Deepest node visited, root = 1


class Sampler:
    """
    Recursive evaluator for expression graphs.

    The graph is never mutated, so one Sampler may be reused for any number
    of draws. Termination of recursive generators is up to the caller; the
    `max_depth` ceiling turns a runaway expansion into RecursionLimitExceeded
    instead of exhausting the interpreter stack.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        if max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {max_depth}")
        self.max_depth = max_depth

    def sample(self, node: Expr, rng: RandomSource) -> List[str]:
        return self.draw(node, rng).tokens

    def draw(self, node: Expr, rng: RandomSource) -> SampleResult:
        uniform = _uniform_source(rng)
        result = SampleResult()
        try:
            self._sample(node, uniform, result, 1, 0)
        except RecursionError as e:
            # max_depth set above what the interpreter stack allows
            raise RecursionLimitExceeded(
                f"interpreter recursion limit hit at max_depth={self.max_depth}") from e
        return result

    def _sample(self, node: Expr, uniform: Callable[[], float],
                result: SampleResult, depth: int, ref_depth: int) -> None:
        if depth > self.max_depth:
            logger.debug("recursion ceiling hit at depth %d (ref depth %d)", depth, ref_depth)
            raise RecursionLimitExceeded(
                f"expression nesting exceeded max_depth={self.max_depth} "
                f"after {ref_depth} self-reference expansions")
        if depth > result.node_depth:
            result.node_depth = depth

        kind = node.kind
        if kind == NodeKind.UNIT:
            result.tokens.append(node.name)

        elif kind == NodeKind.WEIGHTED:
            self._sample(node.node, uniform, result, depth + 1, ref_depth)

        elif kind == NodeKind.PROD:
            for child in node.children:
                self._sample(child, uniform, result, depth + 1, ref_depth)

        elif kind == NodeKind.SUM:
            # Same summation order for total and cumulative, so the last
            # cumulative equals total and r <= total always finds a child.
            total = 0.0
            for child in node.children:
                total += child.weight
            r = uniform() * total
            cumulative = 0.0
            for child in node.children:
                cumulative += child.weight
                if cumulative >= r:
                    self._sample(child.node, uniform, result, depth + 1, ref_depth)
                    return
            raise SamplingError(
                f"weighted selection found no child (r={r!r}, total={total!r})")

        elif kind == NodeKind.MAYBE:
            if uniform() < node.element.weight:
                self._sample(node.element.node, uniform, result, depth + 1, ref_depth)

        elif kind == NodeKind.SELF_REF:
            target = node.target
            ref_depth += 1
            if ref_depth > result.ref_depth:
                result.ref_depth = ref_depth
            self._sample(target, uniform, result, depth + 1, ref_depth)

        else:
            raise SamplingError(f"invalid expression node {node!r}")


def sample(node: Expr, rng: RandomSource, max_depth: int = DEFAULT_MAX_DEPTH) -> List[str]:
    """Draw one token sequence from `node`."""
    return Sampler(max_depth).sample(node, rng)
