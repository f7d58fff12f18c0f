#!/usr/bin/env python3
#
#Spell Expression Algebra
#========================

#Composes named tokens into weighted random generators.

#NODE KINDS:
#  - Unit:     a single token, e.g. CHAINSAW
#  - Weighted: any node paired with a non-negative weight
#  - Sum:      pick exactly one weighted child, proportional to its weight
#  - Prod:     sample every child in order and concatenate
#  - Maybe:    include a weighted child with probability = its weight
#  - SelfRef:  placeholder bound after construction (recursive generators)

#Sequences and alternatives are flattened when merged, so
#alternative(alternative(A, B), C) has exactly the children [A, B, C].

#Self-references live in a RefTable arena. A SelfRef node only stores its
#handle, so every copy made by a merge sees the binding done later with bind().
#

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from numbers import Real
from typing import ClassVar, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

# ============================================================================
# ERRORS
# ============================================================================

class ExprError(Exception):
    """Base class for every error raised by the expression algebra."""


class ConstructionError(ExprError, ValueError):
    """A node could not be built from the given operands."""


class EmptyDistributionError(ConstructionError):
    """An alternative has no children or only zero-weight children."""


class UnboundReferenceError(ExprError, LookupError):
    """Sampling reached a self-reference that was never bound."""


class SamplingError(ExprError, RuntimeError):
    """An internal invariant broke while sampling. Indicates a defect."""


class RecursionLimitExceeded(SamplingError):
    """Sampling nested deeper than the sampler's ceiling."""

# ============================================================================
# NODE MODEL
# ============================================================================

class NodeKind(Enum):
    UNIT = 1
    WEIGHTED = 2
    SUM = 3
    PROD = 4
    MAYBE = 5
    SELF_REF = 6


def _check_node(value, role: str) -> None:
    if not isinstance(value, EXPR_TYPES):
        raise ConstructionError(f"{role} must be an expression node, got {type(value).__name__}")


@dataclass(slots=True, frozen=True)
class Unit:
    #Leaf wrapping one token.
    name: str
    kind: ClassVar[NodeKind] = NodeKind.UNIT

    def __post_init__(self):
        if not isinstance(self.name, str):
            raise ConstructionError(f"token name must be a string, got {type(self.name).__name__}")


@dataclass(slots=True, frozen=True)
class Weighted:
    #Node annotated with a weight; only an enclosing Sum or Maybe reads it.
    node: 'Expr'
    weight: float
    kind: ClassVar[NodeKind] = NodeKind.WEIGHTED

    def __post_init__(self):
        _check_node(self.node, "weighted node")
        if isinstance(self.weight, bool) or not isinstance(self.weight, Real):
            raise ConstructionError(f"weight must be a number, got {self.weight!r}")
        # NaN fails this comparison as well
        if not self.weight >= 0:
            raise ConstructionError(f"weight must be non-negative, got {self.weight!r}")
        if not math.isfinite(self.weight):
            raise ConstructionError(f"weight must be finite, got {self.weight!r}")
        object.__setattr__(self, 'weight', float(self.weight))


@dataclass(slots=True, frozen=True)
class Sum:
    #Alternative: exactly one child is drawn, proportional to its weight.
    children: Tuple[Weighted, ...]
    kind: ClassVar[NodeKind] = NodeKind.SUM

    def __post_init__(self):
        children = tuple(self.children)
        if not children:
            raise EmptyDistributionError("alternative has no children")
        for child in children:
            if not isinstance(child, Weighted):
                raise ConstructionError(
                    f"alternative children must be weighted, got {type(child).__name__}")
        object.__setattr__(self, 'children', children)
        total = self.total_weight
        if not math.isfinite(total):
            raise ConstructionError(f"alternative total weight overflows, got {total!r}")
        if total <= 0:
            raise EmptyDistributionError("alternative has zero total weight")

    @property
    def total_weight(self) -> float:
        total = 0.0
        for child in self.children:
            total += child.weight
        return total


@dataclass(slots=True, frozen=True)
class Prod:
    #Sequence: every child is sampled in order.
    children: Tuple['Expr', ...]
    kind: ClassVar[NodeKind] = NodeKind.PROD

    def __post_init__(self):
        children = tuple(self.children)
        if not children:
            raise ConstructionError("sequence has no children")
        for child in children:
            _check_node(child, "sequence child")
        object.__setattr__(self, 'children', children)


@dataclass(slots=True, frozen=True)
class Maybe:
    #Optional: the element is included with probability element.weight.
    element: Weighted
    kind: ClassVar[NodeKind] = NodeKind.MAYBE

    def __post_init__(self):
        if not isinstance(self.element, Weighted):
            raise ConstructionError(
                f"optional element must be weighted, got {type(self.element).__name__}")


@dataclass(slots=True, frozen=True)
class SelfRef:
    #Handle into a RefTable slot. Copies keep the same handle.
    handle: int
    table: 'RefTable' = field(repr=False)
    kind: ClassVar[NodeKind] = NodeKind.SELF_REF

    @property
    def target(self) -> 'Expr':
        return self.table.resolve(self.handle)


Expr = Union[Unit, Weighted, Sum, Prod, Maybe, SelfRef]
EXPR_TYPES = (Unit, Weighted, Sum, Prod, Maybe, SelfRef)

# ============================================================================
# SELF-REFERENCE REGISTRY
# ============================================================================

class RefTable:
    """
    Arena of self-reference slots.

    Each slot starts unbound and may be bound exactly once. SelfRef nodes hold
    a handle into this table instead of the target itself, so the node graph
    stays acyclic even when the generator it describes is recursive.
    """

    def __init__(self):
        self._slots: List[Optional[Expr]] = []

    def __len__(self) -> int:
        return len(self._slots)

    def __repr__(self) -> str:
        bound = sum(1 for slot in self._slots if slot is not None)
        return f"RefTable(slots={len(self._slots)}, bound={bound})"

    def allocate(self) -> int:
        self._slots.append(None)
        return len(self._slots) - 1

    def _check_handle(self, handle: int) -> None:
        if not 0 <= handle < len(self._slots):
            raise UnboundReferenceError(f"unknown self-reference handle {handle}")

    def is_bound(self, handle: int) -> bool:
        self._check_handle(handle)
        return self._slots[handle] is not None

    def bind(self, handle: int, node: Expr) -> None:
        self._check_handle(handle)
        _check_node(node, "self-reference target")
        if self._slots[handle] is not None:
            raise ConstructionError(f"self-reference @ref{handle} is already bound")
        self._slots[handle] = node

    def resolve(self, handle: int) -> Expr:
        self._check_handle(handle)
        target = self._slots[handle]
        if target is None:
            raise UnboundReferenceError(f"self-reference @ref{handle} sampled before being bound")
        return target


# ============================================================================
# CONSTRUCTION
# ============================================================================

def token(name: str) -> Unit:
    return Unit(name)


def weight(node: Expr, w: float) -> Weighted:
    #Always wraps; weighting a Weighted again nests it.
    return Weighted(node, w)


def maybe(element: Weighted) -> Maybe:
    return Maybe(element)


def self_ref(table: Optional[RefTable] = None) -> SelfRef:
    #Without a table, the reference gets an arena of its own.
    if table is None:
        table = RefTable()
    return SelfRef(table.allocate(), table)


def bind(ref: SelfRef, node: Expr) -> SelfRef:
    """Point `ref` at `node`. A self-reference can be bound only once."""
    if not isinstance(ref, SelfRef):
        raise ConstructionError(f"bind expects a self-reference, got {type(ref).__name__}")
    ref.table.bind(ref.handle, node)
    logger.debug("bound @ref%d to %s node", ref.handle, node.kind.name)
    return ref


def is_bound(ref: SelfRef) -> bool:
    return ref.table.is_bound(ref.handle)


def clone(node: Expr) -> Expr:
    """
    Structural copy of `node`.

    Every variant is rebuilt except SelfRef, which is returned as is: the copy
    must keep pointing at the same arena slot so a later bind() is visible
    through it.
    """
    kind = node.kind
    if kind == NodeKind.UNIT:
        return Unit(node.name)
    elif kind == NodeKind.WEIGHTED:
        return Weighted(clone(node.node), node.weight)
    elif kind == NodeKind.SUM:
        return Sum(tuple(clone(child) for child in node.children))
    elif kind == NodeKind.PROD:
        return Prod(tuple(clone(child) for child in node.children))
    elif kind == NodeKind.MAYBE:
        return Maybe(clone(node.element))
    elif kind == NodeKind.SELF_REF:
        return node
    raise TypeError(f"invalid expression node {node!r}")


def _merge(left: Expr, right: Expr, kind: NodeKind, build):
    # Flatten operands that already are `kind`; keep left-to-right order.
    if left.kind == kind and right.kind == kind:
        children = clone(left).children + right.children
    elif left.kind == kind:
        children = clone(left).children + (right,)
    elif right.kind == kind:
        children = (left,) + clone(right).children
    else:
        children = (left, right)
    merged = build(children)
    logger.debug("merged %s with %d children", kind.name, len(children))
    return merged


def sequence(a: Expr, b: Expr) -> Prod:
    _check_node(a, "sequence operand")
    _check_node(b, "sequence operand")
    return _merge(a, b, NodeKind.PROD, Prod)


def alternative(a: Union[Weighted, Sum], b: Union[Weighted, Sum]) -> Sum:
    for operand in (a, b):
        if not isinstance(operand, (Weighted, Sum)):
            raise ConstructionError(
                f"alternative operands must be weighted, got {type(operand).__name__}")
    return _merge(a, b, NodeKind.SUM, Sum)


def sequence_of(*nodes: Expr) -> Prod:
    if len(nodes) < 2:
        raise ConstructionError("sequence_of needs at least two operands")
    result = sequence(nodes[0], nodes[1])
    for node in nodes[2:]:
        result = sequence(result, node)
    return result


def alternatives(*options: Union[Weighted, Sum]) -> Sum:
    if len(options) < 2:
        raise ConstructionError("alternatives needs at least two operands")
    result = alternative(options[0], options[1])
    for option in options[2:]:
        result = alternative(result, option)
    return result

# ============================================================================
# INSPECTION
# ============================================================================

def _children(node: Expr) -> Tuple[Expr, ...]:
    kind = node.kind
    if kind in (NodeKind.SUM, NodeKind.PROD):
        return node.children
    elif kind == NodeKind.WEIGHTED:
        return (node.node,)
    elif kind == NodeKind.MAYBE:
        return (node.element,)
    return ()


def size(node: Expr) -> int:
    #Node count; a SelfRef counts as one leaf.
    return 1 + sum(size(child) for child in _children(node))


def depth(node: Expr) -> int:
    children = _children(node)
    if not children:
        return 0
    return 1 + max(depth(child) for child in children)


def render(node: Expr) -> str:
    """Compact display form, e.g. ``(CHAINSAW:1 | (A * @ref0):5)``."""
    kind = node.kind
    if kind == NodeKind.UNIT:
        return node.name
    elif kind == NodeKind.WEIGHTED:
        return f"{render(node.node)}:{node.weight:g}"
    elif kind == NodeKind.SUM:
        return '(' + ' | '.join(render(child) for child in node.children) + ')'
    elif kind == NodeKind.PROD:
        return '(' + ' * '.join(render(child) for child in node.children) + ')'
    elif kind == NodeKind.MAYBE:
        return f"{render(node.element)}?"
    elif kind == NodeKind.SELF_REF:
        return f"@ref{node.handle}"
    raise TypeError(f"invalid expression node {node!r}")
