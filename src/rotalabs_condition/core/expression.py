"""Expression model for condition evaluation.

An expression is any Python value. Before evaluation each value is classified
exactly once into one of five node kinds:

- TERMINAL: plain values judged by truthiness (``None``, ``bool``, objects)
- REFERENCE: symbolic keys (``str``, ``int``, ``float``, ``Ref``) looked up in a context map
- CALLABLE: functions invoked to produce another expression
- DEFERRED: awaitables (coroutines, futures, tasks) resolving to another expression
- SET: ``ConditionSet`` / ``list`` / ``tuple`` combined with AND or OR

Negation is attached either with the ``Not`` wrapper or with a
``negate = True`` attribute on the value itself (functions, ``ConditionSet``
instances, awaitables and reference subclasses all accept one).
"""

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Hashable, Iterable, Optional, Union


class Relationship(str, Enum):
    """Combination operator of a condition set."""

    AND = "AND"
    OR = "OR"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            upper = value.upper()
            for member in cls:
                if member.value == upper:
                    return member
        return None


class NodeKind(str, Enum):
    """Variant tag produced by ``classify``."""

    TERMINAL = "terminal"
    REFERENCE = "reference"
    CALLABLE = "callable"
    DEFERRED = "deferred"
    SET = "set"


class Not:
    """Wrap an expression so that its result is negated.

    Wrappers nest: ``Not(Not(x))`` evaluates like ``x``.

    Attributes:
        expression: Wrapped expression.
    """

    __slots__ = ("expression",)

    def __init__(self, expression: Any):
        self.expression = expression

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Not) and other.expression == self.expression

    def __hash__(self) -> int:
        return hash(("Not", self.expression))

    def __repr__(self) -> str:
        return f"Not({self.expression!r})"


class Ref:
    """Reference to a context map entry under an arbitrary hashable key.

    Strings and numbers are references already; ``Ref`` covers every other
    key type (tuples, enum members, sentinel objects).

    Attributes:
        key: Lookup key.
    """

    __slots__ = ("key",)

    def __init__(self, key: Hashable):
        self.key = key

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Ref) and other.key == self.key

    def __hash__(self) -> int:
        return hash(("Ref", self.key))

    def __repr__(self) -> str:
        return f"Ref({self.key!r})"


class ConditionSet(list):
    """Ordered collection of expressions combined by AND or OR.

    Attributes:
        relationship: How entries combine (default AND).
        negate: Whether the combined result is negated.

    Examples:
        >>> cond = ConditionSet([True, "is_admin"], relationship="or")
        >>> cond.relationship
        <Relationship.OR: 'OR'>
    """

    def __init__(
        self,
        entries: Iterable[Any] = (),
        relationship: Union[str, Relationship, None] = None,
        negate: bool = False,
    ):
        super().__init__(entries)
        if relationship is None:
            relationship = Relationship.AND
        try:
            self.relationship = Relationship(relationship)
        except ValueError:
            raise ValueError(f"Invalid relationship: {relationship!r}. Must be one of AND, OR") from None
        self.negate = bool(negate)

    def to_dict(self) -> Dict[str, Any]:
        """Convert condition set to dictionary.

        Nested sets are converted recursively; other entries are kept as is.
        """
        return {
            "relationship": self.relationship.value,
            "negate": self.negate,
            "conditions": [
                entry.to_dict() if isinstance(entry, ConditionSet) else entry
                for entry in self
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConditionSet":
        """Create condition set from dictionary."""
        entries = [
            cls.from_dict(entry) if isinstance(entry, dict) and "conditions" in entry else entry
            for entry in data.get("conditions", [])
        ]
        return cls(
            entries,
            relationship=data.get("relationship"),
            negate=data.get("negate", False),
        )

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, ConditionSet):
            return (
                list.__eq__(self, other)
                and self.relationship == other.relationship
                and self.negate == other.negate
            )
        return list.__eq__(self, other)

    def __ne__(self, other: Any) -> bool:
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"ConditionSet({list.__repr__(self)}, relationship={self.relationship.value!r}, "
            f"negate={self.negate!r})"
        )


@dataclass(frozen=True)
class Node:
    """A classified expression.

    Attributes:
        kind: Variant tag.
        value: The unwrapped expression value.
        negate: Effective negation flag carried by this node itself.
    """

    kind: NodeKind
    value: Any
    negate: bool = False


def _own_negation(value: Any) -> bool:
    # only a real bool counts; a ``negate`` method must not flip the result
    flag = getattr(value, "negate", None)
    return isinstance(flag, bool) and flag


def classify(value: Any) -> Node:
    """Classify a value into exactly one node kind.

    Checks run in a fixed order, so the result is unique for every value.

    Args:
        value: Any expression value.

    Returns:
        Classified node with ``Not`` wrappers folded into ``negate``.
    """
    negate = False
    while isinstance(value, Not):
        negate = not negate
        value = value.expression

    if value is None or isinstance(value, bool):
        return Node(NodeKind.TERMINAL, value, negate)

    if isinstance(value, (str, int, float, Ref)):
        return Node(NodeKind.REFERENCE, value, negate != _own_negation(value))

    if isinstance(value, (list, tuple)):
        # ConditionSet is a list subclass and carries its own flag
        return Node(NodeKind.SET, value, negate != _own_negation(value))

    if inspect.isawaitable(value):
        return Node(NodeKind.DEFERRED, value, negate != _own_negation(value))

    if callable(value):
        return Node(NodeKind.CALLABLE, value, negate != _own_negation(value))

    return Node(NodeKind.TERMINAL, value, negate != _own_negation(value))


def is_terminal(value: Any) -> bool:
    """Check whether a value is judged directly by truthiness."""
    return classify(value).kind is NodeKind.TERMINAL


def is_reference(value: Any) -> bool:
    """Check whether a value is a context map reference."""
    return classify(value).kind is NodeKind.REFERENCE


def is_callable_condition(value: Any) -> bool:
    """Check whether a value is a callable condition."""
    return classify(value).kind is NodeKind.CALLABLE


def is_deferred(value: Any) -> bool:
    """Check whether a value is an awaitable condition."""
    return classify(value).kind is NodeKind.DEFERRED


def is_condition_set(value: Any) -> bool:
    """Check whether a value is a condition set."""
    return classify(value).kind is NodeKind.SET


def as_condition_set(value: Any) -> ConditionSet:
    """Return a ``ConditionSet`` view of a set-shaped value.

    Plain lists and tuples become AND sets without negation; the caller's
    sequence is copied, never modified.
    """
    if isinstance(value, ConditionSet):
        return value
    return ConditionSet(value)


def all_of(*entries: Any) -> ConditionSet:
    """Build an AND set."""
    return ConditionSet(entries, relationship=Relationship.AND)


def any_of(*entries: Any) -> ConditionSet:
    """Build an OR set."""
    return ConditionSet(entries, relationship=Relationship.OR)


def none_of(*entries: Any) -> ConditionSet:
    """Build a negated OR set: true when no entry holds."""
    return ConditionSet(entries, relationship=Relationship.OR, negate=True)


def negate(expression: Any) -> Not:
    """Negate any expression."""
    return Not(expression)


def with_negation(expression: Any, flag: Optional[bool]) -> Any:
    """Wrap ``expression`` in ``Not`` when ``flag`` is set."""
    return Not(expression) if flag else expression
