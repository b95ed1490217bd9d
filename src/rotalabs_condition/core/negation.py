"""Negation algebra shared by the resolver and the evaluator.

A negation sequence is a list of optional flags collected while an
expression is resolved. Each present, true flag toggles the result; absent or
false flags are no-ops, so an even number of active flags cancels out.
"""

from typing import Any, Iterable, Optional

NegationSequence = Iterable[Optional[bool]]


def compose_negation(flags: NegationSequence) -> bool:
    """Reduce a negation sequence to a single effective flag.

    Args:
        flags: Flags in the order they were collected.

    Returns:
        True if the sequence negates overall.

    Examples:
        >>> compose_negation([True, None, True])
        False
        >>> compose_negation([False, True])
        True
    """
    result = False
    for flag in flags:
        if flag:
            result = not result
    return result


def apply_negation(value: Any, flags: NegationSequence) -> bool:
    """Coerce ``value`` to bool and apply a negation sequence."""
    result = bool(value)
    if compose_negation(flags):
        return not result
    return result
