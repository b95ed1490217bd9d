"""Resolution of deferred-by-name and callable conditions.

The resolver substitutes references and callables until the expression takes
a shape the evaluator can combine: a terminal, a condition set, or an
awaitable. The negation flag of every node passed along the way is collected
so the evaluator can apply it once the final value is known.
"""

import inspect
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, List, Mapping, Optional, Sequence

from rotalabs_condition.core.config import DEFAULT_MAX_DEPTH
from rotalabs_condition.core.expression import Node, NodeKind, Ref, classify

logger = logging.getLogger(__name__)


class ConditionError(RuntimeError):
    """Base class for errors raised by condition evaluation."""


class ResolutionDepthExceeded(ConditionError):
    """A reference or callable chain did not settle within the allowed depth.

    Attributes:
        depth: Number of substitutions performed before giving up.
        last_value: Expression that was about to be substituted.
    """

    def __init__(self, depth: int, last_value: Any):
        self.depth = depth
        self.last_value = last_value
        super().__init__(
            f"Condition did not resolve after {depth} substitutions "
            f"(last value: {last_value!r}); check for cyclic references or callables"
        )


@dataclass
class Resolution:
    """Result of resolving an expression.

    Attributes:
        node: Classified node, always TERMINAL, SET or DEFERRED.
        negations: Accumulated negation flags, outermost first.
    """

    node: Node
    negations: List[Optional[bool]] = field(default_factory=list)


class Resolver:
    """Flattens reference and callable conditions.

    The context map, binding and arguments given to ``resolve`` apply to
    every substitution, including callables returned by other callables.

    Examples:
        >>> resolver = Resolver()
        >>> res = resolver.resolve("ready", {"ready": lambda: True})
        >>> res.node.value, res.negations
        (True, [False, False, False])
    """

    __slots__ = ("max_depth",)

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        self.max_depth = max_depth

    def resolve(
        self,
        expression: Any,
        context_map: Optional[Mapping[Any, Any]] = None,
        binding: Any = None,
        args: Sequence[Any] = (),
        seed: Optional[Sequence[Optional[bool]]] = None,
    ) -> Resolution:
        """Resolve ``expression`` to a terminal, set or awaitable.

        Args:
            expression: Expression to resolve.
            context_map: Lookup table for references.
            binding: Receiver passed first to callables that have a
                positional slot for it, if not None.
            args: Arguments passed to callables.
            seed: Negation flags to prepend to the collected sequence.

        Returns:
            Resolution with the final node and all collected negation flags.

        Raises:
            ResolutionDepthExceeded: If more than ``max_depth`` substitutions
                were needed.
        """
        context_map = context_map if context_map is not None else {}
        negations: List[Optional[bool]] = list(seed) if seed else []
        node = classify(expression)
        depth = 0

        while node.kind in (NodeKind.REFERENCE, NodeKind.CALLABLE):
            if depth >= self.max_depth:
                raise ResolutionDepthExceeded(depth, node.value)
            negations.append(node.negate)

            if node.kind is NodeKind.REFERENCE:
                value = self._lookup(node.value, context_map)
            else:
                value = self._invoke(node.value, binding, args)

            node = classify(value)
            depth += 1

        negations.append(node.negate)
        return Resolution(node=node, negations=negations)

    @staticmethod
    def _lookup(key: Any, context_map: Mapping[Any, Any]) -> Any:
        if isinstance(key, Ref):
            key = key.key
        try:
            return context_map[key]
        except KeyError:
            logger.debug("Reference not found in context map", extra={"reference": repr(key)})
            return None

    @staticmethod
    def _invoke(func: Any, binding: Any, args: Sequence[Any]) -> Any:
        if binding is not None and accepts_binding(func, len(args)):
            return func(binding, *args)
        return func(*args)


def _count_positional(func: Any) -> Optional[int]:
    try:
        parameters = inspect.signature(func).parameters.values()
    except (TypeError, ValueError):
        # no introspectable signature (some builtins)
        return None

    count = 0
    for parameter in parameters:
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


@lru_cache(maxsize=256)
def _cached_count_positional(func: Any) -> Optional[int]:
    return _count_positional(func)


def positional_capacity(func: Any) -> Optional[int]:
    """
    Number of positional arguments a callable accepts.

    Results are cached per callable; unhashable callables are inspected on
    every call.

    Returns:
        The count, or None when unbounded (``*args``) or not introspectable
    """
    try:
        return _cached_count_positional(func)
    except TypeError:
        return _count_positional(func)


def accepts_binding(func: Any, arg_count: int) -> bool:
    """
    Check whether ``func`` takes the binding in front of ``arg_count`` arguments.

    A callable receives the binding only when it has a positional slot left
    for it; ``lambda: True`` and ``lambda x: x`` called with one argument
    never see the binding.
    """
    capacity = positional_capacity(func)
    return capacity is None or capacity > arg_count
