"""
Short-circuit and exhaustive evaluation of condition expressions.

This module combines resolved conditions into a single boolean:
- Terminals are judged first, in document order, and may decide a set alone
- Nested condition sets are evaluated next
- Awaitables are evaluated last, concurrently, and only when still needed

A result is a plain ``bool`` when no awaitable had to be awaited, and a
coroutine resolving to ``bool`` otherwise. A failing awaitable counts as
``False`` for its own slot; it never fails the evaluation.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from rotalabs_condition.core.config import DEFAULT_MAX_DEPTH
from rotalabs_condition.core.expression import (
    ConditionSet,
    NodeKind,
    Relationship,
    as_condition_set,
    with_negation,
)
from rotalabs_condition.core.negation import apply_negation, compose_negation
from rotalabs_condition.evaluation.resolver import ConditionError, Resolution, Resolver

logger = logging.getLogger(__name__)

EvaluationResult = Union[bool, Awaitable[bool]]
NegationFlags = List[Optional[bool]]


@dataclass(frozen=True)
class _Scope:
    """Per-call values applied to every callable at every depth.

    ``reached`` holds every awaitable met during the call and ``awaited``
    the shared future for each one already handed to the event loop, both
    keyed by ``id``. The same coroutine may be reached from several places
    (one context key referenced twice); it is awaited once and every slot
    reads the shared result.
    """

    context_map: Mapping[Any, Any] = field(default_factory=dict)
    binding: Any = None
    args: Sequence[Any] = ()
    reached: Dict[int, Any] = field(default_factory=dict)
    awaited: Dict[int, "asyncio.Future[Any]"] = field(default_factory=dict)

    def reach(self, awaitable: Any) -> Any:
        self.reached[id(awaitable)] = awaitable
        return awaitable

    def shared_future(self, awaitable: Any) -> "asyncio.Future[Any]":
        key = id(awaitable)
        future = self.awaited.get(key)
        if future is None:
            future = asyncio.ensure_future(awaitable)
            self.awaited[key] = future
        return future

    def close_unawaited(self) -> None:
        """Close coroutines that were reached but never needed.

        Coroutines that never started are closed; running tasks and futures
        are left alone and their results are ignored.
        """
        for key, awaitable in self.reached.items():
            if key in self.awaited:
                continue
            if inspect.iscoroutine(awaitable) and inspect.getcoroutinestate(awaitable) == inspect.CORO_CREATED:
                awaitable.close()


class _Suspended:
    """Synchronous evaluation stopped at awaitables.

    ``slots`` are awaited together; their settled values are handed to
    ``resume``, which returns either the final bool or another suspension.
    """

    __slots__ = ("slots", "resume")

    def __init__(self, slots: List[Any], resume: Callable[[List[Any]], Union[bool, "_Suspended"]]):
        self.slots = slots
        self.resume = resume


async def _await_slot(slot: Any, scope: _Scope) -> Any:
    if isinstance(slot, _Suspended):
        return await _complete(slot, scope)
    return await scope.shared_future(slot)


async def _settle(slots: List[Any], scope: _Scope) -> List[Any]:
    """Await all slots concurrently and map every failure to ``False``."""
    outcomes = await asyncio.gather(*(_await_slot(slot, scope) for slot in slots), return_exceptions=True)

    settled = []
    rejected = 0
    for outcome in outcomes:
        if isinstance(outcome, ConditionError):
            raise outcome
        if isinstance(outcome, BaseException):
            logger.debug(
                "Asynchronous condition failed, counting as False",
                extra={"error_type": type(outcome).__name__, "error": str(outcome)},
            )
            rejected += 1
            settled.append(False)
        else:
            settled.append(outcome)

    logger.debug("Settled asynchronous conditions", extra={"count": len(settled), "rejected": rejected})
    return settled


async def _complete(suspended: _Suspended, scope: _Scope) -> bool:
    """Drive a suspension to its final boolean."""
    result: Union[bool, _Suspended] = suspended
    while isinstance(result, _Suspended):
        values = await _settle(result.slots, scope)
        result = result.resume(values)
    return result


async def _finish(suspended: _Suspended, scope: _Scope) -> bool:
    try:
        return await _complete(suspended, scope)
    finally:
        scope.close_unawaited()


class ConditionEvaluator:
    """
    Evaluator for condition expressions with short-circuit and exhaustive modes.

    Fast mode stops as soon as the outcome of a set is known, judging cheap
    conditions before nested sets and nested sets before awaitables. Full
    mode evaluates every condition (useful when conditions have side
    effects) and combines the results at the end.

    The instance holds no per-call state and can be shared freely.

    Examples:
        >>> evaluator = ConditionEvaluator()
        >>> evaluator.evaluate(ConditionSet([True, "ready"], relationship="and"), {"ready": 1})
        True
        >>> evaluator.evaluate(ConditionSet([False, None], relationship="or"))
        False
    """

    __slots__ = ("resolver",)

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        """
        Initialize the evaluator.

        Args:
            max_depth: Maximum reference/callable substitutions per condition
        """
        self.resolver = Resolver(max_depth=max_depth)

    def evaluate(
        self,
        expression: Any,
        context_map: Optional[Mapping[Any, Any]] = None,
        binding: Any = None,
        args: Sequence[Any] = (),
        exhaustive: bool = False,
        negation_seed: Optional[Sequence[Optional[bool]]] = None,
    ) -> EvaluationResult:
        """
        Evaluate an expression.

        Args:
            expression: Expression to evaluate
            context_map: Lookup table for references
            binding: Receiver passed first to callables with a positional slot for it, if not None
            args: Arguments passed to every callable
            exhaustive: Evaluate every condition instead of short-circuiting
            negation_seed: Negation flags applied on top of the expression's own

        Returns:
            ``bool``, or a coroutine resolving to ``bool`` if awaitables were involved

        Raises:
            ResolutionDepthExceeded: If a reference/callable chain does not settle
        """
        scope = _Scope(context_map=context_map or {}, binding=binding, args=tuple(args or ()))
        seed = list(negation_seed) if negation_seed else None

        try:
            if exhaustive:
                result = self._evaluate_full(expression, scope, seed)
            else:
                result = self._evaluate_fast(expression, scope, seed)
        except BaseException:
            scope.close_unawaited()
            raise

        if isinstance(result, _Suspended):
            logger.debug("Evaluation continues asynchronously", extra={"pending": len(result.slots)})
            return _finish(result, scope)
        scope.close_unawaited()
        return result

    def _resolve(self, expression: Any, scope: _Scope, seed: Optional[NegationFlags] = None) -> Resolution:
        return self.resolver.resolve(
            expression,
            context_map=scope.context_map,
            binding=scope.binding,
            args=scope.args,
            seed=seed,
        )

    # Fast mode

    def _evaluate_fast(
        self, expression: Any, scope: _Scope, seed: Optional[NegationFlags] = None
    ) -> Union[bool, _Suspended]:
        resolution = self._resolve(expression, scope, seed)
        node, negations = resolution.node, resolution.negations

        if node.kind is NodeKind.DEFERRED:
            return _Suspended(
                [scope.reach(node.value)],
                lambda values: self._evaluate_fast(values[0], scope, negations),
            )

        if node.kind is NodeKind.SET:
            return self._evaluate_set_fast(as_condition_set(node.value), negations, scope)

        return apply_negation(node.value, negations)

    def _evaluate_set_fast(
        self, condition_set: ConditionSet, negations: NegationFlags, scope: _Scope
    ) -> Union[bool, _Suspended]:
        """
        Evaluate a set with short-circuit logic.

        - AND: stops at first False
        - OR: stops at first True

        Terminals are checked in a first pass; nested sets and awaitables are
        postponed and only looked at while the outcome is still open.
        """
        # the entry value that decides the whole set
        decisive = condition_set.relationship is Relationship.OR

        nested_sets: List[Resolution] = []
        pending: List[Any] = []
        pending_negations: List[NegationFlags] = []

        for entry in condition_set:
            resolution = self._resolve(entry, scope)
            kind = resolution.node.kind

            if kind is NodeKind.SET:
                nested_sets.append(resolution)
            elif kind is NodeKind.DEFERRED:
                pending.append(scope.reach(resolution.node.value))
                pending_negations.append(resolution.negations)
            elif apply_negation(resolution.node.value, resolution.negations) is decisive:
                return self._short_circuit(condition_set, decisive, negations, pending)

        for resolution in nested_sets:
            result = self._evaluate_set_fast(
                as_condition_set(resolution.node.value), resolution.negations, scope
            )
            if isinstance(result, _Suspended):
                pending.append(result)
                # already negated inside the nested evaluation
                pending_negations.append([])
            elif result is decisive:
                return self._short_circuit(condition_set, decisive, negations, pending)

        if pending:
            relationship = condition_set.relationship

            def resume(values: List[Any]) -> Union[bool, _Suspended]:
                entries = [
                    with_negation(value, compose_negation(flags))
                    for value, flags in zip(values, pending_negations)
                ]
                return self._evaluate_set_fast(ConditionSet(entries, relationship=relationship), negations, scope)

            return _Suspended(pending, resume)

        return apply_negation(not decisive, negations)

    @staticmethod
    def _short_circuit(
        condition_set: ConditionSet, decisive: bool, negations: NegationFlags, pending: List[Any]
    ) -> bool:
        # skipped coroutines are closed when the whole call ends; another
        # slot of the same call may still need them
        logger.debug(
            "Short-circuit",
            extra={
                "relationship": condition_set.relationship.value,
                "abandoned": len(pending),
            },
        )
        return apply_negation(decisive, negations)

    # Full mode

    def _evaluate_full(
        self, expression: Any, scope: _Scope, seed: Optional[NegationFlags] = None
    ) -> Union[bool, _Suspended]:
        resolution = self._resolve(expression, scope, seed)
        node, negations = resolution.node, resolution.negations

        if node.kind is NodeKind.DEFERRED:
            return _Suspended(
                [scope.reach(node.value)],
                lambda values: self._evaluate_full(values[0], scope, negations),
            )

        if node.kind is NodeKind.SET:
            condition_set = as_condition_set(node.value)
            results = [self._evaluate_full(entry, scope) for entry in condition_set]
            pending = [result for result in results if isinstance(result, _Suspended)]

            if pending:
                def resume(values: List[Any]) -> bool:
                    settled = iter(values)
                    combined = [
                        next(settled) if isinstance(result, _Suspended) else result
                        for result in results
                    ]
                    return self._combine(condition_set.relationship, combined, negations)

                return _Suspended(pending, resume)

            return self._combine(condition_set.relationship, results, negations)

        return apply_negation(node.value, negations)

    @staticmethod
    def _combine(relationship: Relationship, values: List[Any], negations: NegationFlags) -> bool:
        if relationship is Relationship.OR:
            combined = any(bool(value) for value in values)
        else:
            combined = all(bool(value) for value in values)
        return apply_negation(combined, negations)
