"""Tests for asynchronous conditions in rotalabs-condition.

Tests cover:
- Result type switching between bool and awaitable
- Failing awaitables counted as False
- Concurrent awaiting of sibling awaitables
- Negation and binding across awaitable resolution
- Abandoned awaitables after a short-circuit
- One awaitable shared by several slots of a call
- Exhaustive mode with awaitables
"""

import asyncio
import inspect

import pytest

from rotalabs_condition.core.expression import ConditionSet, Not, all_of, any_of
from rotalabs_condition.evaluation.evaluator import ConditionEvaluator
from rotalabs_condition.evaluation.resolver import ResolutionDepthExceeded


class TestResultType:
    """Tests for the switch between sync and async results."""

    @pytest.mark.asyncio
    async def test_awaitable_returned_for_deferred(self, resolved):
        """Test an awaitable leaf makes the result awaitable."""
        result = ConditionEvaluator().evaluate(resolved(True))

        assert inspect.isawaitable(result)
        assert await result is True

    def test_bool_when_decided_synchronously(self, resolved):
        """Test a decided set returns bool even with awaitable siblings."""
        coro = resolved(True)

        result = ConditionEvaluator().evaluate(all_of(coro, False))

        assert result is False
        assert inspect.getcoroutinestate(coro) == inspect.CORO_CLOSED

    @pytest.mark.asyncio
    async def test_async_callable(self):
        """Test a coroutine function is called and its result awaited."""
        async def check(level):
            await asyncio.sleep(0)
            return level > 2

        assert await ConditionEvaluator().evaluate(check, args=[3]) is True

    @pytest.mark.asyncio
    async def test_future(self):
        """Test asyncio futures are awaited."""
        future = asyncio.get_running_loop().create_future()
        asyncio.get_running_loop().call_soon(future.set_result, "ready")

        assert await ConditionEvaluator().evaluate(future, {"ready": True}) is True


class TestRejection:
    """Tests for failing awaitables."""

    @pytest.mark.asyncio
    async def test_rejected_leaf_is_false(self, rejected):
        """Test a failing awaitable evaluates to False without raising."""
        assert await ConditionEvaluator().evaluate(rejected()) is False

    @pytest.mark.asyncio
    async def test_and_with_rejection(self, resolved, rejected):
        """Test AND of a resolved True and a failure is False."""
        result = ConditionEvaluator().evaluate(all_of(resolved(True), rejected()))

        assert await result is False

    @pytest.mark.asyncio
    async def test_or_with_rejection(self, resolved, rejected):
        """Test OR ignores a failure when another entry holds."""
        result = ConditionEvaluator().evaluate(any_of(rejected(), resolved(True)))

        assert await result is True

    @pytest.mark.asyncio
    async def test_negated_rejection(self, rejected):
        """Test negation applies to the False of a failed awaitable."""
        assert await ConditionEvaluator().evaluate(Not(rejected())) is True
        assert await ConditionEvaluator().evaluate(all_of(Not(rejected()), True)) is True

    @pytest.mark.asyncio
    async def test_rejection_inside_nested_set(self, resolved, rejected):
        """Test a failure deep in the tree only affects its own slot."""
        expression = any_of(all_of(resolved(True), rejected()), all_of(resolved("ok")))

        assert await ConditionEvaluator().evaluate(expression, {"ok": True}) is True


class TestConcurrency:
    """Tests for concurrent awaiting."""

    @pytest.mark.asyncio
    async def test_siblings_awaited_together(self):
        """Test sibling awaitables run concurrently rather than one by one."""
        event = asyncio.Event()

        async def waiter():
            await event.wait()
            return True

        async def setter():
            event.set()
            return True

        result = ConditionEvaluator().evaluate(all_of(waiter(), setter()))

        assert await asyncio.wait_for(result, timeout=1) is True

    @pytest.mark.asyncio
    async def test_nested_set_results_awaited_with_leaves(self, resolved):
        """Test awaitables from nested sets join the same batch."""
        expression = all_of(resolved(True, delay_ms=5), any_of(False, resolved(True, delay_ms=5)))

        assert await ConditionEvaluator().evaluate(expression) is True


class TestResolvedValues:
    """Tests for values produced by awaitables."""

    @pytest.mark.asyncio
    async def test_awaitable_resolving_to_reference(self, resolved, context_map):
        """Test resolved values are resolved again against the context map."""
        assert await ConditionEvaluator().evaluate(resolved("is_active"), context_map) is True
        assert await ConditionEvaluator().evaluate(resolved("missing"), context_map) is False

    @pytest.mark.asyncio
    async def test_awaitable_resolving_to_callable(self, resolved, account):
        """Test callables produced by awaitables receive the binding."""
        expression = any_of(False, resolved(lambda acct: acct.flag))

        assert await ConditionEvaluator().evaluate(expression, binding=account) is True

    @pytest.mark.asyncio
    async def test_awaitable_resolving_to_awaitable(self, resolved):
        """Test chains of awaitables are followed."""
        assert await ConditionEvaluator().evaluate(resolved(resolved(resolved(True)))) is True

    @pytest.mark.asyncio
    async def test_awaitable_resolving_to_negated_set(self, resolved):
        """Test a resolved set's own negation is kept."""
        expression = resolved(ConditionSet([True], negate=True))

        assert await ConditionEvaluator().evaluate(expression) is False

    @pytest.mark.asyncio
    async def test_negated_awaitable_in_set(self, resolved):
        """Test negation of an awaitable entry survives recombination."""
        expression = any_of(Not(resolved(True)), False)

        assert await ConditionEvaluator().evaluate(expression) is False

    @pytest.mark.asyncio
    async def test_negated_callable_returning_awaitable(self, resolved):
        """Test a callable's negation applies to the awaited value."""
        def check():
            return resolved(False)

        check.negate = True

        assert await ConditionEvaluator().evaluate(all_of(True, check)) is True

    @pytest.mark.asyncio
    async def test_set_negation_with_awaitables(self, resolved):
        """Test a set's negation is applied exactly once after awaiting."""
        expression = ConditionSet([resolved(True), resolved(True)], negate=True)

        assert await ConditionEvaluator().evaluate(expression) is False

    @pytest.mark.asyncio
    async def test_cycle_after_await_raises(self, resolved):
        """Test the depth ceiling applies to values produced by awaitables."""
        def forever():
            return forever

        evaluator = ConditionEvaluator(max_depth=5)

        with pytest.raises(ResolutionDepthExceeded):
            await evaluator.evaluate(all_of(any_of(resolved(forever))))


class TestAbandonedAwaitables:
    """Tests for awaitables no longer needed after a short-circuit."""

    def test_unstarted_coroutine_closed(self, resolved):
        """Test a coroutine passed over by a short-circuit is closed."""
        coro = resolved(True)

        assert ConditionEvaluator().evaluate(any_of(coro, True)) is True
        assert inspect.getcoroutinestate(coro) == inspect.CORO_CLOSED

    @pytest.mark.asyncio
    async def test_running_task_not_cancelled(self, resolved):
        """Test a task passed over by a short-circuit keeps running."""
        task = asyncio.ensure_future(resolved(True, delay_ms=5))

        assert ConditionEvaluator().evaluate(all_of(task, False)) is False
        assert await task is True
        assert not task.cancelled()

    @pytest.mark.asyncio
    async def test_nested_set_decides_before_awaiting(self, resolved):
        """Test a decisive nested set returns bool without awaiting siblings."""
        coro = resolved(True)

        result = ConditionEvaluator().evaluate(any_of(coro, all_of(True, "x")), {"x": True})

        assert result is True
        assert inspect.getcoroutinestate(coro) == inspect.CORO_CLOSED


class TestSharedAwaitables:
    """Tests for one awaitable reached from several places in a call."""

    @pytest.mark.asyncio
    async def test_same_reference_twice_in_set(self, resolved):
        """Test a coroutine referenced twice is awaited once for both entries."""
        context_map = {"x": resolved(True)}

        assert await ConditionEvaluator().evaluate(all_of("x", "x"), context_map) is True

    @pytest.mark.asyncio
    async def test_same_reference_in_nested_set(self, resolved):
        """Test a nested set shares the outer set's await of the same coroutine."""
        context_map = {"x": resolved(True)}

        assert await ConditionEvaluator().evaluate(all_of("x", all_of("x")), context_map) is True

    @pytest.mark.asyncio
    async def test_negated_second_reference(self, resolved):
        """Test each slot applies its own negation to the shared result."""
        context_map = {"x": resolved(True)}

        assert await ConditionEvaluator().evaluate(any_of(Not("x"), "x"), context_map) is True
        assert await ConditionEvaluator().evaluate(all_of("x", Not("x")), {"x": resolved(True)}) is False

    @pytest.mark.asyncio
    async def test_shared_coroutine_runs_once(self):
        """Test the shared coroutine body executes a single time."""
        runs = []

        async def check():
            runs.append(1)
            await asyncio.sleep(0)
            return True

        context_map = {"x": check()}

        assert await ConditionEvaluator().evaluate(all_of("x", any_of("x", all_of("x"))), context_map) is True
        assert runs == [1]

    @pytest.mark.asyncio
    async def test_shared_rejection(self, rejected):
        """Test a failing shared coroutine counts as False in every slot."""
        context_map = {"x": rejected()}

        assert await ConditionEvaluator().evaluate(any_of("x", all_of("x")), context_map) is False

    @pytest.mark.asyncio
    async def test_same_reference_in_full_mode(self, resolved):
        """Test full mode also awaits a repeated coroutine only once."""
        context_map = {"x": resolved(True)}

        result = ConditionEvaluator().evaluate(all_of("x", all_of("x")), context_map, exhaustive=True)

        assert await result is True

    @pytest.mark.asyncio
    async def test_skipped_coroutine_closed_after_async_result(self, resolved):
        """Test a coroutine skipped by a short-circuit is closed once the result settles."""
        skipped = resolved(True)

        result = ConditionEvaluator().evaluate(all_of(resolved(True), any_of(skipped, True)))

        assert await result is True
        assert inspect.getcoroutinestate(skipped) == inspect.CORO_CLOSED


class TestExhaustiveAsync:
    """Tests for full mode with awaitables."""

    @pytest.mark.asyncio
    async def test_all_awaitables_awaited(self, recorder):
        """Test full mode awaits every awaitable even when the result is known."""
        finished = []

        async def check(name, value):
            await asyncio.sleep(0)
            finished.append(name)
            return value

        expression = any_of(True, check("a", False), all_of(check("b", True), recorder()))

        result = ConditionEvaluator().evaluate(expression, exhaustive=True)

        assert inspect.isawaitable(result)
        assert await result is True
        assert sorted(finished) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_rejection_in_full_mode(self, resolved, rejected):
        """Test failures count as False in full mode."""
        result = ConditionEvaluator().evaluate(all_of(resolved(True), rejected()), exhaustive=True)

        assert await result is False

    @pytest.mark.asyncio
    async def test_negation_in_full_mode(self, resolved):
        """Test negations are applied once per node in full mode."""
        expression = ConditionSet(
            [Not(resolved(False)), ConditionSet([resolved(True)], negate=True)],
            relationship="or",
            negate=True,
        )

        assert await ConditionEvaluator().evaluate(expression, exhaustive=True) is False

    @pytest.mark.asyncio
    async def test_binding_in_full_mode(self, resolved, account):
        """Test callables produced by awaitables receive the binding."""
        expression = all_of(resolved(lambda acct: acct.level == 3), lambda acct: acct.flag)

        assert await ConditionEvaluator().evaluate(expression, binding=account, exhaustive=True) is True
