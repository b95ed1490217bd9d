"""Pytest fixtures for rotalabs-condition tests.

This module provides reusable fixtures for building condition trees with
observable side effects and asynchronous leaves.
"""

import asyncio
from typing import Any, Dict

import pytest


class Account:
    """Simple binding object used as the receiver of callable conditions."""

    def __init__(self, flag: bool = True, level: int = 0):
        self.flag = flag
        self.level = level


@pytest.fixture
def account() -> Account:
    """Create an account with ``flag`` set."""
    return Account(flag=True, level=3)


@pytest.fixture
def context_map() -> Dict[Any, Any]:
    """Create a context map covering the common reference shapes.

    Keys:
        - is_active: plain True
        - is_banned: plain False
        - has_quota: callable returning True
        - alias: reference to another key
        - nested: AND set containing a reference
        - 1: numeric key
    """
    return {
        "is_active": True,
        "is_banned": False,
        "has_quota": lambda: True,
        "alias": "is_active",
        "nested": [True, "is_active"],
        1: True,
    }


@pytest.fixture
def recorder():
    """Factory fixture for callable conditions that record their calls.

    Example:
        check = recorder(result=True)
        evaluate(check)
        assert check.calls == 1
    """
    def _create(result: Any = True):
        def condition(*args):
            condition.calls += 1
            condition.received.append(args)
            return result

        condition.calls = 0
        condition.received = []
        return condition

    return _create


@pytest.fixture
def resolved():
    """Factory fixture for coroutines resolving to a value after an optional delay."""
    async def _resolved(value: Any, delay_ms: int = 0):
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)
        return value

    return _resolved


@pytest.fixture
def rejected():
    """Factory fixture for coroutines that raise."""
    async def _rejected(message: str = "condition failed", delay_ms: int = 0):
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)
        raise RuntimeError(message)

    return _rejected
