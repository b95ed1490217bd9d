"""
Evaluation module for rotalabs-condition.

This module resolves references and callables and combines conditions with
short-circuit or exhaustive AND/OR logic.
"""

from rotalabs_condition.evaluation.evaluator import ConditionEvaluator
from rotalabs_condition.evaluation.resolver import (
    ConditionError,
    Resolution,
    ResolutionDepthExceeded,
    Resolver,
)

__all__ = [
    "ConditionEvaluator",
    "ConditionError",
    "Resolution",
    "ResolutionDepthExceeded",
    "Resolver",
]
