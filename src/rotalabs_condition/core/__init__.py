"""Core module for rotalabs-condition.

This module provides the expression model, the negation algebra, evaluation
configuration and the public evaluation entry points.
"""

from rotalabs_condition.core.expression import (
    ConditionSet,
    Node,
    NodeKind,
    Not,
    Ref,
    Relationship,
    all_of,
    any_of,
    classify,
    negate,
    none_of,
)
from rotalabs_condition.core.negation import apply_negation, compose_negation
from rotalabs_condition.core.config import EvaluationConfig
from rotalabs_condition.core.engine import evaluate, make_evaluator

__all__ = [
    "ConditionSet",
    "Node",
    "NodeKind",
    "Not",
    "Ref",
    "Relationship",
    "all_of",
    "any_of",
    "none_of",
    "negate",
    "classify",
    "compose_negation",
    "apply_negation",
    "EvaluationConfig",
    "evaluate",
    "make_evaluator",
]
