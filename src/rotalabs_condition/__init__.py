"""
rotalabs-condition - Boolean condition evaluation with short-circuit and async support.

Combines plain values, callables, context references and awaitables into
AND/OR/NOT condition trees and evaluates them to a single boolean, awaiting
asynchronous conditions only when they are still needed.

https://rotalabs.ai
"""

__version__ = "0.1.0"

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
    is_callable_condition,
    is_condition_set,
    is_deferred,
    is_reference,
    is_terminal,
    negate,
    none_of,
)
from rotalabs_condition.core.negation import apply_negation, compose_negation
from rotalabs_condition.core.config import EvaluationConfig
from rotalabs_condition.core.engine import evaluate, make_evaluator
from rotalabs_condition.evaluation.evaluator import ConditionEvaluator
from rotalabs_condition.evaluation.resolver import (
    ConditionError,
    Resolution,
    ResolutionDepthExceeded,
    Resolver,
)

__all__ = [
    # Version
    "__version__",
    # Entry points
    "evaluate",
    "make_evaluator",
    "EvaluationConfig",
    # Expression model
    "ConditionSet",
    "Relationship",
    "Not",
    "Ref",
    "Node",
    "NodeKind",
    "classify",
    "is_terminal",
    "is_reference",
    "is_callable_condition",
    "is_deferred",
    "is_condition_set",
    "all_of",
    "any_of",
    "none_of",
    "negate",
    # Negation
    "compose_negation",
    "apply_negation",
    # Evaluation
    "ConditionEvaluator",
    "Resolver",
    "Resolution",
    # Errors
    "ConditionError",
    "ResolutionDepthExceeded",
]
