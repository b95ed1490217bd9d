"""Public entry points for condition evaluation.

``evaluate`` runs one evaluation from an expression or configuration;
``make_evaluator`` pre-binds part of the configuration and returns a reusable
function that accepts the rest.
"""

import logging
from typing import Any, Callable, Dict, Mapping, Union

from rotalabs_condition.core.config import EvaluationConfig
from rotalabs_condition.evaluation.evaluator import ConditionEvaluator, EvaluationResult

logger = logging.getLogger(__name__)

ConfigSource = Union[EvaluationConfig, Mapping[Any, Any]]

# Fields filled, in this order, by positional arguments of a bound evaluator
POSITIONAL_FIELDS = ("expression", "binding", "args")


def run(config: EvaluationConfig) -> EvaluationResult:
    """Evaluate a fully assembled configuration."""
    logger.debug(
        "Evaluating condition",
        extra={
            "exhaustive": config.is_exhaustive,
            "context_keys": len(config.context_map),
            "max_depth": config.resolution_limit,
        },
    )
    evaluator = ConditionEvaluator(max_depth=config.resolution_limit)
    return evaluator.evaluate(
        config.expression,
        context_map=config.context_map,
        binding=config.binding,
        args=config.call_args,
        exhaustive=config.is_exhaustive,
        negation_seed=config.negation_seed,
    )


def evaluate(expr_or_config: Any = None, *options: ConfigSource, **kwargs: Any) -> EvaluationResult:
    """Evaluate a condition expression.

    Args:
        expr_or_config: The expression, or a configuration (an
            ``EvaluationConfig`` or a mapping with at least one option key).
        *options: Further configurations or mappings; later ones win.
            Mapping keys that are not options become context map entries.
        **kwargs: Options applied last (``context_map``, ``binding``,
            ``args``, ``exhaustive``, ``max_depth``, ...).

    Returns:
        ``bool``, or a coroutine resolving to ``bool`` when awaitable
        conditions had to be awaited.

    Raises:
        ResolutionDepthExceeded: If a reference/callable chain does not settle.

    Examples:
        >>> evaluate([True, "ready"], {"ready": True})
        True
        >>> evaluate("missing", context_map={})
        False
    """
    config = EvaluationConfig.from_sources(expr_or_config, *options, **kwargs)
    return run(config)


def make_evaluator(
    expr_or_config: Any = None, *options: ConfigSource, **kwargs: Any
) -> Callable[..., EvaluationResult]:
    """Create an evaluator with part of the configuration pre-bound.

    Positional arguments of the returned function fill the fields left unset
    here, in the order ``expression, binding, args``. Keyword arguments and
    trailing configuration objects passed to it override the bound values.

    Examples:
        >>> is_owner = make_evaluator(lambda user, doc: doc["owner"] == user)
        >>> is_owner(None, ("ann", {"owner": "ann"}))
        True
    """
    bound = EvaluationConfig.from_sources(expr_or_config, *options, **kwargs)
    open_fields = [name for name in POSITIONAL_FIELDS if getattr(bound, name) is None]

    def evaluate_with(*rest: Any, **overrides: Any) -> EvaluationResult:
        values = list(rest)
        sources = []
        while values and isinstance(values[-1], EvaluationConfig):
            sources.insert(0, values.pop())

        if len(values) > len(open_fields):
            raise TypeError(
                f"Evaluator accepts at most {len(open_fields)} positional argument(s) "
                f"({', '.join(open_fields) or 'none'}), got {len(values)}"
            )

        filled: Dict[str, Any] = dict(zip(open_fields, values))
        return run(bound.merge(filled, *sources, **overrides))

    return evaluate_with
