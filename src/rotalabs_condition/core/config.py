"""Configuration for a single evaluation call.

An evaluation is configured by the root expression, the context map used to
resolve references, the binding and argument list passed to every callable
condition, and the evaluation mode. Configuration can be assembled from
several sources; later sources override earlier ones field by field.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from rotalabs_condition.core.expression import ConditionSet

try:
    import yaml

    YAML_AVAILABLE = True
except ImportError:
    YAML_AVAILABLE = False


OPTION_KEYS = frozenset(
    {
        "expression",
        "context_map",
        "binding",
        "args",
        "exhaustive",
        "negation_seed",
        "max_depth",
    }
)

DEFAULT_MAX_DEPTH = 1000


def _load_expression(value: Any) -> Any:
    """Turn plain data into expressions (dicts with ``conditions`` become sets)."""
    if isinstance(value, dict) and "conditions" in value:
        return ConditionSet.from_dict(value)
    return value


def _dump_expression(value: Any) -> Any:
    if isinstance(value, ConditionSet):
        return value.to_dict()
    return value


@dataclass
class EvaluationConfig:
    """Options for one evaluation call.

    ``None`` means "not set" for every field, which is what lets several
    configurations merge with later-wins semantics.

    Attributes:
        expression: Root expression to evaluate.
        context_map: Lookup table for reference conditions.
        binding: Receiver passed first to callable conditions that accept it.
        args: Arguments passed to every callable condition.
        exhaustive: Evaluate every condition instead of short-circuiting.
        negation_seed: Negation flags prepended to the root's own flags.
        max_depth: Maximum reference/callable substitutions per resolution.
    """

    expression: Any = None
    context_map: Dict[Any, Any] = field(default_factory=dict)
    binding: Any = None
    args: Optional[Tuple[Any, ...]] = None
    exhaustive: Optional[bool] = None
    negation_seed: Optional[List[Optional[bool]]] = None
    max_depth: Optional[int] = None

    def __post_init__(self):
        """Validate and normalise configuration."""
        if self.context_map is None:
            self.context_map = {}
        elif not isinstance(self.context_map, Mapping):
            raise ValueError(f"context_map must be a mapping, got {type(self.context_map).__name__}")
        else:
            self.context_map = dict(self.context_map)

        if self.args is not None:
            if isinstance(self.args, (str, bytes)) or not isinstance(self.args, Sequence):
                raise ValueError(f"args must be a sequence, got {type(self.args).__name__}")
            self.args = tuple(self.args)

        if self.negation_seed is not None:
            self.negation_seed = list(self.negation_seed)

        if self.max_depth is not None and self.max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")

    @property
    def call_args(self) -> Tuple[Any, ...]:
        """Arguments for callable conditions (empty when unset)."""
        return self.args or ()

    @property
    def is_exhaustive(self) -> bool:
        return bool(self.exhaustive)

    @property
    def resolution_limit(self) -> int:
        return self.max_depth or DEFAULT_MAX_DEPTH

    def merge(self, *sources: Union["EvaluationConfig", Mapping[Any, Any]], **options: Any) -> "EvaluationConfig":
        """Return a new configuration with ``sources`` applied in order.

        Each field set in a later source replaces the earlier value; context
        maps are merged key by key with later keys winning. Mapping sources
        contribute their recognised option keys as options and every other
        key as a context map entry.

        Args:
            *sources: Configurations or mappings, applied left to right.
            **options: Applied last.

        Returns:
            Merged configuration (``self`` is left untouched).
        """
        merged = EvaluationConfig(
            expression=self.expression,
            context_map=self.context_map,
            binding=self.binding,
            args=self.args,
            exhaustive=self.exhaustive,
            negation_seed=self.negation_seed,
            max_depth=self.max_depth,
        )
        for source in (*sources, options):
            merged._apply(source)
        merged.__post_init__()
        return merged

    def _apply(self, source: Union["EvaluationConfig", Mapping[Any, Any]]) -> None:
        if isinstance(source, EvaluationConfig):
            values = {
                "expression": source.expression,
                "context_map": source.context_map,
                "binding": source.binding,
                "args": source.args,
                "exhaustive": source.exhaustive,
                "negation_seed": source.negation_seed,
                "max_depth": source.max_depth,
            }
            extra: Mapping[Any, Any] = {}
        elif isinstance(source, Mapping):
            values = {key: value for key, value in source.items() if key in OPTION_KEYS}
            extra = {key: value for key, value in source.items() if key not in OPTION_KEYS}
        else:
            raise ValueError(f"Unsupported configuration source: {type(source).__name__}")

        for key, value in values.items():
            if value is None:
                continue
            if key == "context_map":
                self.context_map = {**self.context_map, **value}
            else:
                setattr(self, key, value)

        if extra:
            self.context_map = {**self.context_map, **extra}

    @classmethod
    def from_sources(
        cls,
        expr_or_config: Any = None,
        *sources: Union["EvaluationConfig", Mapping[Any, Any]],
        **options: Any,
    ) -> "EvaluationConfig":
        """Build a configuration from an expression or configuration plus overrides.

        The first argument is treated as a configuration when
        ``is_config_source`` accepts it, otherwise as the expression. An
        expression supplied by a later source wins over a bare first argument.

        Examples:
            >>> config = EvaluationConfig.from_sources("a", {"a": True})
            >>> config.expression, config.context_map
            ('a', {'a': True})
        """
        config = cls()
        if is_config_source(expr_or_config):
            config = config.merge(expr_or_config)
        else:
            config.expression = expr_or_config
        return config.merge(*sources, **options)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary (unset fields are omitted)."""
        result: Dict[str, Any] = {}
        if self.expression is not None:
            result["expression"] = _dump_expression(self.expression)
        if self.context_map:
            result["context_map"] = {key: _dump_expression(value) for key, value in self.context_map.items()}
        if self.binding is not None:
            result["binding"] = self.binding
        if self.args is not None:
            result["args"] = list(self.args)
        if self.exhaustive is not None:
            result["exhaustive"] = self.exhaustive
        if self.negation_seed is not None:
            result["negation_seed"] = self.negation_seed
        if self.max_depth is not None:
            result["max_depth"] = self.max_depth
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvaluationConfig":
        """Create configuration from dictionary.

        Keys that are not options are read as context map entries, matching
        how mapping sources are merged.
        """
        context_map = {key: _load_expression(value) for key, value in data.get("context_map", {}).items()}
        for key, value in data.items():
            if key not in OPTION_KEYS:
                context_map[key] = _load_expression(value)

        return cls(
            expression=_load_expression(data.get("expression")),
            context_map=context_map,
            binding=data.get("binding"),
            args=data.get("args"),
            exhaustive=data.get("exhaustive"),
            negation_seed=data.get("negation_seed"),
            max_depth=data.get("max_depth"),
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "EvaluationConfig":
        """Load configuration from JSON or YAML file.

        Args:
            path: Path to configuration file (.json or .yaml/.yml).

        Returns:
            Loaded configuration.

        Raises:
            ValueError: If file format is unsupported.
            ImportError: If YAML file provided but PyYAML not installed.
        """
        path = Path(path)
        suffix = path.suffix.lower()

        with open(path, "r", encoding="utf-8") as f:
            if suffix == ".json":
                data = json.load(f)
            elif suffix in (".yaml", ".yml"):
                if not YAML_AVAILABLE:
                    raise ImportError("PyYAML is required to load YAML files. Install with: pip install pyyaml")
                data = yaml.safe_load(f)
            else:
                raise ValueError(f"Unsupported file format: {suffix}. Use .json, .yaml, or .yml")

        return cls.from_dict(data or {})

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def to_yaml(self) -> str:
        """Convert configuration to YAML string.

        Raises:
            ImportError: If PyYAML is not installed.
        """
        if not YAML_AVAILABLE:
            raise ImportError("PyYAML is required to export to YAML. Install with: pip install pyyaml")
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)


def is_config_source(value: Any) -> bool:
    """Check whether a leading argument is configuration rather than an expression.

    ``EvaluationConfig`` instances always are; mappings are when they carry at
    least one recognised option key. Everything else is an expression.
    """
    if isinstance(value, EvaluationConfig):
        return True
    if isinstance(value, Mapping):
        return any(key in OPTION_KEYS for key in value.keys() if isinstance(key, str))
    return False
