"""
Scheduler configuration and validation.

SchedulerConfig is an immutable snapshot. Updates go through
merge_config(), which validates the merged result before anything is
replaced, so a rejected update never leaves a partially applied config.

Environment overrides (see config_from_env):
- CONSOLIDATION_CRON: cron expression (default "0 3 * * *", daily at 3 AM)
- CONSOLIDATION_ENABLED: "true" / "false"
- CONSOLIDATION_MAX_SYSTEM_LOAD: float in [0, 1]
- CONSOLIDATION_MAX_RETRY_ATTEMPTS: int >= 0
- CONSOLIDATION_BASE_RETRY_DELAY_MS: int >= 0
- CONSOLIDATION_BATCH_SIZE: int >= 1
"""

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping, Optional

from .errors import ConfigurationError


# Defaults
DEFAULT_CRON_EXPRESSION = "0 3 * * *"
DEFAULT_MAX_SYSTEM_LOAD = 0.8
DEFAULT_MAX_RETRY_ATTEMPTS = 3
DEFAULT_BASE_RETRY_DELAY_MS = 1000
DEFAULT_BATCH_SIZE = 100


@dataclass(frozen=True)
class ConsolidationConfig:
    """Engine configuration, forwarded verbatim on every engine call."""

    similarity_threshold: float = 0.75
    min_cluster_size: int = 5
    batch_size: int = DEFAULT_BATCH_SIZE
    strength_reduction_factor: float = 0.5


@dataclass(frozen=True)
class SchedulerConfig:
    """Scheduler configuration snapshot. Replaced wholesale on update."""

    cron_expression: str = DEFAULT_CRON_EXPRESSION
    enabled: bool = True
    max_system_load: float = DEFAULT_MAX_SYSTEM_LOAD
    max_retry_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS
    base_retry_delay_ms: int = DEFAULT_BASE_RETRY_DELAY_MS
    consolidation_config: ConsolidationConfig = field(default_factory=ConsolidationConfig)

    def to_dict(self) -> dict:
        """Plain-dict view, nested consolidation config included."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["consolidation_config"] = {
            f.name: getattr(self.consolidation_config, f.name)
            for f in fields(self.consolidation_config)
        }
        return data


DEFAULT_SCHEDULER_CONFIG = SchedulerConfig()

_SCHEDULER_FIELDS = {f.name for f in fields(SchedulerConfig)}
_CONSOLIDATION_FIELDS = {f.name for f in fields(ConsolidationConfig)}


# =============================================================================
# Validation
# =============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    # Whole-number floats such as 2.0 are rejected too
    return isinstance(value, int) and not isinstance(value, bool)


def validate_batch_size(batch_size: Any) -> int:
    """
    Validate a batch size.

    Raises:
        ConfigurationError: If batch_size is not an integer >= 1
    """
    if not _is_integer(batch_size) or batch_size < 1:
        raise ConfigurationError(
            "batch_size must be at least 1",
            context={"batch_size": batch_size},
        )
    return int(batch_size)


def validate_consolidation_config(config: ConsolidationConfig) -> ConsolidationConfig:
    """Validate engine configuration values the scheduler is responsible for."""
    validate_batch_size(config.batch_size)

    if not _is_integer(config.min_cluster_size) or config.min_cluster_size < 1:
        raise ConfigurationError(
            "min_cluster_size must be at least 1",
            context={"min_cluster_size": config.min_cluster_size},
        )

    for name in ("similarity_threshold", "strength_reduction_factor"):
        value = getattr(config, name)
        if not _is_number(value) or not 0 <= value <= 1:
            raise ConfigurationError(
                f"{name} must be between 0 and 1",
                context={name: value},
            )

    return config


def validate_config(config: SchedulerConfig) -> SchedulerConfig:
    """
    Validate a complete scheduler configuration.

    Returns:
        The same config, if valid

    Raises:
        ConfigurationError: On the first rejected value
    """
    if not isinstance(config.cron_expression, str) or not config.cron_expression.strip():
        raise ConfigurationError(
            "Invalid cron expression: must be a non-empty string",
            context={"cron_expression": config.cron_expression},
        )

    if not isinstance(config.enabled, bool):
        raise ConfigurationError(
            "enabled must be a boolean",
            context={"enabled": config.enabled},
        )

    if not _is_number(config.max_system_load) or not 0 <= config.max_system_load <= 1:
        raise ConfigurationError(
            "max_system_load must be between 0 and 1",
            context={"max_system_load": config.max_system_load},
        )

    if not _is_integer(config.max_retry_attempts) or config.max_retry_attempts < 0:
        raise ConfigurationError(
            "max_retry_attempts must be a non-negative integer",
            context={"max_retry_attempts": config.max_retry_attempts},
        )

    if not _is_number(config.base_retry_delay_ms) or config.base_retry_delay_ms < 0:
        raise ConfigurationError(
            "base_retry_delay_ms must be non-negative",
            context={"base_retry_delay_ms": config.base_retry_delay_ms},
        )

    if not isinstance(config.consolidation_config, ConsolidationConfig):
        raise ConfigurationError(
            "consolidation_config must be a ConsolidationConfig",
            context={"consolidation_config": config.consolidation_config},
        )
    validate_consolidation_config(config.consolidation_config)

    return config


def _merge_consolidation_config(
    current: ConsolidationConfig,
    update: Any,
) -> ConsolidationConfig:
    if isinstance(update, ConsolidationConfig):
        return update

    if not isinstance(update, Mapping):
        raise ConfigurationError(
            "consolidation_config must be a mapping or ConsolidationConfig",
            context={"consolidation_config": update},
        )

    unknown = set(update) - _CONSOLIDATION_FIELDS
    if unknown:
        raise ConfigurationError(
            f"Unknown consolidation_config keys: {', '.join(sorted(unknown))}",
            context={"unknown_keys": sorted(unknown)},
        )

    return replace(current, **dict(update))


def merge_config(
    base: SchedulerConfig,
    partial: Optional[Mapping[str, Any]] = None,
) -> SchedulerConfig:
    """
    Merge a partial configuration onto ``base`` and validate the result.

    ``consolidation_config`` may be given as a mapping, in which case it is
    merged field-by-field into the current engine config.

    Args:
        base: Current configuration (left untouched)
        partial: Field overrides

    Returns:
        A new, validated SchedulerConfig

    Raises:
        ConfigurationError: On unknown keys or rejected values
    """
    partial = dict(partial or {})

    unknown = set(partial) - _SCHEDULER_FIELDS
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            context={"unknown_keys": sorted(unknown)},
        )

    if "consolidation_config" in partial:
        partial["consolidation_config"] = _merge_consolidation_config(
            base.consolidation_config, partial["consolidation_config"]
        )

    return validate_config(replace(base, **partial))


# =============================================================================
# Environment
# =============================================================================


def _env_number(name: str, raw: str, cast):
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be a number, got {raw!r}",
            context={name: raw},
        ) from None


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> dict:
    """
    Read scheduler overrides from environment variables.

    Only variables that are set appear in the returned partial, so the
    result can be passed straight to merge_config().
    """
    env = os.environ if environ is None else environ
    partial: dict[str, Any] = {}

    cron = env.get("CONSOLIDATION_CRON")
    if cron is not None:
        partial["cron_expression"] = cron

    enabled = env.get("CONSOLIDATION_ENABLED")
    if enabled is not None:
        partial["enabled"] = enabled.strip().lower() in {"1", "true", "yes", "on"}

    raw = env.get("CONSOLIDATION_MAX_SYSTEM_LOAD")
    if raw is not None:
        partial["max_system_load"] = _env_number("CONSOLIDATION_MAX_SYSTEM_LOAD", raw, float)

    raw = env.get("CONSOLIDATION_MAX_RETRY_ATTEMPTS")
    if raw is not None:
        partial["max_retry_attempts"] = _env_number("CONSOLIDATION_MAX_RETRY_ATTEMPTS", raw, int)

    raw = env.get("CONSOLIDATION_BASE_RETRY_DELAY_MS")
    if raw is not None:
        partial["base_retry_delay_ms"] = _env_number("CONSOLIDATION_BASE_RETRY_DELAY_MS", raw, int)

    raw = env.get("CONSOLIDATION_BATCH_SIZE")
    if raw is not None:
        partial["consolidation_config"] = {
            "batch_size": _env_number("CONSOLIDATION_BATCH_SIZE", raw, int)
        }

    return partial
