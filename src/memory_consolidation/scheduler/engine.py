"""
Consolidation engine boundary.

The engine does the actual clustering and summarisation; the scheduler
only calls ``run_consolidation`` and treats it as opaque. Any exception is
retryable; any return value (even an empty list) is success.
"""

import importlib
import inspect
from typing import Any, Protocol, runtime_checkable

from .config import ConsolidationConfig
from .entities import ConsolidationResult


@runtime_checkable
class ConsolidationEngine(Protocol):
    """Protocol for the consolidation engine."""

    async def run_consolidation(
        self,
        user_id: str,
        config: ConsolidationConfig,
    ) -> list[ConsolidationResult]:
        """
        Consolidate a user's memories.

        Args:
            user_id: Owner of the memories
            config: Engine configuration, batch_size included

        Returns:
            One result per consolidated cluster
        """
        ...


def load_engine(path: str) -> Any:
    """
    Load an engine from a ``module:attribute`` import path.

    If the attribute is a class or other zero-argument factory it is
    called; otherwise the attribute itself is the engine.

    Raises:
        ValueError: If the path is malformed or the target has no
            run_consolidation method
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Engine path must look like 'module:attribute', got {path!r}")

    target = getattr(importlib.import_module(module_name), attr)
    engine = target
    if inspect.isclass(target) or (callable(target) and not hasattr(target, "run_consolidation")):
        engine = target()

    if not callable(getattr(engine, "run_consolidation", None)):
        raise ValueError(f"{path!r} does not provide run_consolidation()")
    return engine
