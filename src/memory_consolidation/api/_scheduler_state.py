"""
Scheduler state management for API integration.

Provides singleton access to the ConsolidationScheduler instance.
Initialized during FastAPI lifespan; the cron timer is only armed on
startup when CONSOLIDATION_AUTOSTART=true.

Usage:
    from ._scheduler_state import get_scheduler, init_scheduler

    # In lifespan (or tests):
    init_scheduler(engine, {"cron_expression": "0 3 * * *"})

    # In routers:
    scheduler = get_scheduler()
"""

import logging
import os
from typing import Any, Mapping, Optional

from memory_consolidation.scheduler import (
    ConsolidationEngine,
    ConsolidationScheduler,
    config_from_env,
    load_engine,
)
from memory_consolidation.scheduler.service import UserProvider


logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: Optional[ConsolidationScheduler] = None


def init_scheduler(
    engine: ConsolidationEngine,
    config: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> ConsolidationScheduler:
    """
    Initialize the scheduler singleton.

    Does NOT start the scheduler; POST /scheduler/start (or autostart)
    arms the timer.

    Args:
        engine: Consolidation engine
        config: Partial scheduler configuration
        **kwargs: Passed to ConsolidationScheduler (admission, user_provider, clock)

    Returns:
        Initialized ConsolidationScheduler (the existing one if already set)
    """
    global _scheduler

    if _scheduler is not None:
        return _scheduler

    _scheduler = ConsolidationScheduler(engine, config, **kwargs)
    return _scheduler


def _users_from_env(raw: str) -> UserProvider:
    user_ids = [u.strip() for u in raw.split(",") if u.strip()]
    return lambda: list(user_ids)


def init_scheduler_from_env() -> Optional[ConsolidationScheduler]:
    """
    Initialize the scheduler from environment variables.

    - CONSOLIDATION_ENGINE: ``module:attribute`` of the engine (required)
    - CONSOLIDATION_SCHEDULED_USERS: comma-separated user ids for cron runs
    - CONSOLIDATION_AUTOSTART: "true" to arm the timer immediately
    - CONSOLIDATION_* config overrides (see config_from_env)

    Must be called from a running event loop when autostart is on.

    Returns:
        The scheduler, or None when no engine is configured

    Raises:
        ConfigurationError: If the environment config is invalid
        ValueError: If the engine path is malformed
    """
    engine_path = os.getenv("CONSOLIDATION_ENGINE")
    if not engine_path:
        logger.warning("CONSOLIDATION_ENGINE not set; scheduler endpoints disabled")
        return None

    engine = load_engine(engine_path)

    user_provider = None
    users = os.getenv("CONSOLIDATION_SCHEDULED_USERS")
    if users:
        user_provider = _users_from_env(users)

    scheduler = init_scheduler(engine, config_from_env(), user_provider=user_provider)
    logger.info(f"Consolidation scheduler initialized with engine {engine_path}")

    if os.getenv("CONSOLIDATION_AUTOSTART", "false").lower() == "true":
        scheduler.start()

    return scheduler


def get_scheduler() -> ConsolidationScheduler:
    """
    Get the scheduler singleton.

    Raises:
        RuntimeError: If scheduler not initialized
    """
    if _scheduler is None:
        raise RuntimeError(
            "Consolidation scheduler not initialized. "
            "Ensure init_scheduler() is called during startup."
        )

    return _scheduler


def is_initialized() -> bool:
    return _scheduler is not None


async def shutdown_scheduler(timeout: float = 30.0) -> None:
    """
    Shutdown the scheduler.

    Called during FastAPI lifespan shutdown. Disarms the timer and waits
    for in-flight scheduled runs to finish.
    """
    global _scheduler

    if _scheduler is not None:
        await _scheduler.shutdown(timeout=timeout)
        _scheduler = None
