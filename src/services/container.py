"""
Service Container - Dependency Injection Container

Simple DI container for the progression engine's components.
Uses lazy loading to only instantiate components when first accessed; all of
them share one store, one clock and one level curve.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from src.config import validate_config
from src.db.store import ProgressionStore
from src.utils.datetime_helpers import Clock, now_utc

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Components are lazy-loaded on first access via properties.
    Infrastructure dependencies (store, clock) are injected.
    """

    # Infrastructure dependencies (injected)
    store: ProgressionStore
    clock: Clock = now_utc

    # Components (lazy-loaded via properties)
    _curve: Optional[object] = field(default=None, init=False, repr=False)
    _debuff_policy: Optional[object] = field(default=None, init=False, repr=False)
    _rotating_selector: Optional[object] = field(default=None, init=False, repr=False)
    _quest_lifecycle: Optional[object] = field(default=None, init=False, repr=False)
    _progression_service: Optional[object] = field(default=None, init=False, repr=False)
    _day_rollover_job: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def curve(self):
        """Get the shared LevelCurve (lazy-loaded)"""
        if self._curve is None:
            from src.gamification.level_curve import LevelCurve
            self._curve = LevelCurve()
            logger.debug("LevelCurve instantiated")
        return self._curve

    @property
    def debuff_policy(self):
        """Get DebuffPolicy instance (lazy-loaded)"""
        if self._debuff_policy is None:
            from src.gamification.debuff import DebuffPolicy
            self._debuff_policy = DebuffPolicy(self.store, clock=self.clock)
            logger.debug("DebuffPolicy instantiated")
        return self._debuff_policy

    @property
    def rotating_selector(self):
        """Get RotatingQuestSelector instance (lazy-loaded)"""
        if self._rotating_selector is None:
            from src.gamification.rotating_quests import RotatingQuestSelector
            self._rotating_selector = RotatingQuestSelector()
            logger.debug("RotatingQuestSelector instantiated")
        return self._rotating_selector

    @property
    def quest_lifecycle(self):
        """Get QuestLifecycle instance (lazy-loaded)"""
        if self._quest_lifecycle is None:
            from src.gamification.quest_lifecycle import QuestLifecycle
            self._quest_lifecycle = QuestLifecycle(
                self.store,
                self.curve,
                self.debuff_policy,
                clock=self.clock
            )
            logger.debug("QuestLifecycle instantiated")
        return self._quest_lifecycle

    @property
    def progression_service(self):
        """Get ProgressionService instance (lazy-loaded)"""
        if self._progression_service is None:
            from src.services.progression_service import ProgressionService
            self._progression_service = ProgressionService(
                self.store,
                self.curve,
                self.debuff_policy,
                self.rotating_selector,
                self.quest_lifecycle,
                clock=self.clock
            )
            logger.debug("ProgressionService instantiated")
        return self._progression_service

    @property
    def day_rollover_job(self):
        """Get DayRolloverJob instance (lazy-loaded)"""
        if self._day_rollover_job is None:
            from src.scheduler.day_rollover import DayRolloverJob
            self._day_rollover_job = DayRolloverJob(
                self.store,
                self.quest_lifecycle,
                self.debuff_policy,
                clock=self.clock
            )
            logger.debug("DayRolloverJob instantiated")
        return self._day_rollover_job


# Global container instance (initialized at startup)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Returns:
        ServiceContainer: The global container instance

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() at startup before using services."
        )
    return _container


def init_container(store: ProgressionStore, clock: Clock = now_utc) -> ServiceContainer:
    """
    Initialize the global service container.

    Should be called once at startup after the store is set up. Configuration
    is validated first, so bad settings fail before any component is built.

    Args:
        store: Progression store instance
        clock: Current time source (tests pass a fixed clock)

    Returns:
        ServiceContainer: The initialized container

    Raises:
        ConfigurationError: A setting is out of range
    """
    global _container

    validate_config()
    _container = ServiceContainer(store=store, clock=clock)

    logger.info("Service container initialized")
    return _container


def reset_container() -> None:
    """Drop the global container (used between tests)"""
    global _container
    _container = None
