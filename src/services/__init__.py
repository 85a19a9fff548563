"""
Service Layer Package

This package contains the progression service facade and the container that
wires it to the store, the clock and the gamification components.

Core Services:
- ProgressionService: Level progress, debuffs, daily quests, quest mutations, XP timeline
"""

from src.services.container import ServiceContainer, get_container, init_container, reset_container
from src.services.progression_service import ProgressionService

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
    "reset_container",
    "ProgressionService",
]
