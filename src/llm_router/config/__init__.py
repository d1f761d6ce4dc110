"""Configuration module"""
from .settings import Settings, get_settings
from .store import STRATEGY_KEY, StrategyStore

__all__ = ["Settings", "get_settings", "StrategyStore", "STRATEGY_KEY"]
