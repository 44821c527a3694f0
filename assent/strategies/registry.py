# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Registry of provider strategies keyed by provider name.
"""
from typing import Dict, List, Type

from assent.errors import ConfigurationError
from assent.strategies.base import OAuth2Flow, Strategy
from assent.strategies.basecamp import Basecamp
from assent.strategies.github import Github
from assent.strategies.instagram import Instagram
from assent.strategies.vk import VK

_strategies: Dict[str, Type[Strategy]] = {}


def register(strategy_cls: Type[Strategy]) -> Type[Strategy]:
    """Register a strategy class under its name. Usable as a decorator."""
    if not strategy_cls.name:
        raise ConfigurationError(f"{strategy_cls.__name__} has no name")
    _strategies[strategy_cls.name] = strategy_cls
    return strategy_cls


def get_strategy(name: str) -> Strategy:
    """Instantiate the strategy registered under name.
    
    Raises:
        ConfigurationError: If no strategy is registered for name
    """
    try:
        return _strategies[name]()
    except KeyError:
        raise ConfigurationError(f"No strategy registered for provider `{name}`") from None


def get_flow(name: str) -> OAuth2Flow:
    return OAuth2Flow(get_strategy(name))


def available_providers() -> List[str]:
    return sorted(_strategies)


for _cls in (Basecamp, Github, Instagram, VK):
    register(_cls)
