"""Layered configuration: YAML file, optional .env, then APP__ environment overrides."""

from __future__ import annotations

from shop_haul.config.loader import YamlConfigLoader
from shop_haul.config.models import AppConfig, ConfigLoadRequest

__all__ = ["AppConfig", "ConfigLoadRequest", "YamlConfigLoader"]
