"""Configuration module for persona_router."""

from persona_router.config.loader import get_config_path, load_config, save_config
from persona_router.config.schema import RouterSettings, RoutingConfig

__all__ = ["RouterSettings", "RoutingConfig", "load_config", "save_config", "get_config_path"]
