"""Utility functions for persona_router."""

from persona_router.utils.logging import configure_logging

__all__ = ["configure_logging"]
