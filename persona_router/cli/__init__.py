"""CLI module for persona_router."""
