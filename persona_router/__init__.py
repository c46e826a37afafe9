"""persona-router: intent routing between specialised assistant personas."""

__version__ = "0.1.0"
__logo__ = "🧭"
