"""Route blueprints exposed via Flask."""

from .media import media_bp
from .health import health_bp

__all__ = [
    "media_bp",
    "health_bp",
]
