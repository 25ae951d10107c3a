"""Route group exports."""

from . import customers, health, staging

__all__ = ["customers", "health", "staging"]
