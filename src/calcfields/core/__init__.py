"""Core configuration and utilities for CalcFields."""

from calcfields.core.config import settings
from calcfields.core.logging import setup_logging

__all__ = ["settings", "setup_logging"]
