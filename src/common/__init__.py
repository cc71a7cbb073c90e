# Common utilities and shared modules
"""
Shared components used by the engine, marketplace and pricer packages:
- Data models (Pydantic schemas)
- Exceptions
- Logging configuration
- Project configuration
"""

from .config import settings, PROJECT_ROOT, DATA_DIR
from .logging import setup_logging

__all__ = [
    "settings",
    "PROJECT_ROOT",
    "DATA_DIR",
    "setup_logging",
]
