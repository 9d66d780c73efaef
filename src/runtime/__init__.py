"""
Settings and service construction.
"""

from .config import Settings
from .container import Services, build_services

__all__ = ["Services", "Settings", "build_services"]
