"""
Configuration modules for the terrain engine.
"""

from .config import Settings, settings

__all__ = ['Settings', 'settings']
