"""
Configuration package for the SmartMess ledger service.
"""

from smartmess.config.settings import Settings, get_settings, settings

__all__ = ['Settings', 'get_settings', 'settings']
