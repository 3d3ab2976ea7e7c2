"""
Settings Module.

The business settings singleton (identity, prefixes, GST rate).
"""

from invoicing_modules.settings.models import Settings
from invoicing_modules.settings.service import SettingsService

__all__ = [
    "Settings",
    "SettingsService",
]
