"""
Persistent settings for the desktop shell
"""

from .models import Config, ConfigFormatError
from .store import ConfigStore, ConfigStoreError

__all__ = ["Config", "ConfigFormatError", "ConfigStore", "ConfigStoreError"]
