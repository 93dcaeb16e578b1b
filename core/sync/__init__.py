"""Incremental locale synchronisation.

This package provides the content-hash state differ and the file-level driver that keeps target
locale files in sync with the source locale.
"""

from core.sync.state_manager import StateManager
from core.sync.translator import LocaleTranslator

__all__: list[str] = ["LocaleTranslator", "StateManager"]
