# Auto-save scheduling module

from .scheduler import AUTO_SAVE_DESCRIPTION, AutoSaveScheduler

__all__ = ["AutoSaveScheduler", "AUTO_SAVE_DESCRIPTION"]
