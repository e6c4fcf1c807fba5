"""
Storage collaborators for contact lists and recordings.
"""

from voicebr.storage.interface import ContactsProvider, Storage
from voicebr.storage.local import LocalStorage

__all__ = ["ContactsProvider", "LocalStorage", "Storage"]
