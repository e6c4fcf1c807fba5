"""
Contact directories: whitelist and broadcast list.
"""

from voicebr.contacts.directory import ContactDirectory, RejectedRow, decode_contacts, load_directory
from voicebr.contacts.models import PHONE, Contact

__all__ = [
    "PHONE",
    "Contact",
    "ContactDirectory",
    "RejectedRow",
    "decode_contacts",
    "load_directory",
]
