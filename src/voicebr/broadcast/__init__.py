"""
Broadcast fan-out of stored recordings.
"""

__all__: list[str] = []
