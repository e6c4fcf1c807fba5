"""
voicebr: record a voice message on an inbound call and broadcast it
as rate-limited outbound calls.
"""

__version__ = "0.1.0"
