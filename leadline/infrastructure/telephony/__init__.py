"""Telephony provider implementations"""

from .telnyx_client import TelnyxClient

__all__ = ["TelnyxClient"]
