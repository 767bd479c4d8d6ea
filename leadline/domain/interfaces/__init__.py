"""Domain interfaces (ports)"""

from .call_store import CallStore, ClientRepository
from .telephony_provider import ActionResult, DialResult, TelephonyProvider

__all__ = [
    "CallStore",
    "ClientRepository",
    "ActionResult",
    "DialResult",
    "TelephonyProvider",
]
