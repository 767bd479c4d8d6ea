"""
Client Domain Model
CRM-owned record; only the attributes the call core reads are modelled.
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional, Dict, Any
from datetime import datetime


class Client(BaseModel):
    """Client (clients table)"""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    phone_number: Optional[str] = None
    payment_status: Optional[str] = None
    call_preferences: Optional[Dict[str, Any]] = None
    next_follow_up: Optional[datetime] = None
    last_call_at: Optional[datetime] = None

    @property
    def do_not_call(self) -> bool:
        """Absolute veto on outbound dialing."""
        return bool((self.call_preferences or {}).get("do_not_call"))

    @property
    def display_name(self) -> str:
        return self.name or "there"
