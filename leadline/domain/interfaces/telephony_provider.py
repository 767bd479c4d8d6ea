"""
Telephony Provider Interface
Abstract base class for call-control providers
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ActionResult:
    """Outcome of one call-control action."""
    action: str
    status_code: int
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass
class DialResult:
    """Identifiers assigned to an originated call."""
    call_control_id: str
    call_session_id: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None


class TelephonyProvider(ABC):
    """
    Abstract base class for telephony providers.

    Every action is addressed by the provider call identifier. Implementations
    raise ProviderAPIError on non-2xx responses and transport failures.
    """

    @abstractmethod
    async def answer(self, call_control_id: str) -> ActionResult:
        pass

    @abstractmethod
    async def speak(
        self,
        call_control_id: str,
        text: str,
        voice: str = "female",
        language: str = "en-US"
    ) -> ActionResult:
        pass

    @abstractmethod
    async def gather_using_speak(
        self,
        call_control_id: str,
        prompt: str,
        voice: str = "female",
        language: str = "en-US",
        minimum_digits: int = 1,
        maximum_digits: int = 1,
        timeout_millis: int = 10000
    ) -> ActionResult:
        """Play a prompt and collect keypad digits."""
        pass

    @abstractmethod
    async def transfer(self, call_control_id: str, to_number: str) -> ActionResult:
        pass

    @abstractmethod
    async def record_start(
        self,
        call_control_id: str,
        channels: str = "dual",
        audio_format: str = "mp3"
    ) -> ActionResult:
        pass

    @abstractmethod
    async def record_stop(self, call_control_id: str) -> ActionResult:
        pass

    @abstractmethod
    async def hangup(self, call_control_id: str) -> ActionResult:
        pass

    @abstractmethod
    async def dial(
        self,
        to_number: str,
        from_number: str,
        connection_id: str,
        webhook_url: str
    ) -> DialResult:
        """Originate an outbound call (recorded from answer)."""
        pass

    @abstractmethod
    async def get_balance(self) -> Dict[str, Any]:
        """Account balance; doubles as a connectivity probe."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name"""
        pass
