"""
Client Lookup Service
Resolves a caller's number to a known client and builds the IVR greeting
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from leadline.core.config import ConfigManager
from leadline.domain.interfaces.call_store import ClientRepository
from leadline.domain.models.client import Client

logger = logging.getLogger(__name__)


@dataclass
class CallScript:
    """Fixed IVR sentences and voice parameters."""
    intro: str = "Hello! You've reached Sally with Dopa Buzz. "
    known_client: str = (
        "Hi {name}, it's great to hear from you! How can I help you today? "
        "Press 1 to speak with Richard, or press 2 to leave a message."
    )
    unknown_client: str = (
        "I don't recognize this number. Press 1 to speak with Richard about our services, "
        "or press 2 to leave a message."
    )
    transfer: str = "Transferring you to Richard now. Please hold."
    voicemail: str = "Please leave your message after the beep, and we'll get back to you shortly."
    fallback: str = "I didn't catch that. Transferring you to Richard now."
    voice: str = "female"
    language: str = "en-US"
    minimum_digits: int = 1
    maximum_digits: int = 1
    timeout_millis: int = 10000
    recording_format: str = "mp3"
    recording_channels: str = "dual"

    @classmethod
    def from_config(cls, config: ConfigManager) -> "CallScript":
        """Build from call_script.yaml, falling back to the built-in sentences."""
        defaults = cls()
        return cls(
            intro=config.get("script.greeting.intro", defaults.intro),
            known_client=config.get("script.greeting.known_client", defaults.known_client),
            unknown_client=config.get("script.greeting.unknown_client", defaults.unknown_client),
            transfer=config.get("script.transfer", defaults.transfer),
            voicemail=config.get("script.voicemail", defaults.voicemail),
            fallback=config.get("script.fallback", defaults.fallback),
            voice=config.get("voice.name", defaults.voice),
            language=config.get("voice.language", defaults.language),
            minimum_digits=int(config.get("gather.minimum_digits", defaults.minimum_digits)),
            maximum_digits=int(config.get("gather.maximum_digits", defaults.maximum_digits)),
            timeout_millis=int(config.get("gather.timeout_millis", defaults.timeout_millis)),
            recording_format=config.get("recording.format", defaults.recording_format),
            recording_channels=config.get("recording.channels", defaults.recording_channels),
        )

    def build_greeting(self, client: Optional[Client]) -> str:
        """Personalised greeting for a known client, generic otherwise."""
        if client is None:
            return self.intro + self.unknown_client
        return self.intro + self.known_client.format(name=client.display_name)


class ClientLookupService:
    """
    Caller -> client resolution for the inbound greeting.

    A miss, a timeout or a database error all yield None so the call is
    still greeted generically.
    """

    def __init__(self, clients: ClientRepository, timeout_seconds: float = 2.0):
        self._clients = clients
        self._timeout = timeout_seconds

    async def lookup(self, phone_number: Optional[str]) -> Optional[Client]:
        if not phone_number:
            return None

        try:
            client = await asyncio.wait_for(
                self._clients.find_by_phone(phone_number),
                timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Client lookup timed out after {self._timeout}s for {phone_number}")
            return None
        except Exception as e:
            logger.error(f"Client lookup failed for {phone_number}: {e}")
            return None

        if client:
            logger.info(f"Caller {phone_number} matched client {client.id}")
        else:
            logger.info(f"Caller {phone_number} not found in clients")
        return client
