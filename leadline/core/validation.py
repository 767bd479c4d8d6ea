"""
Provider Validation Module
Validates provider configurations on startup
"""
import logging
from typing import List, Optional, Tuple
from dataclasses import dataclass

from leadline.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a configuration validation check."""
    provider: str
    setting: str
    is_valid: bool
    message: str


class ProviderValidator:
    """
    Validates provider configurations at startup.

    Ensures the Supabase and Telnyx settings the call core depends on are
    present before the application starts accepting webhooks.
    """

    # (settings attribute, env var, description)
    REQUIRED_SETTINGS = {
        "database": [
            ("supabase_url", "SUPABASE_URL", "Supabase database"),
            ("supabase_service_key", "SUPABASE_SERVICE_KEY", "Supabase database"),
        ],
        "telephony": [
            ("telnyx_api_key", "TELNYX_API_KEY", "Telnyx Call Control"),
            ("telnyx_phone_number", "TELNYX_PHONE_NUMBER", "Telnyx outbound caller ID"),
            ("telnyx_connection_id", "TELNYX_CONNECTION_ID", "Telnyx outbound connection"),
        ],
    }

    OPTIONAL_SETTINGS = {
        "telephony": [
            ("human_transfer_number", "HUMAN_TRANSFER_NUMBER", "Human transfer number"),
            ("telnyx_public_key", "TELNYX_PUBLIC_KEY", "Telnyx webhook signature key"),
        ],
        "scheduler": [
            ("knowledge_query_url", "KNOWLEDGE_QUERY_URL", "Knowledge lookup for follow-up context"),
        ],
    }

    def __init__(self, settings: Settings, strict: bool = False):
        """
        Initialize validator.

        Args:
            settings: Settings to validate
            strict: If True, treat warnings as errors
        """
        self.settings = settings
        self.strict = strict
        self.results: List[ValidationResult] = []

    def validate_all(self) -> Tuple[bool, List[ValidationResult]]:
        """
        Validate all provider configurations.

        Returns:
            Tuple of (all_valid, list of results)
        """
        self.results = []

        for provider, entries in self.REQUIRED_SETTINGS.items():
            for attr, env_var, description in entries:
                if not getattr(self.settings, attr, None):
                    self._add_error(provider, env_var,
                        f"{description} requires {env_var} to be set")
                else:
                    self._add_success(provider, env_var, f"{description} configured")

        for provider, entries in self.OPTIONAL_SETTINGS.items():
            for attr, env_var, description in entries:
                if not getattr(self.settings, attr, None):
                    self._add_warning(provider, env_var,
                        f"{description} not configured (optional)")
                else:
                    self._add_success(provider, env_var, f"{description} configured")

        errors = [r for r in self.results if not r.is_valid]
        return len(errors) == 0, self.results

    def _add_success(self, provider: str, setting: str, message: str):
        self.results.append(ValidationResult(
            provider=provider,
            setting=setting,
            is_valid=True,
            message=message
        ))

    def _add_error(self, provider: str, setting: str, message: str):
        self.results.append(ValidationResult(
            provider=provider,
            setting=setting,
            is_valid=False,
            message=message
        ))

    def _add_warning(self, provider: str, setting: str, message: str):
        self.results.append(ValidationResult(
            provider=provider,
            setting=setting,
            is_valid=not self.strict,  # Warnings become errors in strict mode
            message=f"WARNING: {message}"
        ))

    def log_results(self):
        """Log all validation results."""
        errors = [r for r in self.results if not r.is_valid]
        warnings = [r for r in self.results if r.is_valid and "WARNING" in r.message]
        successes = [r for r in self.results if r.is_valid and "WARNING" not in r.message]

        if successes:
            logger.info("Provider configuration validated:")
            for r in successes:
                logger.info(f"  [{r.provider}] {r.message}")

        for r in warnings:
            logger.warning(f"  [{r.provider}] {r.message}")

        if errors:
            logger.error("Provider configuration errors:")
            for r in errors:
                logger.error(f"  [{r.provider}] {r.message}")

    def get_error_summary(self) -> Optional[str]:
        """Get summary of errors for exception message."""
        errors = [r for r in self.results if not r.is_valid]
        if not errors:
            return None

        lines = ["Provider configuration errors:"]
        for r in errors:
            lines.append(f"  - {r.setting}: {r.message}")
        return "\n".join(lines)


def validate_providers_on_startup(settings: Settings, strict: bool = False) -> None:
    """
    Validate all providers at startup.

    Raises:
        RuntimeError: If required configuration is missing
    """
    validator = ProviderValidator(settings, strict=strict)
    all_valid, _ = validator.validate_all()
    validator.log_results()

    if not all_valid:
        raise RuntimeError(validator.get_error_summary())

    logger.info("All provider configurations validated successfully")
