"""
Configuration Management
Loads settings from environment variables and the YAML call script
"""
import yaml
import os
from pathlib import Path
from typing import Any, Dict, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # API Settings
    api_prefix: str = "/api/v1"
    public_base_url: str = "http://localhost:8000"

    # Supabase
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None

    # Telnyx Call Control
    telnyx_api_key: Optional[str] = None
    telnyx_phone_number: Optional[str] = None
    telnyx_connection_id: Optional[str] = None
    telnyx_public_key: Optional[str] = None
    telnyx_api_base_url: str = "https://api.telnyx.com/v2"
    telnyx_timeout_seconds: float = 10.0
    telnyx_signature_tolerance_seconds: int = 300

    # Human operator that "press 1" transfers to
    human_transfer_number: Optional[str] = None

    # Client lookup while building the greeting
    client_lookup_timeout_seconds: float = 2.0

    # Follow-up scheduler
    knowledge_query_url: Optional[str] = None
    scheduler_token: Optional[str] = None
    follow_up_batch_size: int = 10
    follow_up_throttle_seconds: float = 2.0
    follow_up_interval_seconds: int = 900

    # Directory holding call_script.yaml (defaults to the packaged one)
    config_dir: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def telnyx_configured(self) -> bool:
        return bool(self.telnyx_api_key)

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)

    @property
    def webhook_url(self) -> str:
        return f"{self.public_base_url.rstrip('/')}{self.api_prefix}/webhooks/telnyx"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


class ConfigManager:
    """Manages loading and merging configuration from multiple sources"""

    def __init__(self, env: str = "development", config_dir: Optional[str] = None):
        self.env = env
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent / "config"
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration files in order of precedence"""
        # Packaged call script first
        script_path = self.config_dir / "call_script.yaml"
        if script_path.exists():
            self._config = self._load_yaml(script_path)

        # Environment-specific overrides
        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            env_config = self._load_yaml(env_path)
            self._deep_merge(self._config, env_config)

        self._substitute_env_vars(self._config)

    def _load_yaml(self, path: Path) -> Dict:
        """Load YAML file"""
        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}

    def _substitute_env_vars(self, config: Dict) -> None:
        """Replace ${VAR_NAME} with environment variable values"""
        for key, value in config.items():
            if isinstance(value, dict):
                self._substitute_env_vars(value)
            elif isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                env_var = value[2:-1]
                config[key] = os.getenv(env_var, value)

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override into base"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation
        Example: config.get("script.greeting.intro")
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value
