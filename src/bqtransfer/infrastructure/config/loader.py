"""Configuration loading and validation."""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass, fields

from bqtransfer.domain.exceptions import ConfigurationError
from bqtransfer.domain.models import PollPolicy
from bqtransfer.domain.storage import StorageCredentials, DEFAULT_STORAGE_ENDPOINT
from bqtransfer.shared.logging import get_logger

DEFAULT_API_BASE = "https://bigquery.googleapis.com/bigquery/v2"
DEFAULT_UPLOAD_BASE = "https://bigquery.googleapis.com/upload/bigquery/v2"
DEFAULT_RESOURCE_MANAGER_BASE = "https://cloudresourcemanager.googleapis.com/v1"


@dataclass
class Settings:
    """Connection and polling settings shared by every client."""

    # Warehouse
    project_id: Optional[str] = None
    access_token: Optional[str] = None
    location: Optional[str] = None
    api_base: str = DEFAULT_API_BASE
    upload_base: str = DEFAULT_UPLOAD_BASE
    resource_manager_base: str = DEFAULT_RESOURCE_MANAGER_BASE
    request_timeout: float = 30.0

    # Object storage
    storage_endpoint: str = DEFAULT_STORAGE_ENDPOINT
    storage_key: Optional[str] = None
    storage_secret: Optional[str] = None

    # Polling
    poll_interval: float = 5.0
    poll_timeout: float = 600.0
    poll_max_attempts: Optional[int] = None
    transport_retries: int = 3
    backoff_seconds: float = 1.0

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        """Validate configuration values."""
        if self.request_timeout <= 0:
            raise ConfigurationError(f"request_timeout must be positive, got: {self.request_timeout}")

        if self.poll_interval < 0:
            raise ConfigurationError(f"poll_interval cannot be negative, got: {self.poll_interval}")

        if self.poll_timeout <= 0:
            raise ConfigurationError(f"poll_timeout must be positive, got: {self.poll_timeout}")

        if self.poll_max_attempts is not None and self.poll_max_attempts <= 0:
            raise ConfigurationError(f"poll_max_attempts must be positive, got: {self.poll_max_attempts}")

        if self.transport_retries < 0:
            raise ConfigurationError(f"transport_retries cannot be negative, got: {self.transport_retries}")

        for name in ('api_base', 'upload_base', 'resource_manager_base', 'storage_endpoint'):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.startswith(('http://', 'https://')):
                raise ConfigurationError(f"{name} must be an http(s) URL, got: {value}")

    def poll_policy(self) -> PollPolicy:
        """Wait-loop bounds derived from these settings."""
        return PollPolicy(
            interval=self.poll_interval,
            timeout=self.poll_timeout,
            max_attempts=self.poll_max_attempts,
            transport_retries=self.transport_retries,
            backoff_seconds=self.backoff_seconds,
        )

    def storage_credentials(self) -> StorageCredentials:
        return StorageCredentials(
            access_key=self.storage_key or '',
            secret_key=self.storage_secret or '',
            endpoint=self.storage_endpoint,
        )


class ConfigLoader:
    """Loads and validates configuration from YAML files and environment variables."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize config loader.

        Args:
            config_path: Optional path to YAML config file
        """
        self.config_path = config_path or Path("bqtransfer.yaml")
        self._logger = get_logger(__name__)

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> Settings:
        """
        Load configuration from file and environment.

        Precedence: overrides > environment > config file > defaults.

        Returns:
            Settings instance

        Raises:
            ConfigurationError: If configuration is invalid
        """
        config_dict: Dict[str, Any] = {}

        if self.config_path.exists():
            self._logger.info(f"Loading config from {self.config_path}")
            try:
                with open(self.config_path, 'r') as f:
                    yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e
            if not isinstance(yaml_config, dict):
                raise ConfigurationError(f"Config file {self.config_path} must contain a mapping")
            config_dict.update(yaml_config)
        else:
            self._logger.debug(f"Config file not found: {self.config_path}")

        config_dict.update(self._load_from_env())

        if overrides:
            for k, v in overrides.items():
                if v is None:
                    continue
                config_dict[k] = v

        valid_fields = {f.name for f in fields(Settings)}
        unknown = sorted(k for k in config_dict if k not in valid_fields)
        if unknown:
            self._logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        filtered_config = {k: v for k, v in config_dict.items() if k in valid_fields}

        try:
            return Settings(**filtered_config)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config: Dict[str, Any] = {}

        # Warehouse
        if project := os.getenv("GCLOUD_PROJECT") or os.getenv("GOOGLE_CLOUD_PROJECT"):
            env_config["project_id"] = project

        if token := os.getenv("BIGQUERY_ACCESS_TOKEN"):
            env_config["access_token"] = token

        if location := os.getenv("BIGQUERY_LOCATION"):
            env_config["location"] = location

        if api_base := os.getenv("BIGQUERY_API_BASE"):
            env_config["api_base"] = api_base

        if upload_base := os.getenv("BIGQUERY_UPLOAD_BASE"):
            env_config["upload_base"] = upload_base

        # Object storage
        if endpoint := os.getenv("GCS_ENDPOINT"):
            env_config["storage_endpoint"] = endpoint

        if key := os.getenv("GCS_HMAC_KEY"):
            env_config["storage_key"] = key

        if secret := os.getenv("GCS_HMAC_SECRET"):
            env_config["storage_secret"] = secret

        # Polling
        self._read_number(env_config, "POLL_INTERVAL", "poll_interval", float)
        self._read_number(env_config, "POLL_TIMEOUT", "poll_timeout", float)
        self._read_number(env_config, "POLL_MAX_ATTEMPTS", "poll_max_attempts", int)
        self._read_number(env_config, "POLL_TRANSPORT_RETRIES", "transport_retries", int)

        return env_config

    def _read_number(self, env_config: Dict[str, Any], env_name: str, key: str, cast) -> None:
        raw = os.getenv(env_name)
        if not raw:
            return
        try:
            env_config[key] = cast(raw)
        except ValueError:
            self._logger.warning(f"Invalid {env_name} value: {raw}")
