"""Configuration management for the telemetry acquisition layer."""

import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from dctelemetry.models.data_models import FetchPolicy


class EndpointConfig(BaseModel):
    """Configuration for a single upstream API endpoint."""
    name: str = Field(description="Data set served by the endpoint (racks, sensors)")
    url: Optional[str] = Field(default=None, description="Full URL to the endpoint")

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate URL format."""
        if v is not None and not v.startswith(('http://', 'https://')):
            raise ValueError(f"URL must start with http:// or https://, got: {v}")
        return v


class AcquisitionConfig(BaseModel):
    """Acquisition-layer configuration."""

    # Circuit breaker
    circuit_breaker_failure_threshold: int = Field(default=3, description="Failures before opening circuit")
    circuit_breaker_reset_timeout: float = Field(default=30.0, description="Seconds an open circuit waits before a probe")

    # Retry policy
    retries: int = Field(default=3, description="Retries after the first attempt")
    retry_delay: float = Field(default=1.0, description="Base delay for exponential backoff in seconds")
    retry_jitter_max: float = Field(default=0.3, description="Maximum positive jitter as a fraction of the delay")
    use_mock_on_fail: bool = Field(default=False, description="Serve the default dataset when every source fails")
    use_circuit_breaker: bool = Field(default=True, description="Consult the circuit breaker before fetching")

    # Pagination
    use_pagination: bool = Field(default=True, description="Paginate page-able (OData-style) URLs")
    page_size: int = Field(default=50, description="Records requested per page")
    max_pages: int = Field(default=20, description="Safety cap on pages per fetch")
    page_delay: float = Field(default=0.3, description="Pause between page requests in seconds")

    # Timeouts
    fetch_timeout: float = Field(default=10.0, description="Per-attempt data fetch timeout in seconds")
    probe_timeout: float = Field(default=5.0, description="Reachability probe timeout in seconds")
    diagnose_timeout: float = Field(default=10.0, description="Diagnosis request timeout in seconds")
    slow_response_threshold: float = Field(default=5.0, description="Latency flagged as slow by diagnostics")

    # Authentication
    api_key: Optional[str] = Field(default=None, description="Bearer token sent to remote APIs")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Output
    output_directory: str = Field(default="out", description="Output directory for snapshots")
    output_filename: str = Field(default="telemetry.json", description="Output JSON filename")

    endpoints: List[EndpointConfig] = Field(
        default=[
            EndpointConfig(name="racks", url="http://localhost:8001/odata/racks?$orderby=NAME"),
            EndpointConfig(name="sensors", url="http://localhost:8002/sensors"),
        ],
        description="Remote APIs used as fallback behind the primary store"
    )

    @field_validator('circuit_breaker_failure_threshold', 'page_size', 'max_pages')
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"value must be positive, got: {v}")
        return v

    @field_validator('retries')
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"retries must not be negative, got: {v}")
        return v

    @field_validator('fetch_timeout', 'probe_timeout', 'diagnose_timeout')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout must be positive, got: {v}")
        return v

    @property
    def output_path(self) -> Path:
        """Get full output file path."""
        return Path(self.output_directory) / self.output_filename

    def endpoint_url(self, name: str) -> Optional[str]:
        """URL configured for the named endpoint, if any."""
        for endpoint in self.endpoints:
            if endpoint.name == name:
                return endpoint.url
        return None

    def fetch_policy(self) -> FetchPolicy:
        """Default fetch policy derived from this configuration."""
        return FetchPolicy(
            retries=self.retries,
            retry_delay=self.retry_delay,
            use_mock_on_fail=self.use_mock_on_fail,
            use_circuit_breaker=self.use_circuit_breaker,
            use_pagination=self.use_pagination,
            page_size=self.page_size,
        )

    @classmethod
    def from_env(cls) -> "AcquisitionConfig":
        """Create configuration with environment variable overrides."""
        config = cls()

        env_mappings = {
            "API_KEY": "api_key",
            "DCT_LOG_LEVEL": "log_level",
            "DCT_RETRIES": "retries",
            "DCT_RETRY_DELAY": "retry_delay",
            "DCT_PAGE_SIZE": "page_size",
            "DCT_FETCH_TIMEOUT": "fetch_timeout",
            "DCT_PROBE_TIMEOUT": "probe_timeout",
            "DCT_RESET_TIMEOUT": "circuit_breaker_reset_timeout",
        }

        for env_var, field_name in env_mappings.items():
            if env_var in os.environ:
                value = os.environ[env_var]
                field_info = cls.model_fields[field_name]
                if field_info.annotation == int:
                    setattr(config, field_name, int(value))
                elif field_info.annotation == float:
                    setattr(config, field_name, float(value))
                else:
                    setattr(config, field_name, value)

        config.endpoints = apply_endpoint_env(config.endpoints)

        return config


# API1_URL serves rack power, API2_URL serves sensor readings
ENDPOINT_URL_ENV = {"API1_URL": "racks", "API2_URL": "sensors"}


def apply_endpoint_env(endpoints: List[EndpointConfig]) -> List[EndpointConfig]:
    """Copy of endpoints with URLs replaced by the set API*_URL variables."""
    endpoints = [endpoint.model_copy() for endpoint in endpoints]
    for env_var, name in ENDPOINT_URL_ENV.items():
        if env_var in os.environ:
            for endpoint in endpoints:
                if endpoint.name == name:
                    endpoint.url = os.environ[env_var] or None
    return endpoints


class ConfigManager:
    """Manages configuration loading with override precedence."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or Path("config/config.yaml")
        self._config: Optional[AcquisitionConfig] = None

    def load_config(self, cli_overrides: Optional[Dict] = None) -> AcquisitionConfig:
        """
        Load configuration with override precedence: CLI > ENV > YAML.

        Args:
            cli_overrides: Optional dictionary of CLI flag overrides

        Returns:
            Fully merged AcquisitionConfig instance

        Raises:
            ValueError: If configuration validation fails
        """
        config_dict = {}

        if self.config_file.exists():
            with open(self.config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
                if yaml_config:
                    if 'endpoints' in yaml_config:
                        yaml_config['endpoints'] = [
                            EndpointConfig(**ep) if isinstance(ep, dict) else ep
                            for ep in yaml_config['endpoints']
                        ]
                    config_dict.update(yaml_config)

        base_config = AcquisitionConfig(**config_dict)

        env_config = AcquisitionConfig.from_env()

        merged_dict = base_config.model_dump()
        env_dict = env_config.model_dump()

        # Only override with env values that differ from defaults
        default_dict = AcquisitionConfig().model_dump()
        for key, value in env_dict.items():
            if key != 'endpoints' and value != default_dict[key]:
                merged_dict[key] = value

        # Endpoint URLs from the environment apply one by one over the YAML list
        merged_dict['endpoints'] = [
            endpoint.model_dump() for endpoint in apply_endpoint_env(base_config.endpoints)
        ]

        if cli_overrides:
            cli_overrides = {k: v for k, v in cli_overrides.items() if v is not None}
            merged_dict.update(cli_overrides)

        self._config = AcquisitionConfig(**merged_dict)
        return self._config

    @property
    def config(self) -> AcquisitionConfig:
        """Get the loaded configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config
