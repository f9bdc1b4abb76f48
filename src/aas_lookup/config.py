"""Configuration models for the AAS lookup service."""

from pathlib import Path
from typing import Literal, Self

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DiscoveryConfig(BaseModel):
    """AAS discovery service connection."""

    base_url: str = "http://aas-discovery-service:8081"


class RegistryConfig(BaseModel):
    """AAS shell registry connection."""

    base_url: str = "http://aas-registry-v3:8080/api/v3.0"


class EnvironmentConfig(BaseModel):
    """AAS environment (repository) connection."""

    base_url: str = "http://aas-environment-v3:8081"
    """Internally reachable base URL of the environment service."""

    advertised_url: str = "http://localhost:8082"
    """Base URL written into registry descriptors during registration."""

    endpoint_rewrites: dict[str, str] = Field(
        default_factory=lambda: {"localhost:8082": "aas-environment-v3:8081"}
    )
    """Externally advertised host:port -> internally reachable host:port."""

    @field_validator("endpoint_rewrites")
    @classmethod
    def reject_empty_hosts(cls, value: dict[str, str]) -> dict[str, str]:
        for external, internal in value.items():
            if not external or not internal:
                raise ValueError("endpoint rewrite entries must not be empty")
        return value


class HttpConfig(BaseModel):
    """Outbound HTTP settings shared by all collaborator clients."""

    timeout_seconds: float = 30.0
    auth_token: SecretStr | None = None


class MatchingConfig(BaseModel):
    """Match orchestration settings."""

    workers: int = Field(default=1, ge=1, le=64)
    """Participant fetches issued in parallel; 1 keeps fetching sequential."""

    deadline_seconds: float = Field(default=60.0, gt=0)
    """Upper bound for one whole match request."""


class RegistrationConfig(BaseModel):
    """Shell descriptor defaults used when registering uploaded environments."""

    interface: str = "https://admin-shell.io/aas/API/3/0/AasServiceSpecification/SSP-003"
    endpoint_protocol: str = "HTTP"
    subprotocol: str = "AAS"
    description_language: str = "en-US"
    description: str = (
        "Standardized digital representation of the asset. It holds digital models of "
        "various aspects (submodels) and describes technical functionality exposed by them."
    )


class ServerConfig(BaseModel):
    """HTTP API server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"
    metrics_port: int = 9090
    health_port: int = 8080
    metrics_enabled: bool = True


class ServiceConfig(BaseModel):
    """Root configuration for the AAS lookup service."""

    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    registration: RegistrationConfig = Field(default_factory=RegistrationConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @model_validator(mode="after")
    def strip_trailing_slashes(self) -> Self:
        """Normalize collaborator base URLs so path joins stay predictable."""
        self.discovery.base_url = self.discovery.base_url.rstrip("/")
        self.registry.base_url = self.registry.base_url.rstrip("/")
        self.environment.base_url = self.environment.base_url.rstrip("/")
        self.environment.advertised_url = self.environment.advertised_url.rstrip("/")
        return self

    @classmethod
    def from_yaml(cls, path: Path) -> "ServiceConfig":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})


class ServiceSettings(BaseSettings):
    """Environment-based settings that override config file values."""

    model_config = SettingsConfigDict(
        env_prefix="AAS_LOOKUP_",
        env_nested_delimiter="__",
    )

    config_file: Path = Path("config/config.yaml")


def load_config(settings: ServiceSettings | None = None) -> ServiceConfig:
    """Load configuration from file, with environment overrides."""
    if settings is None:
        settings = ServiceSettings()

    if settings.config_file.exists():
        return ServiceConfig.from_yaml(settings.config_file)
    return ServiceConfig()
