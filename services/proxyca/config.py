"""
Configuration management for the proxy certificate authority.

Defaults reproduce the certificates the interception proxy has always issued.
Values may be overridden from a YAML file or from PROXYCA_* environment variables.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_FILE = Path("/etc/proxyca/config.yaml")


def yaml_config_settings_source() -> dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = Path(os.environ.get("PROXYCA_CONFIG_FILE", DEFAULT_CONFIG_FILE))
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


class CertificateConfig(BaseSettings):
    """Key size and validity window for root and leaf certificates."""

    key_size: int = Field(default=2048, ge=2048, description="RSA modulus size in bits")
    backdate_days: int = Field(
        default=1,
        ge=0,
        description="Days notBefore is moved into the past (absorbs client clock skew)",
    )
    validity_days: int = Field(default=365, gt=0, description="Days from now until notAfter")


class SubjectConfig(BaseSettings):
    """Distinguished Name attributes shared by root and leaf certificates."""

    ca_common_name: str = Field(default="ProxyCA")
    # X.509 requires a two-letter code; ZZ is "unknown or unspecified".
    country: str = Field(default="ZZ", min_length=2, max_length=2)
    state: str = Field(default="Internet")
    locality: str = Field(default="Internet")
    organization: str = Field(default="ProxyCA Interception Proxy")
    ca_organizational_unit: str = Field(default="CA")
    server_organizational_unit: str = Field(
        default="ProxyCA Interception Proxy Server Certificate"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="PROXYCA_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False, description="JSON logging instead of console output")

    # Root of the certs/ and keys/ folders
    base_dir: Path = Field(
        default=Path.home() / ".proxyca",
        description="Directory holding the certs/ and keys/ folders",
    )

    issue_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Upper bound on a single leaf issuance. None waits indefinitely.",
    )

    certificates: CertificateConfig = Field(default_factory=CertificateConfig)
    subject: SubjectConfig = Field(default_factory=SubjectConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings sources: env vars override YAML config."""
        return (
            init_settings,
            env_settings,
            yaml_config_settings_source,
            dotenv_settings,
            file_secret_settings,
        )


# Global settings instance
settings = Settings()
