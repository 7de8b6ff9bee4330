# safe_harbor/service/config.py

"""Application configuration using Pydantic Settings.

Manages environment variables, defaults, and validation rules for the
engine itself (``SAFE_HARBOR_`` prefix) and for the HIPAA operational
safeguards checked by the compliance validator (``HIPAA_`` prefix).
"""

import logging
import threading
from typing import Any, FrozenSet, List, Optional

from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from safe_harbor.core.definitions import IdentifierCategory
from safe_harbor.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Engine settings.

    Loads values from environment variables (prefix 'SAFE_HARBOR_') or .env file.
    List values are read from the environment as JSON arrays.
    """

    model_config = SettingsConfigDict(
        env_prefix="SAFE_HARBOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Root logging level.")

    protected_fields: List[str] = Field(
        default_factory=lambda: ["clinicalContext", "transcript", "clinicalQuestion"],
        description="Payload fields whose text is redacted before forwarding.",
    )

    image_field: str = Field(
        default="image", description="Payload field holding a base64 image."
    )

    fail_closed_categories: List[str] = Field(
        default_factory=list,
        description=(
            "Category names (e.g. SSN) whose rule failures withhold the field "
            "instead of forwarding a partially redacted text."
        ),
    )

    audit_action: str = Field(
        default="PHI_REDACTION", description="Audit action recorded by protect()."
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure the level is one the logging module knows."""
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got '{v}'")
        return level

    @field_validator("protected_fields")
    @classmethod
    def validate_protected_fields(cls, v: List[str]) -> List[str]:
        """Ensure at least one field is protected."""
        fields = [f.strip() for f in v if f and f.strip()]
        if not fields:
            raise ValueError("protected_fields cannot be empty")
        return fields

    @field_validator("fail_closed_categories")
    @classmethod
    def validate_fail_closed_categories(cls, v: List[str]) -> List[str]:
        """Ensure every entry names an IdentifierCategory member."""
        names = [c.strip().upper() for c in v if c and c.strip()]
        unknown = [n for n in names if n not in IdentifierCategory.__members__]
        if unknown:
            raise ValueError(f"Unknown identifier categories: {unknown}")
        return names

    @property
    def fail_closed(self) -> FrozenSet[IdentifierCategory]:
        return frozenset(IdentifierCategory[n] for n in self.fail_closed_categories)


class ComplianceConfig(BaseSettings):
    """Operational safeguards evaluated by the compliance validator.

    Loads values from environment variables (prefix 'HIPAA_'). Instances are
    frozen; runtime changes go through ComplianceConfigStore, which swaps in
    a new snapshot.
    """

    model_config = SettingsConfigDict(
        env_prefix="HIPAA_",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    phi_redaction_enabled: bool = True
    baa_acknowledged: bool = False
    https_enforced: bool = False
    audit_logging_enabled: bool = True
    access_controls_enabled: bool = False
    encryption_at_rest: bool = False
    data_retention_policy: Optional[str] = None
    require_user_consent: bool = True

    @field_validator("data_retention_policy", mode="before")
    @classmethod
    def coerce_retention_policy(cls, v: Any) -> Optional[str]:
        """Accept numbers (days) and treat blank strings as unset."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class ComplianceConfigStore:
    """Holder of the process-wide ComplianceConfig snapshot.

    Readers get the current immutable snapshot without locking. Writers
    build a complete new snapshot under a single-writer lock and swap the
    reference, so readers never observe a partially updated config.
    """

    _instance: Optional["ComplianceConfigStore"] = None
    _instance_lock = threading.Lock()

    def __init__(self, initial: Optional[ComplianceConfig] = None) -> None:
        self._config = initial if initial is not None else ComplianceConfig()
        self._write_lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> "ComplianceConfigStore":
        """Returns the singleton store, loading the config from the environment once."""
        if cls._instance is None:
            with cls._instance_lock:
                # Double-checked locking pattern
                if cls._instance is None:
                    cls._instance = cls()
                    logger.info("Compliance configuration loaded from environment")
        return cls._instance

    def get(self) -> ComplianceConfig:
        return self._config

    def update(self, **changes: Any) -> ComplianceConfig:
        """Applies an admin change and swaps in the new snapshot.

        Raises:
            ConfigurationError: On unknown fields or invalid values; the
                current snapshot is left untouched.
        """
        unknown = sorted(set(changes) - set(ComplianceConfig.model_fields))
        if unknown:
            raise ConfigurationError(f"Unknown compliance settings: {unknown}")

        with self._write_lock:
            merged = {**self._config.model_dump(), **changes}
            try:
                snapshot = ComplianceConfig(**merged)
            except PydanticValidationError as e:
                logger.error("Rejected compliance configuration update")
                raise ConfigurationError(f"Invalid compliance settings: {e}") from e
            self._config = snapshot

        logger.info(
            "Compliance configuration updated",
            extra={"changed_fields": sorted(changes)},
        )
        return snapshot

    def replace(self, config: ComplianceConfig) -> ComplianceConfig:
        """Swaps in a fully built snapshot."""
        if not isinstance(config, ComplianceConfig):
            raise ConfigurationError("replace() expects a ComplianceConfig")
        with self._write_lock:
            self._config = config
        logger.info("Compliance configuration replaced")
        return config


# Singleton settings instance
settings = Settings()
