"""
Configuration Management for the Savings Ledger Core

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Key derivation material is configuration, not code.
The defaults are the values every existing envelope was written with,
so a fresh install can still read old rows. Rotating them is a policy
decision made by whoever deploys the core.
"""

from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Historical key material. Changing these makes existing envelopes
# undecodable (they will degrade to 0 or to their legacy plain value).
LEGACY_PASSPHRASE = "SPARIFY_SECURE_KEY_v1"
LEGACY_SALT = "SPARIFY_SALT"


class CodecSettings(BaseSettings):
    """Amount envelope encryption configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_CODEC_",
        extra="ignore"
    )

    passphrase: SecretStr = Field(
        default=SecretStr(LEGACY_PASSPHRASE),
        description="Passphrase the envelope key is derived from"
    )
    salt: SecretStr = Field(
        default=SecretStr(LEGACY_SALT),
        description="Salt for the key derivation"
    )
    iterations: int = Field(
        default=100_000,
        ge=1,
        description="PBKDF2 iteration count"
    )
    cache_key: bool = Field(
        default=True,
        description="Derive the key once per process instead of per call"
    )

    @field_validator('passphrase', 'salt')
    @classmethod
    def validate_not_empty(cls, v: SecretStr) -> SecretStr:
        """Empty key material would silently produce a weak key."""
        if not v.get_secret_value():
            raise ValueError("Key derivation material must not be empty")
        return v


class AllocatorSettings(BaseSettings):
    """Goal allocation configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_ALLOCATOR_",
        extra="ignore"
    )

    max_passes: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Upper bound on redistribution passes"
    )
    epsilon: float = Field(
        default=0.001,
        gt=0.0,
        lt=0.01,
        description="Tolerance (currency units) for treating a goal as full"
    )


class HistorySettings(BaseSettings):
    """Balance history configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_HISTORY_",
        extra="ignore"
    )

    label_format: str = Field(
        default="%d.%m",
        description="strftime format for snapshot labels"
    )
    daily_window_days: int = Field(
        default=30,
        ge=1,
        le=366,
        description="Number of days in the daily balance series"
    )
    today_label: str = Field(
        default="Today",
        min_length=1,
        description="Label of the newest point of the daily series"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Balance reconciliation
    reconcile_tolerance: float = Field(
        default=0.01,
        ge=0.0,
        description="Allowed drift between stored balance and transaction sum"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def codec(self) -> CodecSettings:
        return CodecSettings()

    @property
    def allocator(self) -> AllocatorSettings:
        return AllocatorSettings()

    @property
    def history(self) -> HistorySettings:
        return HistorySettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("codec", "allocator", "history", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
