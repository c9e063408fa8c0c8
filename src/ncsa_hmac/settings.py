"""Signing and verification settings via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings"]


class Settings(BaseSettings):
    """Central configuration, all values from environment."""

    model_config = SettingsConfigDict(env_prefix="NCSA_HMAC_")

    # Signer / verifier agreement; not carried in the credential
    hash_algorithm: str = "sha512"
    service_name: str = "NCSA.HMAC"
    bodyless_methods: list[str] = ["GET"]

    # key_id -> key_secret, JSON encoded in NCSA_HMAC_KEYS
    keys: dict[str, str] = {}

    # Logging
    log_json: bool = True
    log_level: str = "INFO"
