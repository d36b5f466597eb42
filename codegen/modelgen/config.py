"""
Configuration for the entity model generator.

Settings come from environment variables prefixed with MODELGEN_ and can be
overridden by CLI flags.

Invariants:
    - Defaults work for local development without any environment
    - uid_seed is for reproducible runs only; production leaves it unset
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from .modelinfo.uidgen import DEFAULT_MAX_UID_ATTEMPTS, RandomUidSource, UidGenerator


class GeneratorSettings(BaseSettings):
    """Generator configuration."""

    # Catalog file, relative to the declarations' directory unless absolute
    model_file_name: str = Field(default="entity-model.json")

    # Uid generation
    max_uid_attempts: int = Field(default=DEFAULT_MAX_UID_ATTEMPTS, gt=0)
    uid_seed: Optional[int] = Field(default=None, description="Seed for reproducible uids")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["text", "json"] = Field(default="text")

    model_config = {"env_prefix": "MODELGEN_", "protected_namespaces": ()}

    def uid_generator(self) -> UidGenerator:
        """Build the uid generator, seeded once for the whole run."""
        return UidGenerator(RandomUidSource(self.uid_seed), max_attempts=self.max_uid_attempts)
