"""Router configuration loading utilities."""

from __future__ import annotations

import enum
import os
import pathlib
from functools import lru_cache
from typing import Dict

import yaml
from pydantic import BaseModel, Field

BASE_DIR = pathlib.Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = BASE_DIR.parent / "config" / "router.yaml"

DEFAULT_ENCRYPTION_KEY = "change-this-key-in-production"


class ChannelType(str, enum.Enum):
    SPEECH_SYNTHESIS = "speech-synthesis"
    SPEECH_RECOGNITION = "speech-recognition"
    SHORT_MESSAGE = "short-message"
    EMAIL = "email"
    VOICE_CARRIER = "voice-carrier"


class HealthPolicy(BaseModel):
    success_increment: int = Field(default=1, ge=0)
    failure_decrement: int = Field(default=10, ge=0)


class RouterSettings(BaseModel):
    admission_threshold: int = Field(default=30, ge=0, le=100)
    credential_cache_ttl_seconds: float = Field(default=300.0, gt=0)
    credential_cache_max_entries: int | None = Field(default=None, gt=0)
    health: HealthPolicy = Field(default_factory=HealthPolicy)
    channel_health: Dict[ChannelType, HealthPolicy] = Field(default_factory=dict)

    def health_policy(self, channel_type: ChannelType) -> HealthPolicy:
        """Return the health adjustment for a channel, falling back to the default."""
        return self.channel_health.get(channel_type, self.health)


def _config_path() -> pathlib.Path:
    configured = os.getenv("CHANNEL_ROUTER_CONFIG")
    return pathlib.Path(configured) if configured else DEFAULT_CONFIG_PATH


@lru_cache(maxsize=1)
def load_settings(path: pathlib.Path | None = None) -> RouterSettings:
    """Load router settings from YAML, using defaults when the file is absent."""
    config_path = path or _config_path()
    if not config_path.exists():
        return RouterSettings()
    raw = yaml.safe_load(config_path.read_text()) or {}
    return RouterSettings(**raw)


def encryption_key() -> str:
    """Return the secret used to derive the credential encryption key."""
    return os.getenv("ENCRYPTION_KEY", DEFAULT_ENCRYPTION_KEY)
