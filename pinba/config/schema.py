# ==============================
# Config Schemas (Pydantic)
# ==============================
"""
Pydantic settings models for pinba/.

Notes:
- No env reads here. No file IO here. Pure types + defaults.
- loader.py builds a single Settings object with precedence merging.

Precedence (implemented in loader.py):
env > .env > configs/*.yaml > defaults
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pinba.codec.schema import SCHEMAS


# ==============================
# Collector / Request Settings
# ==============================


class PinbaConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    server: str = Field(default="127.0.0.1", description="Collector host")
    port: int = Field(default=30002, ge=1, le=65535, description="Collector UDP port")
    hostname: Optional[str] = Field(default=None, description="Reported hostname; machine hostname when unset")
    server_name: str = Field(default="unknown")
    script_name: str = Field(default="unknown")
    schema_: Optional[str] = Field(default=None, alias="schema", description="Request schema (http/https/...)")
    message_version: str = Field(default="v2", description="Wire message version (v1|v2)")

    @field_validator("message_version")
    @classmethod
    def _known_version(cls, value: str) -> str:
        if value not in SCHEMAS:
            raise ValueError(f"unknown message version '{value}'")
        return value


# ==============================
# Logging Settings
# ==============================


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str = Field(default="INFO")
    console: bool = Field(default=True)


# ==============================
# Top-Level Settings
# ==============================


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pinba: PinbaConfig = Field(default_factory=PinbaConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
