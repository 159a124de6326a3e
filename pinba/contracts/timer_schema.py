# ==============================
# Timer Contracts
# ==============================
"""
Timer snapshot contracts.

TimerInfo is a copy handed out to callers; the store never exposes its own
records.
"""

# ==============================
# Imports
# ==============================
from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


# ==============================
# Models
# ==============================
class TimerInfo(BaseModel):
    """Point-in-time view of one timer."""
    model_config = ConfigDict(extra="forbid")

    handle: int = Field(..., description="Store-local timer handle.")
    started: bool = Field(..., description="True while the timer is running.")
    value: float = Field(..., ge=0.0, description="Elapsed seconds (fixed once stopped).")
    tags: Dict[str, str] = Field(default_factory=dict, description="Timer tags used for aggregation.")
    data: Dict[str, Any] = Field(default_factory=dict, description="Informational data, never transmitted.")
