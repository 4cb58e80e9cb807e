"""Companion entities for the Inkkeeper application."""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CompanionStatus(str, Enum):
    """Companion lifecycle status."""

    ACTIVE = "active"
    ARCHIVED = "archived"


class Companion(BaseModel):
    """Companion creature that grows with the XP earned from reading."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    nickname: str = Field(default="Rusty")
    species: str = Field(default="fox")
    xp: int = Field(default=0, ge=0)
    status: CompanionStatus = CompanionStatus.ACTIVE


class CompanionStage(BaseModel):
    """One growth stage of a species; ``limit`` is the XP that ends it."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(ge=1)
    label: str
    icon: str = "paw"
    description: str = ""


class CompanionState(BaseModel):
    """Projected display state of a companion. Never stored."""

    model_config = ConfigDict(frozen=True)

    stage_label: str
    stage_index: int = Field(ge=0)
    progress_percent: float = Field(ge=0.0, le=1.0)
    is_faint: bool = False
    is_maxed: bool = False
    current_limit: int
    icon: str = "paw"
    description: str = ""
    nickname: Optional[str] = None
    xp: int = Field(default=0, ge=0)
