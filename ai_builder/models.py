"""Pydantic v2 models for the generation pipeline.

Defines the task/plan hierarchy produced by the architect call, the files
produced by developer calls, and the request/response shapes of the HTTP
surface.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class TaskAction(str, Enum):
    """What a planned task does to its file."""
    CREATE = "create"
    MODIFY = "modify"


class ApplyStatus(str, Enum):
    """Outcome of materializing one generated file."""
    WRITTEN = "written"
    SKIPPED_UNSAFE = "skipped (unsafe)"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Plan & Task
# ---------------------------------------------------------------------------

class Task(BaseModel):
    """One unit of planned work: create or modify one file."""
    path: str = Field(..., min_length=1, description="File path relative to the source root")
    action: TaskAction = Field(default=TaskAction.CREATE, description="create or modify")
    instruction: str = Field(default="", description="Natural-language instruction for this file")
    original_content: Optional[str] = Field(
        default=None, description="Current file content; only set for modify tasks"
    )


class Plan(BaseModel):
    """Ordered tasks produced by one planning call."""
    tasks: list[Task] = Field(default_factory=list, description="Tasks in execution order")
    description: str = Field(default="", description="Human-readable summary of the plan")


# ---------------------------------------------------------------------------
# Generated output
# ---------------------------------------------------------------------------

class GeneratedFile(BaseModel):
    """A full file produced by an execution call."""
    path: str = Field(..., min_length=1, description="File path relative to the source root")
    content: str = Field(..., description="Complete file text")


class ApplyResult(BaseModel):
    """Per-file status returned by the materializer."""
    path: str
    status: ApplyStatus
    size: Optional[int] = Field(default=None, description="Characters written")
    error: Optional[str] = Field(default=None, description="Failure reason, if any")


# ---------------------------------------------------------------------------
# HTTP request/response shapes
# ---------------------------------------------------------------------------

class GenerationRequest(BaseModel):
    """Body of ``POST /generate``."""
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., description="What the user wants built or changed")
    context: str = Field(default="", description="Extra free-text context from the caller")
    provider: Optional[str] = Field(default=None, description="Per-request provider override")
    model: Optional[str] = Field(default=None, description="Per-request model override")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0, alias="maxTokens")
    file_to_modify: Optional[str] = Field(
        default=None, alias="fileToModify", description="Single file for the quick-modify flow"
    )


class GenerationResponse(BaseModel):
    """Result of one generation request; returned to the caller, never persisted."""
    files: list[GeneratedFile] = Field(default_factory=list)
    description: str = Field(default="")
    provider: str = Field(default="")
    model: str = Field(default="")
    usage: list[Any] = Field(default_factory=list, description="Per-call usage in call order")


class ApplyRequest(BaseModel):
    """Body of ``POST /apply``."""
    files: list[GeneratedFile] = Field(..., description="Accepted files to write")


class RollbackRequest(BaseModel):
    """Body of ``POST /rollback``."""
    token: str = Field(..., min_length=1, description="Checkpoint token returned by /apply")
