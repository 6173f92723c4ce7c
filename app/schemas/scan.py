"""Pydantic schemas for the gated scan endpoint and the target catalogue."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ScanRequest(BaseModel):
    """Request body for ``POST /api/scan``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    target: str = Field("", description="URL or host to scan.")
    target_name: str = Field("", description="Display name of the target.")


class ScanResponse(BaseModel):
    """Scan report wrapper; ``report`` is whatever the engine returned."""

    target: str
    timestamp: str
    report: dict[str, Any] = Field(default_factory=dict)


class KnownTarget(BaseModel):
    name: str
    url: str
    description: str


class KnownTargetsResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    legal_testing_targets: list[KnownTarget]
    disclaimer: str
