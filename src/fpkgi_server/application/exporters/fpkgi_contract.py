from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field


class FpkgiItem(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", strict=True)

    title_id: str | None
    region: str
    name: str | None
    version: str | None
    release: str | None = None
    size: int = Field(ge=0)
    min_fw: str | None = None
    cover_url: str | None


class FpkgiOverlayDocument(BaseModel):
    """Operator-supplied partial catalog; entries are merged as plain JSON objects."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")

    DATA: dict[str, dict[str, Any]] = Field(default_factory=dict)
