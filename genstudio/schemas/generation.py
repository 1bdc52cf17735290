"""
Request bodies for the generation API.
Field types are loose: malformed or out-of-range sizes, durations and fps
are corrected by the request normalizer rather than rejected here.
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _GenerationBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", protected_namespaces=())

    prompt: str | None = None
    provider: str | None = None
    api_key: str | None = Field(default=None, alias="apiKey")
    model: str | None = None

    def to_raw(self) -> dict[str, Any]:
        """Plain mapping in the shape the request normalizer expects."""
        return self.model_dump(by_alias=True)


class GenerateImageBody(_GenerationBody):
    size: str | None = None


class GenerateVideoBody(_GenerationBody):
    quality: str | None = None
    duration: int | float | str | None = None
    fps: int | float | str | None = None


class KeyCheckBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    provider: str | None = None
    api_key: str | None = Field(default=None, alias="apiKey")
