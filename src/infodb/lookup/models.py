"""Pydantic models for lookup service responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LookupResponse(BaseModel):
    """API response model for a single file lookup."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)

    found: bool = True
    catalog_id: str = Field(default="", alias="imdb")
    episode_name: str = ""
    title: str = ""
    season: str = ""
    episode: str = ""
    year: str = ""

    @field_validator("catalog_id", "episode_name", "title", "season", "episode", "year", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    def to_fields(self) -> list[str] | None:
        if not self.found:
            return None
        return [self.catalog_id, self.episode_name, self.title, self.season, self.episode, self.year]
