from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from websift.pagination import PaginationOptions


@dataclass(frozen=True)
class SingleFetch:
    url: str


@dataclass(frozen=True)
class BatchFetch:
    urls: tuple[str, ...]


FetchRequest = SingleFetch | BatchFetch


class ReadUrlInput(BaseModel):
    url: str | None = None
    urls: list[str] | None = None
    start_char: int = Field(default=0, ge=0)
    max_length: int | None = Field(default=None, ge=1)
    section: str | None = None
    paragraph_range: str | None = None
    read_headings: bool = False
    timeout_ms: int | None = Field(default=None, ge=1)

    @field_validator("url")
    @classmethod
    def strip_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("urls")
    @classmethod
    def strip_urls(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        return [u.strip() for u in v]

    @field_validator("section", "paragraph_range")
    @classmethod
    def empty_as_unset(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()

    @model_validator(mode="after")
    def require_url_or_urls(self) -> ReadUrlInput:
        if self.url is None and self.urls is None:
            raise ValueError("either 'url' or 'urls' must be provided")
        return self

    def to_request(self) -> FetchRequest:
        """Batch when ``urls`` is non-empty or ``url`` is absent, otherwise a single fetch."""
        if self.urls and len(self.urls) > 0:
            return BatchFetch(urls=tuple(self.urls))
        if self.url is not None:
            return SingleFetch(url=self.url)
        return BatchFetch(urls=())

    def pagination_options(self) -> PaginationOptions:
        return PaginationOptions(
            start_char=self.start_char,
            max_length=self.max_length,
            section=self.section,
            paragraph_range=self.paragraph_range,
            read_headings=self.read_headings,
        )


class SearchInput(BaseModel):
    query: str
    page: int = Field(default=1, ge=1)
    language: str | None = None
    time_range: Literal["day", "month", "year"] | None = None
    safesearch: Literal[0, 1, 2] | None = None

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("query must not be empty")
        if len(v) > 500:
            raise ValueError("query must not exceed 500 characters")
        return v

    @field_validator("language", "time_range", mode="before")
    @classmethod
    def empty_as_unset(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class SearchResult(BaseModel):
    """One result row from the SearXNG JSON API. Unknown fields are ignored."""

    title: str = ""
    url: str
    content: str = ""
    score: float = 0.0


class ResearchInput(BaseModel):
    """One structured thinking step for the research tool."""

    thought: str
    next_thought_needed: bool
    thought_number: int = Field(ge=1)
    total_thoughts: int = Field(ge=1)
    is_revision: bool = False
    revises_thought: int | None = Field(default=None, ge=1)
    branch_from_thought: int | None = Field(default=None, ge=1)
    branch_id: str | None = None
    needs_more_thoughts: bool = False

    @field_validator("thought")
    @classmethod
    def validate_thought(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("thought must not be empty")
        return v

    @field_validator("branch_id")
    @classmethod
    def empty_as_unset(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()

    @model_validator(mode="after")
    def raise_total_to_current(self) -> ResearchInput:
        # Overshooting the estimate extends it
        if self.thought_number > self.total_thoughts:
            self.total_thoughts = self.thought_number
        return self
