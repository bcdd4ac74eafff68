"""Pydantic models describing the TMDB movie payload."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class TmdbBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TmdbGenre(TmdbBaseModel):
    id: int
    name: str


class TmdbCastMember(TmdbBaseModel):
    name: str
    character: str | None = None
    order: int = 0


class TmdbCrewMember(TmdbBaseModel):
    name: str
    job: str
    department: str | None = None


class TmdbCredits(TmdbBaseModel):
    cast: list[TmdbCastMember] = Field(default_factory=list)
    crew: list[TmdbCrewMember] = Field(default_factory=list)


class TmdbReleaseDate(TmdbBaseModel):
    certification: str | None = None
    release_date: str | None = None
    type: int | None = None

    _normalize_certification = field_validator("certification", mode="before")(_blank_to_none)


class TmdbCountryReleases(TmdbBaseModel):
    country: str = Field(alias="iso_3166_1")
    release_dates: list[TmdbReleaseDate] = Field(default_factory=list)


class TmdbReleaseDates(TmdbBaseModel):
    results: list[TmdbCountryReleases] = Field(default_factory=list)


class TmdbMovie(TmdbBaseModel):
    id: int
    title: str
    original_title: str | None = None
    original_language: str | None = None
    imdb_id: str | None = None
    release_date: str | None = None
    runtime: int | None = None
    overview: str | None = None
    genres: list[TmdbGenre] = Field(default_factory=list)
    vote_average: float | None = None
    vote_count: int = 0
    credits: TmdbCredits | None = None
    release_dates: TmdbReleaseDates | None = None

    _normalize_text = field_validator(
        "original_title", "imdb_id", "release_date", "overview", mode="before"
    )(_blank_to_none)

    @field_validator("runtime", mode="before")
    @classmethod
    def _zero_runtime_is_unknown(cls, value: object) -> object:
        return None if value == 0 else value
