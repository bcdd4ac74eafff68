"""Translate TMDB payloads into source records."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cinetrust.domain.model import Provider, SourceRecord

if TYPE_CHECKING:
    from datetime import datetime

    from cinetrust.domain.model import FieldValue

    from .schema import TmdbMovie

# Averages over fewer votes are noise.
MIN_RATING_VOTES = 10
MAX_CAST = 10
# TMDB release types: 3 = theatrical, 2 = limited theatrical.
THEATRICAL_TYPES = (3, 2)


def _certification(movie: TmdbMovie, country: str) -> str | None:
    if movie.release_dates is None:
        return None
    for entry in movie.release_dates.results:
        if entry.country != country:
            continue
        ordered = sorted(
            entry.release_dates,
            key=lambda item: (item.type not in THEATRICAL_TYPES, item.release_date or ""),
        )
        for release in ordered:
            if release.certification:
                return release.certification
    return None


def _director(movie: TmdbMovie) -> str | None:
    if movie.credits is None:
        return None
    for member in movie.credits.crew:
        if member.job == "Director":
            return member.name
    return None


def _cast(movie: TmdbMovie) -> list[str]:
    if movie.credits is None:
        return []
    ordered = sorted(movie.credits.cast, key=lambda member: member.order)
    return [member.name for member in ordered[:MAX_CAST]]


def movie_fields(movie: TmdbMovie, *, certification_country: str) -> dict[str, FieldValue]:
    fields: dict[str, FieldValue] = {
        "title": movie.title,
        "original_title": movie.original_title,
        "release_date": movie.release_date,
        "release_year": int(movie.release_date[:4]) if movie.release_date else None,
        "runtime_minutes": movie.runtime,
        "director": _director(movie),
        "cast": _cast(movie),
        "genres": [genre.name for genre in movie.genres],
        "age_rating": _certification(movie, certification_country),
        "synopsis": movie.overview,
    }
    if movie.vote_average is not None and movie.vote_count >= MIN_RATING_VOTES:
        fields["rating"] = round(movie.vote_average, 2)
    return fields


def translate_movie(
    movie: TmdbMovie,
    *,
    entity_id: str,
    retrieved_at: datetime,
    source_trust_tier: int,
    certification_country: str = "IN",
) -> list[SourceRecord]:
    """One record per field TMDB has a value for."""

    fields = movie_fields(movie, certification_country=certification_country)
    return [
        SourceRecord(
            entity_id=entity_id,
            field_name=name,
            value=value,
            source_id=Provider.TMDB,
            retrieved_at=retrieved_at,
            source_trust_tier=source_trust_tier,
        )
        for name, value in fields.items()
        if value not in (None, "", [])
    ]
