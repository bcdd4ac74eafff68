"""TMDB fetcher feeding the resolution pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

import httpx
from pydantic import ValidationError

from cinetrust.domain.errors import SourceUnavailable
from cinetrust.domain.model import EntityKind, Provider

from .client import TmdbAPIError, TmdbClient
from .translator import translate_movie

if TYPE_CHECKING:
    from collections.abc import Callable

    from cinetrust.config.tmdb import TmdbConfig
    from cinetrust.domain.model import Entity, SourceRecord

    from .schema import TmdbMovie

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class MovieLookupClient(Protocol):
    def fetch_movie(self, movie_id: str) -> TmdbMovie: ...


@dataclass(slots=True)
class TmdbMovieFetcher:
    """Fetch claims for movies that carry a ``tmdb`` external id."""

    config: TmdbConfig
    source_trust_tier: int
    client: MovieLookupClient | None = None
    clock: Callable[[], datetime] = field(default=_utcnow)

    @property
    def source_id(self) -> str:
        return Provider.TMDB

    def __call__(self, entity: Entity) -> list[SourceRecord]:
        movie_id = entity.external_id(Provider.TMDB)
        if entity.kind is not EntityKind.MOVIE or movie_id is None:
            return []
        client = self.client or TmdbClient(config=self.config)
        try:
            movie = client.fetch_movie(movie_id)
        except (httpx.HTTPError, ValidationError, TmdbAPIError) as exc:
            raise SourceUnavailable(Provider.TMDB, str(exc)) from exc
        records = translate_movie(
            movie,
            entity_id=entity.entity_id,
            retrieved_at=self.clock(),
            source_trust_tier=self.source_trust_tier,
            certification_country=self.config.certification_country,
        )
        log.info("TMDB returned %s claims for %s", len(records), entity.entity_id)
        return records
