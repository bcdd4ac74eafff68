"""TMDB movie adapter."""

from __future__ import annotations

from .client import TmdbAPIError, TmdbClient
from .fetcher import TmdbMovieFetcher
from .translator import translate_movie

__all__ = ["TmdbAPIError", "TmdbClient", "TmdbMovieFetcher", "translate_movie"]
