"""Wikidata entity adapter."""

from __future__ import annotations

from .client import WikidataAPIError, WikidataClient, raise_on_maxlag
from .fetcher import WikidataFetcher
from .translator import translate_entity

__all__ = [
    "WikidataAPIError",
    "WikidataClient",
    "WikidataFetcher",
    "raise_on_maxlag",
    "translate_entity",
]
