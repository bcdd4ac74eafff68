"""Defaults for batch resolution runs."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_int_env

DEFAULT_WORKERS = 4
DEFAULT_REVIEW_PAGE_SIZE = 50


@dataclass(frozen=True, slots=True)
class ResolutionRunConfig:
    workers: int = DEFAULT_WORKERS
    review_page_size: int = DEFAULT_REVIEW_PAGE_SIZE


def get_resolution_config() -> ResolutionRunConfig:
    return ResolutionRunConfig(workers=optional_int_env("CINETRUST_WORKERS", DEFAULT_WORKERS))
