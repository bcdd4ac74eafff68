"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from cinetrust.adapters.batch import LoadedBatch, load_batches
from cinetrust.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyResolutionUnitOfWork,
    is_started,
    startup,
)
from cinetrust.adapters.tmdb import TmdbMovieFetcher
from cinetrust.adapters.wikidata import WikidataFetcher, raise_on_maxlag
from cinetrust.config import (
    MissingConfigurationError,
    get_policy_config,
    get_resolution_config,
    get_storage_config,
    get_tmdb_config,
    get_wikidata_config,
)
from cinetrust.domain.errors import UnknownEntityError
from cinetrust.domain.fact_resolution import (
    BatchResolutionResult,
    FieldView,
    audit_trail,
    explain_trust,
    get_field_view,
    pending_reviews,
    resolve_batch,
)
from cinetrust.domain.maintenance import (
    IngestResult,
    dismiss_review_item,
    ingest_records,
    register_entity,
    resolve_review_item,
)
from cinetrust.domain.model import Provider
from cinetrust.domain.ports.unit_of_work import ResolutionUnitOfWork
from cinetrust.domain.refresh import RefreshResult, refresh_entities
from cinetrust.domain.resolution_engine import ResolutionEngine

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from pathlib import Path

    from cinetrust.config import PolicyConfig
    from cinetrust.domain.model import (
        AuditRecord,
        Entity,
        EntityKind,
        FieldValue,
        ReviewItem,
        TrustScore,
    )
    from cinetrust.domain.ports.fetching import SourceFetcher
    from cinetrust.domain.resolution_engine import EntityResolution

UnitOfWorkFactory = Callable[[], ResolutionUnitOfWork]


log = getLogger(__name__)


def _unit_of_work_factory(factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if factory is not None:
        return factory
    if not is_started():
        startup()
    return SqlAlchemyResolutionUnitOfWork


def build_engine(policy: PolicyConfig | None = None) -> ResolutionEngine:
    config = policy or get_policy_config()
    return ResolutionEngine.from_policies(config.resolution, config.governance)


def build_fetchers(policy: PolicyConfig | None = None) -> list[SourceFetcher]:
    """Provider fetchers whose credentials are configured; others are skipped."""

    config = policy or get_policy_config()
    resolution = config.resolution
    fetchers: list[SourceFetcher] = []
    try:
        cache_path = str(get_storage_config().http_cache_path())
        fetchers.append(
            TmdbMovieFetcher(
                config=get_tmdb_config(cache_path=cache_path),
                source_trust_tier=resolution.profile(Provider.TMDB).tier,
            )
        )
    except MissingConfigurationError as exc:
        log.warning("TMDB fetcher disabled: %s", exc)
    try:
        fetchers.append(
            WikidataFetcher(
                config=get_wikidata_config(response_hooks=(raise_on_maxlag,)),
                source_trust_tier=resolution.profile(Provider.WIKIDATA).tier,
            )
        )
    except MissingConfigurationError as exc:
        log.warning("Wikidata fetcher disabled: %s", exc)
    return fetchers


def add_entity(
    entity_id: str,
    kind: EntityKind,
    *,
    display_name: str | None = None,
    external_ids: Mapping[str, str] | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Entity:
    return register_entity(
        entity_id,
        kind,
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        display_name=display_name,
        external_ids=external_ids,
    )


@dataclass(slots=True)
class IngestSummary:
    loaded: LoadedBatch
    stored: IngestResult
    resolution: BatchResolutionResult | None = None


def ingest_files(
    paths: Sequence[Path],
    *,
    resolve: bool = True,
    policy: PolicyConfig | None = None,
    workers: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> IngestSummary:
    """Load batch files, store their claims and (optionally) resolve the touched entities."""

    config = policy or get_policy_config()
    uow_factory = _unit_of_work_factory(unit_of_work_factory)
    loaded = load_batches(paths, policy=config.resolution)
    stored = ingest_records(
        loaded.records, unit_of_work_factory=uow_factory, policy=config.resolution
    )
    summary = IngestSummary(loaded=loaded, stored=stored)
    log.info(
        "Ingested %s files: stored=%s, rejected_items=%s, rejected_entities=%s",
        len(paths),
        stored.stored,
        len(loaded.errors),
        len(stored.rejected),
    )
    if resolve and stored.entity_ids:
        summary.resolution = resolve_batch(
            stored.entity_ids,
            engine=build_engine(config),
            unit_of_work_factory=uow_factory,
            workers=workers or get_resolution_config().workers,
            should_stop=should_stop,
        )
    return summary


def resolve_entities(
    entity_ids: Iterable[str] | None = None,
    *,
    policy: PolicyConfig | None = None,
    workers: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> BatchResolutionResult:
    """Re-run the pipeline for ``entity_ids`` (default: every registered entity)."""

    uow_factory = _unit_of_work_factory(unit_of_work_factory)
    if entity_ids is None:
        with uow_factory() as uow:
            entity_ids = uow.repositories.entities.list_ids()
    return resolve_batch(
        entity_ids,
        engine=build_engine(policy),
        unit_of_work_factory=uow_factory,
        workers=workers or get_resolution_config().workers,
        should_stop=should_stop,
    )


def refresh(
    entity_ids: Iterable[str] | None = None,
    *,
    policy: PolicyConfig | None = None,
    fetchers: Sequence[SourceFetcher] | None = None,
    workers: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> RefreshResult:
    """Fetch provider claims and re-resolve; defaults to entities flagged for re-fetch."""

    config = policy or get_policy_config()
    effective_fetchers = fetchers if fetchers is not None else build_fetchers(config)
    if not effective_fetchers:
        log.warning("No provider fetchers configured; refresh only re-resolves stored claims")
    result = refresh_entities(
        entity_ids,
        fetchers=effective_fetchers,
        engine=build_engine(config),
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        workers=workers or get_resolution_config().workers,
        should_stop=should_stop,
    )
    log.info(
        "Finished refresh: fetched=%s, resolved=%s, failed=%s, unavailable=%s",
        result.fetched,
        len(result.resolution.resolved),
        len(result.failed),
        sum(len(sources) for sources in result.unavailable.values()),
    )
    return result


def list_reviews(
    *,
    entity_id: str | None = None,
    limit: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[ReviewItem]:
    return pending_reviews(
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        entity_id=entity_id,
        limit=limit or get_resolution_config().review_page_size,
    )


def resolve_review(
    entity_id: str,
    field_name: str,
    *,
    reviewer: str,
    value: FieldValue = None,
    note: str | None = None,
    policy: PolicyConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> EntityResolution:
    return resolve_review_item(
        entity_id,
        field_name,
        reviewer=reviewer,
        engine=build_engine(policy),
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        value=value,
        note=note,
    )


def dismiss_review(
    entity_id: str,
    field_name: str,
    *,
    reviewer: str,
    note: str | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ReviewItem:
    return dismiss_review_item(
        entity_id,
        field_name,
        reviewer=reviewer,
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        note=note,
    )


@dataclass(frozen=True, slots=True)
class EntitySnapshot:
    entity: Entity
    fields: dict[str, FieldView]
    trust: TrustScore | None
    history: list[AuditRecord]


def show_entity(
    entity_id: str,
    *,
    history: int = 5,
    policy: PolicyConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> EntitySnapshot:
    """Stored values with freshness-adjusted confidence, trust and recent runs."""

    config = policy or get_policy_config()
    uow_factory = _unit_of_work_factory(unit_of_work_factory)
    with uow_factory() as uow:
        entity = uow.repositories.entities.get(entity_id)
        if entity is None:
            raise UnknownEntityError(entity_id)
        field_names = sorted(uow.repositories.resolved_values.for_entity(entity_id))
    fields: dict[str, FieldView] = {}
    for field_name in field_names:
        view = get_field_view(
            entity_id,
            field_name,
            unit_of_work_factory=uow_factory,
            policy=config.resolution,
        )
        if view is not None:
            fields[field_name] = view
    return EntitySnapshot(
        entity=entity,
        fields=fields,
        trust=explain_trust(entity_id, unit_of_work_factory=uow_factory),
        history=audit_trail(entity_id, unit_of_work_factory=uow_factory, limit=history),
    )


def explain_entity(
    entity_id: str, *, unit_of_work_factory: UnitOfWorkFactory | None = None
) -> TrustScore | None:
    return explain_trust(
        entity_id, unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory)
    )
