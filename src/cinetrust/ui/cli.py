# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from cinetrust.app import (
    add_entity,
    dismiss_review,
    explain_entity,
    ingest_files,
    list_reviews,
    refresh,
    resolve_entities,
    resolve_review,
    show_entity,
)
from cinetrust.config import ConfigurationError, configure_logging, get_policy_config
from cinetrust.domain.model import EntityKind

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from cinetrust.app import EntitySnapshot
    from cinetrust.config import PolicyConfig
    from cinetrust.domain.fact_resolution import BatchResolutionResult
    from cinetrust.domain.model import FieldValue, ReviewItem, TrustScore

log = logging.getLogger(__name__)

_STOP = threading.Event()


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected an integer, got {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError(f"Expected a positive integer, got {number}")
    return number


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resolve and govern film metadata")
    parser.add_argument(
        "--policy",
        type=Path,
        help="TOML policy file (defaults to $CINETRUST_POLICY_FILE or built-in policy)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    entity = subparsers.add_parser("entity", help="Entity management commands")
    entity_sub = entity.add_subparsers(dest="entity_command", required=True)
    entity_add = entity_sub.add_parser("add", help="Register a movie or celebrity")
    entity_add.add_argument("entity_id", help="Stable identifier of the entity")
    entity_add.add_argument(
        "--kind",
        type=EntityKind,
        choices=list(EntityKind),
        required=True,
        help="Entity kind",
    )
    entity_add.add_argument("--name", help="Display name")
    entity_add.add_argument(
        "--external-id",
        action="append",
        default=[],
        metavar="NAMESPACE=ID",
        help="Provider identifier, e.g. tmdb=12345 or wikidata=Q42 (repeatable)",
    )

    ingest = subparsers.add_parser("ingest", help="Ingest JSON or JSONL batch files")
    ingest.add_argument("paths", nargs="+", type=Path, help="Batch files to load")
    ingest.add_argument(
        "--no-resolve",
        action="store_true",
        help="Only store claims; do not resolve the touched entities",
    )
    ingest.add_argument("--workers", type=_positive_int, help="Parallel resolution workers")

    resolve = subparsers.add_parser("resolve", help="Re-run resolution for entities")
    resolve.add_argument("entity_ids", nargs="*", help="Entities to resolve (default: all)")
    resolve.add_argument("--workers", type=_positive_int, help="Parallel resolution workers")

    refresh_parser = subparsers.add_parser(
        "refresh", help="Fetch provider claims and re-resolve"
    )
    refresh_parser.add_argument(
        "entity_ids", nargs="*", help="Entities to refresh (default: stale or requeued)"
    )
    refresh_parser.add_argument(
        "--workers", type=_positive_int, help="Parallel resolution workers"
    )

    review = subparsers.add_parser("review", help="Manual review queue")
    review_sub = review.add_subparsers(dest="review_command", required=True)
    review_list = review_sub.add_parser("list", help="List open review items")
    review_list.add_argument("--entity", help="Only items for this entity")
    review_list.add_argument("--limit", type=_positive_int, help="Maximum items to show")

    for name, help_text in (
        ("resolve", "Publish a value for a queued field"),
        ("dismiss", "Close a review item without publishing"),
    ):
        command = review_sub.add_parser(name, help=help_text)
        command.add_argument("entity_id")
        command.add_argument("field_name")
        command.add_argument("--reviewer", required=True, help="Who made the decision")
        command.add_argument("--note", help="Free-text rationale")
        if name == "resolve":
            command.add_argument(
                "--value",
                help="Value to publish (JSON or plain text); defaults to the proposed value",
            )

    show = subparsers.add_parser("show", help="Show resolved values for an entity")
    show.add_argument("entity_id")
    show.add_argument(
        "--history",
        type=_positive_int,
        default=5,
        help="Number of recent runs to show (default: %(default)s)",
    )

    explain = subparsers.add_parser("explain", help="Explain an entity's trust score")
    explain.add_argument("entity_id")

    return parser.parse_args(list(argv))


def _parse_external_ids(pairs: Sequence[str]) -> dict[str, str]:
    external_ids: dict[str, str] = {}
    for pair in pairs:
        namespace, separator, value = pair.partition("=")
        if not separator or not namespace.strip() or not value.strip():
            raise ValueError(f"Invalid external id {pair!r}; expected NAMESPACE=ID")
        external_ids[namespace.strip()] = value.strip()
    return external_ids


def _parse_value(raw: str | None) -> FieldValue:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _should_stop() -> bool:
    return _STOP.is_set()


def _format_value(value: FieldValue) -> str:
    if isinstance(value, tuple | list):
        return ", ".join(str(item) for item in value)
    return str(value)


def _print_batch(result: BatchResolutionResult) -> None:
    for resolution in result.resolved:
        print(
            f"{resolution.entity.entity_id}: {resolution.entity.state} "
            f"(trust {resolution.governance.trust_score.score:.2f}, "
            f"{len(resolution.review_items)} queued)"
        )
    for entity_id, message in sorted(result.failed.items()):
        print(f"{entity_id}: FAILED {message}")
    for entity_id in result.skipped:
        print(f"{entity_id}: skipped")


def _print_reviews(items: Sequence[ReviewItem]) -> None:
    if not items:
        print("No open review items")
        return
    for item in items:
        confidence = "-" if item.confidence is None else f"{item.confidence:.2f}"
        print(
            f"{item.entity_id}.{item.field_name} [{item.reason}] "
            f"proposed={_format_value(item.proposed_value)!s} confidence={confidence}"
        )
        print(f"    {item.explanation}")


def _print_snapshot(snapshot: EntitySnapshot) -> None:
    entity = snapshot.entity
    print(f"{entity.entity_id} ({entity.kind}) {entity.display_name or ''}".rstrip())
    print(f"  state: {entity.state}  revision: {entity.revision}")
    if snapshot.trust is not None:
        print(f"  trust: {snapshot.trust.score:.2f} ({snapshot.trust.overall_level})")
    for field_name, view in snapshot.fields.items():
        stored = view.value
        marker = "" if stored.publishable else " [review]"
        print(
            f"  {field_name}: {_format_value(stored.value)} "
            f"(confidence {stored.confidence:.2f}, effective {view.effective_confidence:.2f}, "
            f"{stored.method}, {', '.join(stored.contributing_sources)}){marker}"
        )
    for record in snapshot.history:
        outcomes = ", ".join(outcome.kind for outcome in record.outcomes) or "ok"
        print(f"  run {record.run_id} at {record.timestamp.isoformat()}: {outcomes}")


def _print_trust(entity_id: str, score: TrustScore | None) -> None:
    if score is None:
        print(f"{entity_id} has not been scored yet")
        return
    print(f"{entity_id}: {score.score:.2f} ({score.overall_level})")
    print(f"  {score.explanation}")
    for name, value in sorted(score.components.items()):
        print(f"  component {name}: {value:.2f}")
    for rule_id, contribution in score.breakdown_by_rule.items():
        status = "pass" if contribution.passed else "FAIL"
        print(
            f"  rule {rule_id} v{contribution.rule_version}: "
            f"{status} {contribution.trust_delta:+.2f}"
        )
        if not contribution.passed:
            print(f"      {contribution.explanation}")
    for warning in score.warnings:
        print(f"  warning: {warning}")
    for improvement in score.improvements:
        print(f"  improve: {improvement}")


def _dispatch(args: argparse.Namespace, policy: PolicyConfig) -> int:
    """Run the selected command and return the process exit code."""

    if args.command == "entity" and args.entity_command == "add":
        entity = add_entity(
            args.entity_id,
            args.kind,
            display_name=args.name,
            external_ids=_parse_external_ids(args.external_id),
        )
        log.info("Registered %s %s (revision %s)", entity.kind, entity.entity_id, entity.revision)
        return 0
    if args.command == "ingest":
        summary = ingest_files(
            args.paths,
            resolve=not args.no_resolve,
            policy=policy,
            workers=args.workers,
            should_stop=_should_stop,
        )
        for error in summary.loaded.errors:
            print(f"item {error.position}: {error.entity_id or '?'}: {error.message}")
        for entity_id, message in sorted(summary.stored.rejected.items()):
            print(f"{entity_id}: rejected {message}")
        stored = summary.stored
        print(f"Stored {stored.stored} claims for {len(stored.entity_ids)} entities")
        if summary.resolution is not None:
            _print_batch(summary.resolution)
            return 0 if summary.resolution.ok else 1
        return 0
    if args.command == "resolve":
        result = resolve_entities(
            args.entity_ids or None,
            policy=policy,
            workers=args.workers,
            should_stop=_should_stop,
        )
        _print_batch(result)
        return 0 if result.ok else 1
    if args.command == "refresh":
        refreshed = refresh(
            args.entity_ids or None,
            policy=policy,
            workers=args.workers,
            should_stop=_should_stop,
        )
        for entity_id, sources in sorted(refreshed.unavailable.items()):
            print(f"{entity_id}: unavailable {', '.join(sources)}")
        _print_batch(refreshed.resolution)
        return 0 if refreshed.resolution.ok else 1
    if args.command == "review":
        if args.review_command == "list":
            _print_reviews(list_reviews(entity_id=args.entity, limit=args.limit))
        elif args.review_command == "resolve":
            resolution = resolve_review(
                args.entity_id,
                args.field_name,
                reviewer=args.reviewer,
                value=_parse_value(args.value),
                note=args.note,
                policy=policy,
            )
            stored = resolution.values.get(args.field_name)
            shown = _format_value(stored.value) if stored is not None else "-"
            print(f"{args.entity_id}.{args.field_name} = {shown} ({resolution.entity.state})")
        else:
            dismiss_review(args.entity_id, args.field_name, reviewer=args.reviewer, note=args.note)
            print(f"Dismissed {args.entity_id}.{args.field_name}")
        return 0
    if args.command == "show":
        _print_snapshot(show_entity(args.entity_id, history=args.history, policy=policy))
        return 0
    if args.command == "explain":
        _print_trust(args.entity_id, explain_entity(args.entity_id))
        return 0
    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
        policy = get_policy_config(path=parsed_args.policy)
        if parsed_args.command == "entity":
            _parse_external_ids(parsed_args.external_id)
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        exit_code = _dispatch(parsed_args, policy)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """First Ctrl+C lets in-flight entities finish; the second one exits."""
    if _STOP.is_set():
        log.info("Closed by user (Ctrl+C)")
        sys.exit(130)
    log.info("Stopping after in-flight entities (press Ctrl+C again to quit)")
    _STOP.set()


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
