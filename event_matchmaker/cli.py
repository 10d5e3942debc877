"""
Event Matchmaker — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Open the SQLite store and wire a ``MatchmakingService``.
  5. Report result to stdout.

Install and run::

    pip install -e .
    event-matchmaker --help
    event-matchmaker init-db
    event-matchmaker import-profiles data/profiles.json
    event-matchmaker generate-recommendations --min-score 0.5 --max-results 50
    event-matchmaker recommend-for exh-001 --limit 10
    event-matchmaker check-duplicate exh-001 vis-042
    event-matchmaker create-relationship exh-001 vis-042 --source scan
    event-matchmaker plan-workflow <relationship-id>
    event-matchmaker analytics
    event-matchmaker cleanup-notifications
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

app = typer.Typer(
    name="event-matchmaker",
    help="Event matchmaking: compatibility scoring, recommendations and lead follow-up.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from pydantic import ValidationError

    from event_matchmaker.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except (ValidationError, ValueError) as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from event_matchmaker.utils.logging import configure_logging
    configure_logging(config.logging)


@contextmanager
def _service(config, timeout_s: Optional[float] = None) -> Iterator[tuple]:
    """Yield ``(service, deadline)`` over a committed-on-exit connection."""
    from event_matchmaker.db.connection import get_connection
    from event_matchmaker.db.schema import apply_schema
    from event_matchmaker.errors import MatchmakerError
    from event_matchmaker.service import build_service
    from event_matchmaker.utils.deadline import Deadline

    deadline = Deadline(timeout_s)
    try:
        with get_connection(
            config.database.db_path,
            wal_mode=config.database.wal_mode,
            busy_timeout_ms=config.database.busy_timeout_ms,
        ) as conn:
            apply_schema(conn)
            yield build_service(conn, config), deadline
    except MatchmakerError as exc:
        typer.echo(f"[ERROR] {exc.kind}: {exc}", err=True)
        raise typer.Exit(code=1)


_CONFIG_OPTION = typer.Option(None, "--config", help="Path to TOML config file.")
_TIMEOUT_OPTION = typer.Option(None, "--timeout", help="Abort after this many seconds.")


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Initialize the SQLite database and apply the full schema.

    Safe to run multiple times; all DDL uses IF NOT EXISTS.
    Also runs pending schema migrations.
    """
    from event_matchmaker.db.connection import get_connection
    from event_matchmaker.db.migrations import run_migrations
    from event_matchmaker.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with get_connection(
        target_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)
        migrations_applied = run_migrations(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo(f"  Migrations applied: {migrations_applied}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = _CONFIG_OPTION,
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:     {config.database.db_path}")
    typer.echo(f"  Cache backend:     {config.cache.backend}")
    typer.echo(f"  Recommendation TTL:{config.cache.ttl_recommendations_s}s")
    typer.echo(f"  Min score:         {config.recommendations.min_score}")
    typer.echo(f"  Max results:       {config.recommendations.max_results}")
    typer.echo(f"  Worker concurrency:{config.recommendations.worker_concurrency}")
    typer.echo(f"  Dedup block at:    {config.dedup.block_threshold}")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config is valid.")


@app.command("import-profiles")
def import_profiles(
    profiles_file: str = typer.Argument(..., help="JSON array of profile objects."),
    config_path: Optional[str] = _CONFIG_OPTION,
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Validate profiles but do not write to the database.",
    ),
) -> None:
    """Import participant profiles from a JSON file.

    Uses UPSERT semantics; existing profiles with the same id are replaced.
    """
    from pydantic import ValidationError

    from event_matchmaker.db.connection import get_connection
    from event_matchmaker.db.repositories.profile_repo import ProfileRepository
    from event_matchmaker.db.schema import apply_schema
    from event_matchmaker.models.profile import Profile

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    path = Path(profiles_file)
    if not path.exists():
        typer.echo(f"[ERROR] Profiles file not found: {path}", err=True)
        raise typer.Exit(code=1)

    try:
        raw_profiles = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        typer.echo(f"[ERROR] JSON parse error: {exc}", err=True)
        raise typer.Exit(code=1)

    if not isinstance(raw_profiles, list):
        typer.echo("[ERROR] Profiles file must contain a JSON array.", err=True)
        raise typer.Exit(code=1)

    validated: list[Profile] = []
    errors: list[tuple[int, str]] = []
    for i, raw in enumerate(raw_profiles):
        try:
            validated.append(Profile.model_validate(raw))
        except ValidationError as exc:
            errors.append((i, str(exc)))

    if errors:
        typer.echo(f"[ERROR] {len(errors)} profile(s) failed validation:", err=True)
        for idx, msg in errors[:5]:
            typer.echo(f"  Profile #{idx}: {msg}", err=True)
        if len(errors) > 5:
            typer.echo(f"  ... and {len(errors) - 5} more.", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  Validated {len(validated)} profile(s).")
    if dry_run:
        typer.echo("[DRY RUN] No profiles written to database.")
        for p in validated:
            typer.echo(f"  {p.profile_id} | {p.category} | {p.organization or '-'}")
        return

    with get_connection(
        config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)
        repo = ProfileRepository(conn)
        for p in validated:
            repo.upsert(p)

    typer.echo(f"  Upserted {len(validated)} profile(s) into database.")
    typer.echo("[OK] Profiles imported.")


@app.command("generate-recommendations")
def generate_recommendations(
    min_score: Optional[float] = typer.Option(None, "--min-score", help="Minimum score kept."),
    max_results: Optional[int] = typer.Option(None, "--max-results", help="Maximum results kept."),
    config_path: Optional[str] = _CONFIG_OPTION,
    timeout_s: Optional[float] = _TIMEOUT_OPTION,
) -> None:
    """Score every exhibitor against every seeker and persist the top results."""
    from event_matchmaker.reporting.formatters import (
        format_batch_summary,
        format_recommendations,
    )

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _service(config, timeout_s) as (service, deadline):
        result = service.run_batch_generation(min_score, max_results, deadline=deadline)

    typer.echo(format_recommendations(result.recommendations))
    typer.echo("")
    typer.echo(f"  Pairs considered:  {result.pairs_considered}")
    typer.echo(f"  Existing skipped:  {result.skipped_existing}")
    if result.factor_errors:
        typer.echo(f"  Degraded factors:  {result.factor_errors}")
    typer.echo(format_batch_summary(result.checks))
    typer.echo(format_batch_summary(result.persistence))
    typer.echo("[OK] Recommendations generated." if result.persistence.ok
               else "[WARN] Some recommendations were not persisted.")


@app.command("recommend-for")
def recommend_for(
    subject_id: str = typer.Argument(..., help="Profile id to recommend for."),
    limit: int = typer.Option(20, "--limit", help="Maximum results."),
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the cache."),
    config_path: Optional[str] = _CONFIG_OPTION,
    timeout_s: Optional[float] = _TIMEOUT_OPTION,
) -> None:
    """Ranked recommendations for one profile (cached for 30 minutes)."""
    from event_matchmaker.reporting.formatters import format_recommendations

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _service(config, timeout_s) as (service, deadline):
        recs = service.get_recommendations_for(
            subject_id, limit=limit, force_refresh=refresh, deadline=deadline
        )
    typer.echo(format_recommendations(recs, title=f"Recommendations for {subject_id}"))


@app.command("check-duplicate")
def check_duplicate(
    provider_id: str = typer.Argument(...),
    seeker_id: str = typer.Argument(...),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Run the three-tier duplicate check for a provider/seeker pair."""
    from event_matchmaker.reporting.formatters import format_duplicate_check

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _service(config) as (service, deadline):
        check = service.check_duplicate(provider_id, seeker_id, deadline)
    typer.echo(format_duplicate_check(check))


@app.command("create-relationship")
def create_relationship(
    provider_id: str = typer.Argument(...),
    seeker_id: str = typer.Argument(...),
    source: str = typer.Option("manual", "--source", help="scan | manual | recommendation"),
    tags: Optional[list[str]] = typer.Option(None, "--tag", help="Repeatable tag."),
    notes: Optional[str] = typer.Option(None, "--notes"),
    config_path: Optional[str] = _CONFIG_OPTION,
    timeout_s: Optional[float] = _TIMEOUT_OPTION,
) -> None:
    """Create a relationship (lead) unless the pair already has one."""
    from event_matchmaker.errors import RelationshipValidationError
    from event_matchmaker.models.relationship import NewRelationship
    from event_matchmaker.reporting.formatters import format_batch_summary

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        request = NewRelationship.parse({
            "provider_id": provider_id,
            "seeker_id": seeker_id,
            "source": source,
            "tags": tags or [],
            "notes": notes,
        })
    except RelationshipValidationError as exc:
        typer.echo("[ERROR] Invalid relationship:", err=True)
        for problem in exc.problems:
            typer.echo(f"  {problem}", err=True)
        raise typer.Exit(code=1)

    with _service(config, timeout_s) as (service, deadline):
        result = service.create_relationship(request, deadline)

    if result.exists:
        typer.echo(f"[EXISTS] Relationship already exists: {result.relationship_id}")
    else:
        rel = result.relationship
        typer.echo(f"[OK] Created {rel.relationship_id} score={rel.score:.3f} priority={rel.priority}")
        if result.score is not None:
            for reason in result.score.reasons:
                typer.echo(f"    + {reason}")
        typer.echo(format_batch_summary(result.notifications))
    for suggestion in result.suggestions:
        typer.echo(f"    - {suggestion}")


@app.command("plan-workflow")
def plan_workflow(
    relationship_id: str = typer.Argument(...),
    config_path: Optional[str] = _CONFIG_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print steps as JSON."),
) -> None:
    """Print the nurturing workflow for a relationship."""
    from event_matchmaker.notifications.workflow import schedule_summary
    from event_matchmaker.reporting.formatters import format_workflow

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _service(config) as (service, deadline):
        steps = service.plan_workflow_for(relationship_id, deadline)

    if as_json:
        typer.echo(json.dumps(schedule_summary(steps), indent=2))
    else:
        typer.echo(format_workflow(steps))


@app.command("analytics")
def analytics(
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the statistics cache."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Relationship and recommendation statistics."""
    from event_matchmaker.reporting.formatters import format_analytics

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _service(config) as (service, _deadline):
        stats = service.analytics(force_refresh=refresh)
    typer.echo(format_analytics("Relationships", stats["relationships"]))
    typer.echo("")
    typer.echo(format_analytics("Recommendations", stats["recommendations"]))


@app.command("cleanup-notifications")
def cleanup_notifications(
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Delete expired notification records from the outbox."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _service(config) as (service, _deadline):
        removed = service.planner.cleanup_expired()
    typer.echo(f"[OK] Removed {removed} expired notification(s).")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
