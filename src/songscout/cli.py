"""Operator command line.

    songscout playlist-update
    songscout performance-snapshot
    songscout enrich --track-id ID [--track-id ID ...] [--phase N] [--snapshot]
    songscout add-playlist --playlist-id ID --name NAME [--editorial]
    songscout auth-status
    songscout serve [--host H] [--port P]

One-shot commands build the pipeline, do their thing in the foreground (queued jobs are
drained before exit) and shut everything down again. They are safe to re-run.
"""

import argparse
import asyncio
import json
import logging
import sys
import uuid
from typing import Any

from songscout.config import Settings, get_settings
from songscout.domain.entities import EnrichmentPhase, JobRequest, TrackedPlaylist
from songscout.infrastructure.lifecycle import (
    Pipeline,
    build_pipeline,
    start_pipeline,
    stop_pipeline,
)
from songscout.infrastructure.observability import configure_logging
from songscout.infrastructure.persistence import PlaylistRepository

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog="songscout", description="Unsigned songwriter discovery pipeline"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("playlist-update", help="Refresh the playlists due this week")
    sub.add_parser(
        "performance-snapshot", help="Re-run analytics and capture this week's snapshot"
    )

    enrich = sub.add_parser("enrich", help="Enrich specific tracks now")
    enrich.add_argument(
        "--track-id", dest="track_ids", action="append", required=True, help="Track id (repeat)"
    )
    enrich.add_argument(
        "--phase",
        type=int,
        choices=[p.value for p in EnrichmentPhase],
        help="Run only this phase (1 catalog, 2 credits, 3 artists, 4 analytics, 5 registry)",
    )
    enrich.add_argument(
        "--snapshot", action="store_true", help="Capture a performance snapshot afterwards"
    )

    add = sub.add_parser("add-playlist", help="Start tracking a playlist")
    add.add_argument("--playlist-id", required=True, help="Spotify playlist id")
    add.add_argument("--name", required=True)
    add.add_argument("--editorial", action="store_true")

    sub.add_parser("auth-status", help="Show the scraping session health")

    serve = sub.add_parser("serve", help="Run the API, queue worker and scheduler")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    return parser


async def _run_one_shot(settings: Settings, args: argparse.Namespace) -> dict[str, Any]:
    pipeline: Pipeline = build_pipeline(settings)
    try:
        await start_pipeline(pipeline, run_workers=False)
        if args.command == "playlist-update":
            summary = await pipeline.scheduler.run_playlist_update_job()
        elif args.command == "performance-snapshot":
            summary = await pipeline.scheduler.run_performance_snapshot_job()
        elif args.command == "add-playlist":
            summary = await _add_playlist(pipeline, args)
        else:
            job = await pipeline.queue.enqueue(
                JobRequest(
                    track_ids=tuple(args.track_ids),
                    target_phase=EnrichmentPhase(args.phase) if args.phase else None,
                    capture_snapshot=args.snapshot,
                    source="manual",
                )
            )
            summary = {"job_id": job.id}
        summary["jobs_processed"] = await pipeline.queue.drain()
        return summary
    finally:
        await stop_pipeline(pipeline)


async def _add_playlist(pipeline: Pipeline, args: argparse.Namespace) -> dict[str, Any]:
    playlist = TrackedPlaylist(
        id=str(uuid.uuid4()),
        playlist_id=args.playlist_id,
        name=args.name,
        is_editorial=args.editorial,
    )
    async with pipeline.database.session_scope() as session:
        await PlaylistRepository(session).add(playlist)
    return {"id": playlist.id, "playlist_id": playlist.playlist_id, "name": playlist.name}


def _auth_status(settings: Settings) -> dict[str, Any]:
    from songscout.application.services import AuthMonitor

    monitor = AuthMonitor(settings.vault.auth_status_path)
    return {**monitor.get_status().to_dict(), "healthy": monitor.is_healthy()}


def _serve(settings: Settings, args: argparse.Namespace) -> None:
    import uvicorn

    from songscout.main import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host or settings.api.host,
        port=args.port or settings.api.port,
        log_config=None,
    )


def main(argv: list[str] | None = None) -> int:
    """Console script entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()

    if args.command == "serve":
        _serve(settings, args)
        return 0

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    if args.command == "auth-status":
        result = _auth_status(settings)
    else:
        try:
            result = asyncio.run(_run_one_shot(settings, args))
        except Exception:
            logger.exception(f"Command {args.command} failed")
            return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
