import argparse
import asyncio
import json
import sys

# --- Settings/Logging ---
from src.logging.setup import setup_logging
from src.config.settings import settings

setup_logging()

from loguru import logger

from rich import print
from rich.panel import Panel
from rich.table import Table

from src.models.payloads import MatchesPayload
from src.services.team_stats_service import build_service


def render_matches(title: str, payload: MatchesPayload, limit: int) -> None:
    summary = payload.summary
    print(
        Panel(
            f"Matches: {summary.total_matches}  Wins: {summary.wins}  "
            f"Losses: {summary.losses}  Win rate: {summary.win_rate}%\n"
            f"Current streak: {summary.current_streak}  "
            f"Best win streak: {summary.max_win_streak}",
            title=f"{title} ({'cached' if payload.cached else 'live'}"
            f"{', fallback' if payload.fallback else ''})",
        )
    )

    table = Table(show_header=True, header_style="bold")
    for column in ("Date", "Event", "Opponent", "Map", "Score", "Result"):
        table.add_column(column)
    for match in payload.matches[:limit]:
        table.add_row(
            match.date,
            match.event,
            match.opponent,
            match.map,
            f"{match.our_score}:{match.opponent_score}",
            "[green]W[/green]" if match.is_win else "[red]L[/red]",
        )
    print(table)


async def run_fetch(source: str, limit: int, as_json: bool, resolve_team: bool = False) -> int:
    """Fetches one source once and prints the result."""
    service = build_service()
    try:
        if resolve_team:
            service.normalizer.team_id = await service.faceit.resolve_team_id()
        if source == "faceit":
            stats = await service.faceit_stats()
            payload = await service.faceit_matches()
            if not as_json:
                lifetime = stats.lifetime
                print(
                    Panel(
                        f"Lifetime: {lifetime.total_matches} matches, "
                        f"{lifetime.win_rate}% win rate, K/D {lifetime.average_kd_ratio}\n"
                        f"Rating (estimate): {stats.rating}  Skill level: {stats.skill_level}",
                        title=stats.team_info.name if stats.team_info else settings.faceit_team_name,
                    )
                )
        elif source == "faceit-maps":
            payload = await service.faceit_map_matches()
        else:
            payload = await service.hltv_matches()

        if as_json:
            sys.stdout.write(
                json.dumps(payload.model_dump(by_alias=True, mode="json"), indent=2)
            )
            sys.stdout.write("\n")
        else:
            render_matches(source.upper(), payload, limit)

        if payload.fallback:
            logger.warning(f"Source failed, placeholder data shown: {payload.error}")
            return 1
        return 0
    finally:
        await service.close()


def serve() -> None:
    import uvicorn

    from src.api.app import create_app

    logger.info(f"Starting API server on {settings.host}:{settings.port}")
    uvicorn.run(create_app(), host=settings.host, port=settings.port, log_config=None)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="FORZE Reload match statistics")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("serve", help="Run the dashboard API")

    fetch = commands.add_parser("fetch", help="Fetch and print one source")
    fetch.add_argument(
        "source", choices=["faceit", "faceit-maps", "hltv"], help="Source to fetch"
    )
    fetch.add_argument("--limit", type=int, default=20, help="Rows to print")
    fetch.add_argument("--json", action="store_true", help="Print the raw payload")
    fetch.add_argument(
        "--resolve-team",
        action="store_true",
        help="Look up the FACEIT team id by name before fetching",
    )
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    try:
        if args.command == "serve":
            serve()
        else:
            sys.exit(asyncio.run(run_fetch(args.source, args.limit, args.json, args.resolve_team)))
    except KeyboardInterrupt:
        logger.info("Execution interrupted by user (KeyboardInterrupt).")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Unhandled exception in main execution: {e}")
        sys.exit(1)
