#!/usr/bin/env python3
"""
Scenario runner entry point

Usage:
    mdwright [FILE ...]
    mdwright --probe URL

Examples:
    APP_BASE=http://127.0.0.1:8080 mdwright
    APP_BASE=http://127.0.0.1:8080 mdwright tests/md/login.md
    mdwright --probe /login.html
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from config import Settings
from mcp_session import McpBrowserSession
from scenario_errors import NoScenarioFilesError
from scenario_executor import ScenarioExecutor

logger = logging.getLogger("mdwright")

EXIT_NO_SCENARIOS = 2


def resolve_scenario_files(files: Sequence[str], nl_dir: str) -> List[str]:
    """Explicit files win; otherwise every .md document in nl_dir, sorted by name"""
    if files:
        return list(files)
    directory = Path(nl_dir)
    if not directory.is_dir():
        return []
    return sorted(str(path) for path in directory.glob("*.md"))


def create_session(settings: Settings) -> McpBrowserSession:
    command, *args = settings.server_command
    return McpBrowserSession(command=command, args=args)


async def run(
    settings: Settings,
    files: Sequence[str] = (),
    probe_url: Optional[str] = None,
    session_factory: Optional[Callable[[Settings], McpBrowserSession]] = None
) -> int:
    """
    Run scenario documents (or a single probe) over one tool-server session.

    Returns the process exit status. The session is closed exactly once,
    whatever happens after it was created.
    """
    paths = [] if probe_url else resolve_scenario_files(files, settings.nl_dir)
    if not probe_url and not paths:
        raise NoScenarioFilesError(f"No .md found in {settings.nl_dir}")

    session = (session_factory or create_session)(settings)
    try:
        await session.connect()
        executor = ScenarioExecutor(session, settings)

        if probe_url:
            await executor.probe(probe_url)
            return 0

        summary = await executor.run_files(paths)
        return summary.exit_code
    finally:
        await session.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="mdwright",
        description="Run natural-language browser scenarios through a browser tool server"
    )
    parser.add_argument("files", nargs="*", help="scenario documents (default: every .md in NL_DIR)")
    parser.add_argument("--probe", metavar="URL", help="snapshot a single page instead of running scenarios")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        return asyncio.run(run(settings, files=args.files, probe_url=args.probe))
    except NoScenarioFilesError as e:
        logger.error(f"{e}. Usage: mdwright [tests/md/Some.md]")
        return EXIT_NO_SCENARIOS
    except Exception as e:
        logger.exception(f"[E-EXEC] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
