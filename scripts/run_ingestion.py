#!/usr/bin/env python3
"""
Run custom match H2H ingestion from the command line.

    python scripts/run_ingestion.py --once --metrics-json logs/last_run.json
    python scripts/run_ingestion.py            # scheduled until Ctrl+C
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pulseh2h.config import get_settings
from pulseh2h.orchestrator import build_orchestrator

logger = logging.getLogger("run_ingestion")


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest H2H custom matches from SC2 Pulse.")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single manual cycle, print the result and exit.",
    )
    parser.add_argument(
        "--metrics-json",
        default=None,
        help="Write the run result JSON to this path (with --once).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL from settings.",
    )
    return parser.parse_args()


async def main() -> int:
    args = parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, (args.log_level or settings.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    orchestrator = build_orchestrator(settings)
    try:
        if args.once:
            result = await orchestrator.run_manual_ingestion()
            summary = result.to_dict()
            if args.metrics_json:
                _write_json(Path(args.metrics_json), summary)
            print(json.dumps(summary, indent=2))
            return 1 if result.errors else 0

        await orchestrator.start()
        logger.info("Press Ctrl+C to stop")
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            logger.info("Shutdown requested")
        return 0
    finally:
        await orchestrator.aclose()


if __name__ == "__main__":
    try:
        raise SystemExit(asyncio.run(main()))
    except KeyboardInterrupt:
        raise SystemExit(130)
