"""Run pipeline stages for one owner from the command line

Usage:
    python scripts/run_pipeline.py --owner <owner-id> [--stage index|ingest|embed|all] [--loop]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx

from timeline.config import get_settings
from timeline.database.base import Base
from timeline.database.session import get_engine, get_session_factory
from timeline.drive.client import DriveClient
from timeline.drive.credentials import DriveConnectionTokenProvider
from timeline.jobs.drive_sync import STAGES, sync_owner
from timeline.rag.factory import get_embeddings_service, get_vector_store
from timeline.utils.logger import setup_logging
import timeline.models  # noqa: F401

logger = logging.getLogger("run_pipeline")

# Upper bound on rounds in --loop mode
MAX_ROUNDS = 1000


def _finished(results: dict) -> bool:
    """A stage is finished when it reports done or fails"""
    for summary in results.values():
        if "error" in summary:
            continue
        if not summary.get("done"):
            return False
    return True


async def run(owner_id: str, stages, loop: bool) -> int:
    settings = get_settings()
    Base.metadata.create_all(bind=get_engine())
    session_factory = get_session_factory()

    async with httpx.AsyncClient(timeout=settings.DRIVE_HTTP_TIMEOUT) as http_client:
        for round_number in range(1, MAX_ROUNDS + 1):
            db = session_factory()
            try:
                drive_client = DriveClient(
                    DriveConnectionTokenProvider(db),
                    http_client,
                    base_url=settings.GOOGLE_DRIVE_API_URL,
                    max_retries=settings.DRIVE_MAX_RETRIES,
                    retry_base_delay=settings.DRIVE_RETRY_BASE_DELAY
                )
                results = await sync_owner(
                    db,
                    owner_id,
                    drive_client,
                    get_embeddings_service(),
                    get_vector_store(),
                    settings,
                    stages=stages
                )
            finally:
                db.close()

            print(f"\nRound {round_number}:")
            print(json.dumps(results, indent=2, default=str))

            if not loop or _finished(results):
                return 0

    logger.warning(f"Stopped after {MAX_ROUNDS} rounds without finishing")
    return 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Run Timeline pipeline stages for one owner")
    parser.add_argument("--owner", required=True, help="Owner id (JWT sub)")
    parser.add_argument("--stage", choices=STAGES + ("all",), default="all", help="Stage to run")
    parser.add_argument("--loop", action="store_true", help="Repeat until every selected stage reports done")
    args = parser.parse_args()

    setup_logging()
    stages = STAGES if args.stage == "all" else (args.stage,)

    try:
        return asyncio.run(run(args.owner, stages, args.loop))
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
