"""
Script to run one full mirror synchronization
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import build_engine
from core.exceptions import MirrorException
from core.logging import setup_logging
from ingestion.gateway import GatewayClient
from ingestion.runner import MirrorRunner
from ingestion.store import PostgresStore

logger = logging.getLogger(__name__)


async def run_mirror() -> int:
    """Run the mirror; returns the process exit code"""
    engine = build_engine()

    try:
        async with GatewayClient() as gateway:
            runner = MirrorRunner(gateway, PostgresStore(engine))
            report = await runner.run()

        logger.info(
            f"Mirror completed: {len(report.outcomes)} resources, "
            f"{report.total_rows} rows, {len(report.failures)} failures"
        )
        return 0

    except MirrorException as e:
        logger.error(
            f"Mirror job failed: {e.message}",
            extra={"error_context": e.to_dict()}
        )
        return 1
    except Exception as e:
        logger.exception(f"Mirror job failed: {e}")
        return 1
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_mirror()))
