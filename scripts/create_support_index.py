"""
Create the (slackThreadTs, _id) index used to resolve Slack threads to users.

Run once at install time; safe to run again:

    python scripts/create_support_index.py

Retries up to INDEX_MAX_ATTEMPTS times on failure and exits non-zero if the
index could not be provisioned.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv()

from support_bridge.core.logging_config import get_logger, setup_logging
from support_bridge.db.mongodb import close_db
from support_bridge.tasks.install import create_support_index

setup_logging()
logger = get_logger(__name__)


async def main() -> int:
    try:
        outcome = await create_support_index()
        print(f"Support index: {outcome.value}")
        return 0
    except Exception as e:
        logger.error("create_support_index_failed", error=str(e), error_type=type(e).__name__)
        print(f"FAILED: {type(e).__name__}: {e}")
        return 1
    finally:
        await close_db()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
