#!/usr/bin/env python3
"""
Sweep Trash Script

Permanently deletes trashed notes older than each owner's auto-delete
threshold. The application never schedules this itself; run it from cron
or a scheduled container.

Usage:
    $ python scripts/sweep_trash.py
    $ python scripts/sweep_trash.py --owner-id 42
"""

import argparse
import asyncio
import os
import sys

# Required for direct script execution without package installation
sys.path.append(os.path.join(os.path.dirname(__file__), "../src"))

from notetree.core.config import settings  # noqa: E402
from notetree.core.database import dispose_engine, get_session_factory  # noqa: E402
from notetree.core.logging import setup_logging  # noqa: E402
from notetree.services.trash import TrashService  # noqa: E402


async def main(owner_id: int | None) -> None:
    setup_logging()
    trash = TrashService(default_auto_delete_days=settings.TRASH_AUTO_DELETE_DAYS_DEFAULT)

    async with get_session_factory()() as session:
        if owner_id is None:
            purged = await trash.sweep_all(session)
        else:
            purged = await trash.sweep_expired(session, owner_id)

    await dispose_engine()
    print(f"Purged {purged} expired notes from trash.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Purge expired notes from trash")
    parser.add_argument("--owner-id", type=int, default=None, help="Only sweep this owner")
    args = parser.parse_args()
    asyncio.run(main(args.owner_id))
