#!/usr/bin/env python
"""Quick CLI tool to check what the catalog store holds.

Usage:
    python scripts/check_store_status.py
"""

import asyncio
import sys

from mvdb.db.database import init_db
from mvdb.db.inspector import get_store_status, print_status_report


async def main():
    """Check and print store status."""
    await init_db()

    status = await get_store_status()
    print_status_report(status)

    if status.get("error"):
        return 1
    return 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
