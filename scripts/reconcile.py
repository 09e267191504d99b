#!/usr/bin/env python3
"""Event store reconciliation script.

Replays every persisted ledger event into a fresh vault and checks that the
rebuilt ledger is consistent. Useful after restoring a database backup.

Usage:
    python scripts/reconcile.py [--user 0x...] [--json]

Options:
    --user  Also print the history and balance of one account
    --json  Print the report as JSON
"""

import argparse
import asyncio
import json
import logging
from collections import Counter
from typing import Optional

from stablevault.config import get_settings
from stablevault.ledger.database import close_db, get_db, init_db
from stablevault.ledger.events import EventKind
from stablevault.ledger.repository import EventRepository
from stablevault.routing.factory import create_stack

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


async def reconcile(user: Optional[str] = None) -> dict:
    """Rebuild the ledger from the event store and verify it.

    Returns:
        Dict with reconciliation results
    """
    settings = get_settings()
    await init_db()
    try:
        async with get_db() as session:
            repo = EventRepository(session)
            events = await repo.get_events()
            stored_counts = await repo.count_by_kind()
    finally:
        await close_db()

    gaps = [e.sequence for i, e in enumerate(events, start=1) if e.sequence != i]
    if gaps:
        # Replay needs a contiguous sequence
        return {"events": len(events), "problems": [f"sequence gaps at {gaps[:10]}"]}

    stack = create_stack(settings)
    vault = stack.vault
    applied = await vault.restore(events, stack.adapters)

    kinds = Counter(e.kind for e in events)
    problems = []

    if not vault.state.check_invariant():
        problems.append("aggregate does not equal the sum of balances")
    if vault.deposit_count != kinds[EventKind.STABLE_DEPOSIT] + kinds[EventKind.CONVERTED_DEPOSIT]:
        problems.append("deposit counter does not match deposit events")
    if vault.withdrawal_count != kinds[EventKind.WITHDRAWAL]:
        problems.append("withdrawal counter does not match withdrawal events")
    if sum(stored_counts.values()) != applied:
        problems.append("stored event count differs from replayed count")

    result = {
        "events": applied,
        "total_deposits": vault.total_deposits,
        "cap": vault.cap,
        "holders": len(vault.state.holders()),
        "by_kind": stored_counts,
        "problems": problems,
    }

    if user:
        result["user"] = {
            "address": user.lower(),
            "balance": vault.get_balance(user),
            "events": [e.to_dict() for e in vault.events.for_user(user)],
        }

    return result


async def main():
    parser = argparse.ArgumentParser(description="Event store reconciliation")
    parser.add_argument("--user", type=str, help="Account to report on")
    parser.add_argument("--json", action="store_true", help="Print JSON")
    args = parser.parse_args()

    result = await reconcile(args.user)

    if args.json:
        print(json.dumps(result, indent=2, default=str))
        return

    logger.info(f"Replayed {result['events']} events")
    logger.info(f"  Total deposits: {result['total_deposits']} (cap {result['cap']})")
    logger.info(f"  Holders: {result['holders']}")
    for kind, count in sorted(result["by_kind"].items()):
        logger.info(f"  {kind}: {count}")
    if "user" in result:
        logger.info(f"  Balance of {result['user']['address']}: {result['user']['balance']}")

    if result["problems"]:
        for problem in result["problems"]:
            logger.error(f"  PROBLEM: {problem}")
    else:
        logger.info("Ledger is consistent")


if __name__ == "__main__":
    asyncio.run(main())
