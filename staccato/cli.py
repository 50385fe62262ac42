"""Manual smoke check of the Firestore REST client against a real project.

Creates, reads, queries, updates and deletes documents in a throwaway
collection using the credentials from the environment (or ``.env``).

Usage:
    python -m staccato.cli --collection smoke_test -v
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from datetime import datetime, timezone

from staccato.config import AppConfig, ConfigurationError
from staccato.persistence.errors import PersistenceError
from staccato.persistence.firestore_client import FirestoreClient

logger = logging.getLogger(__name__)


async def run_smoke_check(client: FirestoreClient, collection: str) -> None:
    doc_id = "smoke_user"
    data = {
        "displayName": "Smoke Test User",
        "familyId": "family_smoke_test",
        "permissionLevel": "adult",
        "createdAt": datetime.now(timezone.utc),
        "metadata": {"testRun": True, "timestamp": int(time.time())},
    }

    created = await client.create_document(collection, data, document_id=doc_id)
    logger.info("Created: %s", created)

    fetched = await client.get_document(collection, doc_id)
    logger.info("Fetched: %s", fetched)

    rows = await client.query_documents(collection, where={"familyId": "family_smoke_test"})
    logger.info("Query returned %d document(s)", len(rows))

    updated = await client.update_document(
        collection, doc_id, {**data, "displayName": "Updated Smoke User"}
    )
    logger.info("Updated: %s", updated)

    await client.delete_document(collection, doc_id)
    exists = await client.document_exists(collection, doc_id)
    logger.info("Deleted; still exists: %s", exists)


def main() -> None:
    parser = argparse.ArgumentParser(description="Staccato Firestore smoke check")
    parser.add_argument(
        "--collection",
        default=f"smoke_test_{int(time.time())}",
        help="Collection to write into (default: timestamped)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = AppConfig.from_environment()
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(1)

    async def _run() -> None:
        async with FirestoreClient.from_config(config) as client:
            await run_smoke_check(client, args.collection)

    try:
        asyncio.run(_run())
    except PersistenceError as exc:
        logger.error("Smoke check failed: %s", exc)
        sys.exit(1)
    logger.info("Smoke check passed")


if __name__ == "__main__":
    main()
