#!/usr/bin/env python3
"""
Catalog Management Utility

This script provides utilities to manage the catalog:
- Seed books from Open Library
- Show catalog statistics
- Mint a development bearer token
"""

import asyncio
import sys

from api.auth import create_access_token
from api.config import config as api_config
from catalog.importer import OpenLibraryImporter
from catalog.store import create_store
from utilities.config import config
from utilities.logger import get_logger, setup_logging

logger = get_logger(__name__)


async def seed_books(owner_id: str):
    """Import seed books owned by ``owner_id``."""
    print("\n" + "=" * 80)
    print("📥 SEEDING BOOKS FROM OPEN LIBRARY")
    print("=" * 80)

    store = create_store(config)
    try:
        await store.connect()
        importer = OpenLibraryImporter(
            store,
            base_url=config.openlibrary_url,
            timeout=config.request_timeout,
            headers=config.get_headers()
        )
        result = await importer.import_books(config.seed_subjects, owner_id, limit=config.seed_limit)
        logger.info("Seed command finished", owner_id=owner_id, **result.model_dump(exclude={"errors"}))

        print(f"✅ Imported {result.imported} books ({result.skipped} skipped)")
        for error in result.errors:
            print(f"❌ {error}")
        if not result.success:
            sys.exit(1)

    finally:
        await store.disconnect()


async def show_statistics():
    """Show catalog statistics."""
    print("\n" + "=" * 80)
    print("📊 CATALOG STATISTICS")
    print("=" * 80)

    store = create_store(config)
    try:
        await store.connect()
        stats = await store.get_stats()

        print(f"Total books:   {stats['total_books']}")
        print(f"Total reviews: {stats['total_reviews']}")
        print()
        for genre, count in stats["books_by_genre"].items():
            print(f"  {genre:<12} {count:5d}")

    finally:
        await store.disconnect()


def print_token(user_id: str):
    """Print a development bearer token for ``user_id``."""
    token = create_access_token(
        user_id,
        api_config.jwt_secret,
        algorithm=api_config.jwt_algorithm,
        expires_minutes=api_config.access_token_expire_minutes
    )
    print(token)


async def main():
    """Main function."""
    if len(sys.argv) < 2:
        print("Usage: python manage_catalog.py [seed|stats|token] [user_id]")
        print()
        print("Commands:")
        print("  seed     - Import seed books owned by a user")
        print("  stats    - Show catalog statistics")
        print("  token    - Print a development bearer token for a user")
        print()
        print("Examples:")
        print("  python manage_catalog.py seed 64b7f0c2a1e4d5f6a7b8c9d0")
        print("  python manage_catalog.py stats")
        print("  python manage_catalog.py token 64b7f0c2a1e4d5f6a7b8c9d0")
        sys.exit(1)

    command = sys.argv[1].lower()

    if command in ("seed", "token") and len(sys.argv) < 3:
        print(f"❌ Error: user_id required for {command} command")
        print(f"Usage: python manage_catalog.py {command} <user_id>")
        sys.exit(1)

    # Token output stays clean for shell use
    if command == "token":
        print_token(sys.argv[2])
        return

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    if command == "seed":
        await seed_books(sys.argv[2])
    elif command == "stats":
        await show_statistics()
    else:
        print(f"❌ Unknown command: {command}")
        print("Available commands: seed, stats, token")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
