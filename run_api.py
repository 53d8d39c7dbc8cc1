#!/usr/bin/env python3
"""
Script to run the BookNest API server.
"""

import uvicorn

from api.config import config
from utilities.config import config as catalog_config
from utilities.logger import setup_logging


def main():
    """Run the API server."""
    setup_logging(
        log_level=catalog_config.log_level,
        log_format=catalog_config.log_format,
        log_file=catalog_config.get_log_file_path(),
        debug=catalog_config.debug
    )

    print("🚀 Starting BookNest API Server")
    print(f"📡 Host: {config.host}")
    print(f"🔌 Port: {config.port}")
    print(f"🌐 Debug: {config.debug}")
    print(f"📚 Store: {catalog_config.store_backend} ({catalog_config.mongodb_database})")
    print("=" * 50)

    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
