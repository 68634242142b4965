#!/usr/bin/env python3
# AccomBook API - Short-term Accommodation Booking Service
# Copyright (C) 2025 Oleg Tokmakov
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Database initialization script."""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from accombook.config import init_settings
from accombook.database import init_database
from accombook.logging_config import configure_logging


def main():
    """Initialize the database."""
    settings = init_settings()
    configure_logging(settings)

    init_database()


if __name__ == "__main__":
    main()
