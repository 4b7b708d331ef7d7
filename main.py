"""
Business Manager back-office: Entry Point.

Single entry point: `python main.py` serves the REST API and, unless
REMINDER_CHECK_ENABLED is off, runs the per-minute reminder tick.
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from backoffice.api.http_api import main

if __name__ == "__main__":
    main()
