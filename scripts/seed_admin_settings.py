"""Seed the well-known admin settings (auth_mode, maintenance_mode, ...).

Usage: python scripts/seed_admin_settings.py
Existing rows are left untouched.
"""
import logging
import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from apps.backend.database import get_session_factory  # noqa: E402
from apps.backend.services.admin_settings import seed_default_settings  # noqa: E402

logger = logging.getLogger("seed_admin_settings")


def main() -> int:
    factory = get_session_factory()
    with factory() as db:
        created = seed_default_settings(db)
    if created:
        logger.info("seeded keys=%s", ",".join(created))
    else:
        logger.info("nothing to seed")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    sys.exit(main())
