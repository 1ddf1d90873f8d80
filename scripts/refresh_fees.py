"""Daily fee refresh job: applies the lazy member refresh to every member.

Run from cron once a day so members who are never viewed still move to
Due, Overdue or Left on time.
"""
from __future__ import annotations

import argparse
import importlib
import logging
import sys
from datetime import datetime
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
for path in (REPO_ROOT, REPO_ROOT / "src" / "study_hall"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from dotenv import load_dotenv

from config import get_settings_module

from study_hall.common.datetime_utils import parse_iso_date
from study_hall.container import build_container

logger = logging.getLogger("refresh_fees")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--date", help="Run as of this day (YYYY-MM-DD) instead of today")
    args = parser.parse_args(argv)

    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(
        level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    now = datetime.combine(parse_iso_date(args.date), datetime.now().time()) if args.date else None
    container = build_container(settings)
    updated = container.membership_service.refresh_all(now=now)
    logger.info("%d member(s) updated", updated)
    return 0


if __name__ == "__main__":
    sys.exit(main())
