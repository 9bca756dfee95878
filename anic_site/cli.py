from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace

from anic_site.logging_utils import setup_logging
from anic_site.site_api import run_server
from anic_site.settings import load_settings

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(prog="anic-site")
    parser.add_argument("command", choices=["serve"])
    parser.add_argument("--port", type=int, default=None, help="override PORT")
    args = parser.parse_args()

    settings = load_settings()
    if args.port is not None:
        settings = replace(settings, port=args.port)
    setup_logging(settings.log_level, settings.logs_dir)

    logger.info("mail transport=%s mail_to=%s", settings.transport_kind.value, settings.mail_to)
    run_server(settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
