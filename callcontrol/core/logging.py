import logging
import sys

from callcontrol.core.config import settings


def setup_logging(level: str | None = None) -> None:
    """Configure logging for the application"""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)
