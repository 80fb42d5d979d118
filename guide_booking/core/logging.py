import logging
from typing import Optional

from guide_booking.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the API process."""
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)
    # SQL echo stays off unless asked for explicitly
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
