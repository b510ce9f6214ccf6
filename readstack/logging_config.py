import logging

from readstack.config import settings


def configure_logging() -> None:
    """Configure root logging once at process start."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # SQL echo is controlled by DEBUG on the engine itself.
    logging.getLogger("aiosmtplib").setLevel(logging.WARNING)
