import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install the service-wide log format on the root logger."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger().setLevel(level.upper())
    # The HTTP client logs every PostgREST request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
