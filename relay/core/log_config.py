import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Filtered unless running the development profile
NOISY_LOGGERS = ("viam", "grpc", "uvicorn.access")


def configure_logging(profile: str = "") -> int:
    """
    Install the root log handler and return the chosen level.
    The "development" profile logs at DEBUG, anything else at INFO.
    """
    level = logging.DEBUG if profile == "development" else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level == logging.DEBUG else logging.WARNING)
    return level
