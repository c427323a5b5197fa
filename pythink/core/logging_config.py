# pythink/core/logging_config.py
import logging

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once. Called from the API startup hook
    and from the worker entry point.
    """
    global _configured
    if _configured:
        return

    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)
    # SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
