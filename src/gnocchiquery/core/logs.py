"""Logger helpers for gnocchiquery modules."""

import logging

ROOT_LOGGER = "gnocchiquery"

logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``gnocchiquery`` namespace.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        The named logger. The library installs no handlers of its own
        beyond a NullHandler on the root ``gnocchiquery`` logger.
    """
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def describe_request(method: str, url: str) -> str:
    """Format a request for log messages."""
    return f"{method.upper()} {url}"
