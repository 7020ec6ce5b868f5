"""Gnocchi build version parsing."""

from gnocchiquery.core.logs import get_logger

logger = get_logger(__name__)

# Version assumed when the API does not report a usable build string.
DEFAULT_VERSION = "3.1.0"


def parse_version(version: str) -> int:
    """Encode ``major.minor.fix`` as ``major * 1_000_000 + minor * 1_000 + fix``.

    Unparsable versions are assumed to be 3.1.0.
    """
    parts = str(version).split(".")
    try:
        major, minor, fix = (int(p) for p in parts[:3])
    except ValueError:
        logger.warning("Gnocchi version unparsable: %s", version)
        return parse_version(DEFAULT_VERSION)
    return major * 1_000_000 + minor * 1_000 + fix
