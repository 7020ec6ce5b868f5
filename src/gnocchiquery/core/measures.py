"""Reconcile raw Gnocchi measures into a single ordered series.

Gnocchi returns one block of samples per granularity, coarsest granularity
first, each block ordered by ascending timestamp. Walking that list backwards
visits the finest granularity newest-first, so any coarser sample at or after
an instant already covered is redundant and gets dropped.
"""

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from gnocchiquery.core.logs import get_logger
from gnocchiquery.core.models import Point, RawSample, Series

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MILLISECOND = timedelta(milliseconds=1)


def timestamp_ms(value: str) -> int:
    """Convert an ISO-8601 timestamp to integer milliseconds since the epoch.

    Naive timestamps are interpreted as UTC.
    """
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return (moment - _EPOCH) // _MILLISECOND


def parse_measures(
    name: str, measures: Iterable[RawSample], fill_gaps: bool = False
) -> Series:
    """Merge multi-granularity samples into one ascending series.

    Args:
        name: Label of the resulting series.
        measures: ``[timestamp, granularity, value]`` samples in backend order
            (granularity descending, then timestamp ascending).
        fill_gaps: Insert zero-valued points where consecutive accepted
            samples are more than one granularity step apart. The step is the
            granularity of the newer of the two samples.

    Returns:
        Series whose points are strictly ascending by timestamp.
    """
    points: list[Point] = []
    last_timestamp: int | None = None
    last_granularity = 0.0

    for raw_timestamp, granularity, value in reversed(list(measures)):
        timestamp = timestamp_ms(raw_timestamp)

        if last_timestamp is not None:
            if timestamp >= last_timestamp:
                # already covered by a finer granularity
                continue
            if fill_gaps and last_granularity > 0:
                step = int(last_granularity * 1000)
                cursor = last_timestamp - step
                while timestamp < cursor:
                    points.append((0, cursor))
                    cursor -= step

        last_timestamp = timestamp
        last_granularity = float(granularity)
        points.append((value, timestamp))

    points.reverse()
    logger.debug("Reconciled %d points for series %r", len(points), name)
    return Series(name=name, points=tuple(points))
