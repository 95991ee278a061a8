"""30-minute block quantization."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterator, Optional, Union
from zoneinfo import ZoneInfo

from timeline_engine.schema import BLOCK_MINUTES, ActivityBlock

BLOCK = timedelta(minutes=BLOCK_MINUTES)
BLOCKS_PER_DAY = 48


def round_to_block(moment: datetime) -> datetime:
    """Truncate to the start of the enclosing block (``:00`` or ``:30``)."""

    minute = 0 if moment.minute < BLOCK_MINUTES else BLOCK_MINUTES
    return moment.replace(minute=minute, second=0, microsecond=0)


def block_end(moment: datetime) -> datetime:
    return round_to_block(moment) + BLOCK


def next_block_start(moment: datetime) -> datetime:
    return block_end(moment)


def quantize_to_block(moment: datetime) -> ActivityBlock:
    """Return the full block ``moment`` falls in."""

    start = round_to_block(moment)
    return ActivityBlock(start=start, end=start + BLOCK)


def is_within_block(moment: datetime, block_start: datetime) -> bool:
    return block_start <= moment < block_start + BLOCK


def format_block_time(moment: datetime) -> str:
    """Render a block boundary as a 12-hour label, e.g. ``10:30 AM``."""

    period = "PM" if moment.hour >= 12 else "AM"
    hour = moment.hour % 12 or 12
    return f"{hour}:{moment.minute:02d} {period}"


def _resolve_tz(tz: Union[str, tzinfo, None]) -> Optional[tzinfo]:
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


class DayBlocks:
    """Restartable, lazy sequence of the 48 block starts of one local day.

    With a timezone, local midnight is resolved once (earliest reading on an
    ambiguous wall time) and the blocks are stepped in UTC, so a DST day still
    yields exactly 48 evenly spaced instants. Without one, blocks are stepped
    on the wall clock of ``day``.
    """

    def __init__(self, day: Union[date, datetime], tz: Union[str, tzinfo, None] = None):
        zone = _resolve_tz(tz)
        if isinstance(day, datetime):
            if zone is None:
                zone = day.tzinfo
            day = day.date()
        self.day = day
        self.tz = zone

    def _midnight(self) -> datetime:
        return datetime.combine(self.day, time(0, 0), tzinfo=self.tz)

    def __iter__(self) -> Iterator[datetime]:
        midnight = self._midnight()
        if self.tz is None:
            for index in range(BLOCKS_PER_DAY):
                yield midnight + index * BLOCK
            return

        anchor = midnight.astimezone(timezone.utc)
        for index in range(BLOCKS_PER_DAY):
            yield (anchor + index * BLOCK).astimezone(self.tz)

    def __len__(self) -> int:
        return BLOCKS_PER_DAY

    def __repr__(self) -> str:
        return f"DayBlocks(day={self.day.isoformat()}, tz={self.tz!r})"


def all_blocks_for_day(day: Union[date, datetime], tz: Union[str, tzinfo, None] = None) -> DayBlocks:
    """Return the 48 block starts of ``day`` as a re-iterable sequence."""

    return DayBlocks(day, tz)
