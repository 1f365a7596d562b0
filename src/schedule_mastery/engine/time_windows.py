from __future__ import annotations

from typing import Iterable, List, Tuple

from schedule_mastery.domain.segment import Segment

DAY_START = 360
CURFEW_END = 1380
GRID_MINUTES = 5

Interval = Tuple[int, int]


def snap_to_grid(minute: int, grid: int = GRID_MINUTES, earliest: int = DAY_START) -> int:
    """
    Round to the nearest grid boundary, never earlier than `earliest`.
    """
    snapped = ((int(minute) + grid // 2) // grid) * grid
    return max(earliest, snapped)


def snap_up(minute: int, grid: int = GRID_MINUTES) -> int:
    """Smallest grid boundary >= minute."""
    return -(-int(minute) // grid) * grid


def overlaps(a: Interval, b: Interval) -> bool:
    # half-open intervals
    return not (a[1] <= b[0] or b[1] <= a[0])


def merge_busy(segments: Iterable[Segment]) -> List[Interval]:
    """
    Merge segments into maximal busy intervals, ordered by start.
    Touching intervals are merged.
    """
    spans = sorted((s.start, s.end) for s in segments)
    merged: List[Interval] = []
    for start, end in spans:
        if merged and start <= merged[-1][1]:
            if end > merged[-1][1]:
                merged[-1] = (merged[-1][0], end)
        else:
            merged.append((start, end))
    return merged


def free_windows(
        segments: Iterable[Segment],
        day_start: int = DAY_START,
        day_end: int = CURFEW_END,
) -> List[Interval]:
    """
    Returns the [start, end) gaps of the operating day not covered by any segment.

    Busy intervals are clipped to [day_start, day_end); windows and clipped
    busy intervals together partition the day.
    """
    windows: List[Interval] = []
    cursor = day_start

    for start, end in merge_busy(segments):
        start, end = max(start, day_start), min(end, day_end)
        if end <= start:
            continue
        if start > cursor:
            windows.append((cursor, start))
        cursor = max(cursor, end)

    if cursor < day_end:
        windows.append((cursor, day_end))

    return windows


def parse_block(hhmm: str) -> int:
    """'1:05' -> 65"""
    hours, minutes = hhmm.strip().split(":")
    return int(hours) * 60 + int(minutes)


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
