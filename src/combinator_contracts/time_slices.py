# combinator_contracts/time_slices.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence

from combinator_contracts.grammar import unix_to_date_string

# `None` stands for an unbounded time ("infinity") throughout this module.
Time = Optional[int]


def compare_time(t0: Time, t1: Time) -> int:
    """Three-way comparison where an unbounded time sorts after every concrete time."""
    if t0 is None and t1 is None:
        return 0
    if t0 is None:
        return 1
    if t1 is None:
        return -1
    return (t0 > t1) - (t0 < t1)


def later_than(t0: Time, t1: Time) -> bool:
    return compare_time(t0, t1) > 0


def max_horizon(h0: Time, h1: Time) -> Time:
    if h0 is None or h1 is None:
        return None
    return max(h0, h1)


def min_horizon(h0: Time, h1: Time) -> Time:
    if h0 is None:
        return h1
    if h1 is None:
        return h0
    return min(h0, h1)


@dataclass(frozen=True)
class TimeSlice:
    """An inclusive `[start, end]` range of unix seconds; `end=None` is unbounded."""

    start: int
    end: Time = None

    def __post_init__(self) -> None:
        if later_than(self.start, self.end):
            raise ValueError("Attempted to create a time slice with a start after its end.")

    def includes(self, time: int) -> bool:
        return compare_time(self.start, time) <= 0 and compare_time(self.end, time) >= 0

    @property
    def is_unbounded(self) -> bool:
        return self.end is None

    def to_date_range_string(self) -> str:
        start = unix_to_date_string(self.start, with_zone=True)
        if self.end is None:
            return start + " and onwards"
        if self.end == self.start:
            return start
        return start + " - " + unix_to_date_string(self.end, with_zone=True)

    def __str__(self) -> str:
        end = "inf" if self.end is None else str(self.end)
        return f"[{self.start}, {end}]"


TimeRange = TimeSlice


class TimeSlices:
    """
    An ordered partition of time into the intervals over which a contract's
    payoff structure is piecewise-constant.

    The ranges are sorted by end, disjoint and gap-free, and always start at 0.
    They run to infinity unless the set has been cut by `cut_tail`, in which
    case they stop at the cut time.
    """

    def __init__(self, slices: Optional[Iterable[TimeSlice]] = None) -> None:
        self._slices: list[TimeSlice] = list(slices) if slices is not None else [TimeSlice(0, None)]
        _check_partition(self._slices)

    @classmethod
    def from_boundaries(cls, ends: Iterable[int], final: Time) -> TimeSlices:
        """Build the partition whose ranges end at each of `ends` and then at `final`."""
        limit = final
        points = sorted({end for end in ends if end >= 0 and (limit is None or end < limit)})
        slices: list[TimeSlice] = []
        start = 0
        for end in points:
            slices.append(TimeSlice(start, end))
            start = end + 1
        if limit is None or start <= limit:
            slices.append(TimeSlice(start, limit))
        return cls(slices)

    def get_slices(self) -> list[TimeSlice]:
        return list(self._slices)

    def get_end_time(self) -> Time:
        return self._slices[-1].end

    def boundaries(self) -> list[int]:
        return [s.end for s in self._slices if s.end is not None]

    def clone(self) -> TimeSlices:
        return TimeSlices(self._slices)

    def find(self, time: int) -> Optional[TimeSlice]:
        return next((s for s in self._slices if s.includes(time)), None)

    def split(self, time: Time) -> None:
        """Make `time` a range boundary. No-op for the unbounded marker or a time past the end."""
        if time is None or time < 0:
            return
        for i, current in enumerate(self._slices):
            if not current.includes(time):
                continue
            if current.end == time:
                return
            self._slices[i : i + 1] = [TimeSlice(current.start, time), TimeSlice(time + 1, current.end)]
            return

    def cut_tail(self, time: Time) -> None:
        """Split at `time` and drop every range after it; nothing past `time` matters."""
        if time is None:
            return
        if later_than(time, self.get_end_time()):
            return
        self.split(time)
        self._slices = [s for s in self._slices if compare_time(s.end, time) <= 0]

    def concat_head(self, time: Time) -> None:
        """Collapse every range up to and including `time` into the single range `[0, time]`."""
        if time is None:
            self._slices = [TimeSlice(0, self.get_end_time())]
            return
        if later_than(time, self.get_end_time()):
            time = self.get_end_time()
            if time is None:
                self._slices = [TimeSlice(0, None)]
                return
        self.split(time)
        self._slices = [TimeSlice(0, time)] + [s for s in self._slices if s.start > time]

    def merge(self, other: TimeSlices) -> None:
        """Split at every boundary of `other`, covering the union of both sets."""
        final = max_horizon(self.get_end_time(), other.get_end_time())
        merged = TimeSlices.from_boundaries(self.boundaries() + other.boundaries(), final)
        self._slices = merged._slices

    def merge_after(self, other: TimeSlices) -> None:
        """Append the ranges of `other` that lie strictly after this set's current end."""
        end = self.get_end_time()
        if end is None:
            return
        tail = other.clone()
        tail.split(end)
        self._slices.extend(s for s in tail._slices if s.start > end)

    def get_valid_slices(self, now: int) -> list[TimeSlice]:
        """Ranges still relevant from `now` onward, the first one starting exactly at `now`."""
        valid = self.clone()
        if now > 0:
            valid.split(now - 1)
        return [s for s in valid._slices if s.start >= now]

    def __iter__(self) -> Iterator[TimeSlice]:
        return iter(list(self._slices))

    def __len__(self) -> int:
        return len(self._slices)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeSlices):
            return NotImplemented
        return self._slices == other._slices

    def __repr__(self) -> str:
        return "TimeSlices(" + ", ".join(str(s) for s in self._slices) + ")"


def _check_partition(slices: Sequence[TimeSlice]) -> None:
    if not slices:
        raise ValueError("A time-slice set must contain at least one range.")
    if slices[0].start != 0:
        raise ValueError("A time-slice set must start at 0.")
    for prev, nxt in zip(slices, slices[1:]):
        if prev.end is None or nxt.start != prev.end + 1:
            raise ValueError(f"Time slices {prev} and {nxt} are not contiguous.")
