"""
Range Selector: the booking calendar's multi-day selection rules.

The selection is an immutable value; ``select``/``deselect`` return a new one.

- Selecting a day merges it with the current days and fills every gap with
  the bookable days in between. Unbookable days inside a gap are skipped,
  they never stop the fill.
- Deselecting a day keeps only the largest run of consecutive days that
  remains. When two runs tie, the earliest one is kept.
"""
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, Mapping

from agri_rental.services.availability_resolver import DayAvailability
from agri_rental.services.calendar import ONE_DAY, enumerate_range, is_adjacent

IsBookable = Callable[[date], bool]


@dataclass(frozen=True)
class Selection:
    days: tuple[date, ...] = ()

    @classmethod
    def of(cls, days: Iterable[date]) -> "Selection":
        return cls(tuple(sorted(set(days))))

    def __contains__(self, day: object) -> bool:
        return day in self.days

    def __len__(self) -> int:
        return len(self.days)

    @property
    def is_empty(self) -> bool:
        return not self.days

    @property
    def first(self) -> date | None:
        return self.days[0] if self.days else None

    @property
    def last(self) -> date | None:
        return self.days[-1] if self.days else None

    def window(self) -> tuple[date, date] | None:
        """Half-open ``(start, end)`` covering the selection, as stored on a request."""
        if not self.days:
            return None
        return self.days[0], self.days[-1] + ONE_DAY


def bookable_from(availability: Mapping[date, DayAvailability]) -> IsBookable:
    """Adapt resolver output; days outside the resolved window are not bookable."""

    def is_bookable(day: date) -> bool:
        entry = availability.get(day)
        return entry is not None and entry.available

    return is_bookable


def contiguous_runs(days: Iterable[date]) -> list[list[date]]:
    """Split sorted days into maximal runs of consecutive calendar days."""
    runs: list[list[date]] = []
    for day in days:
        if runs and is_adjacent(runs[-1][-1], day):
            runs[-1].append(day)
        else:
            runs.append([day])
    return runs


def select(selection: Selection, day: date, is_bookable: IsBookable) -> Selection:
    """Add ``day`` and fill the gaps around it with bookable days."""
    if not is_bookable(day):
        return selection
    if selection.is_empty:
        return Selection((day,))

    anchors = sorted(set(selection.days) | {day})
    filled: list[date] = [anchors[0]]
    for previous, current in zip(anchors, anchors[1:]):
        if (current - previous).days > 1:
            filled.extend(
                between
                for between in enumerate_range(previous + ONE_DAY, current - ONE_DAY)
                if is_bookable(between)
            )
        filled.append(current)
    return Selection(tuple(filled))


def deselect(selection: Selection, day: date) -> Selection:
    """Remove ``day`` and keep the largest consecutive run that survives."""
    remaining = sorted(d for d in set(selection.days) if d != day)
    if not remaining:
        return Selection()

    largest: list[date] = []
    for run in contiguous_runs(remaining):
        if len(run) > len(largest):
            largest = run
    return Selection(tuple(largest))


def toggle(selection: Selection, day: date, is_bookable: IsBookable) -> Selection:
    """Calendar tap: deselect a selected day, otherwise select it."""
    if day in selection:
        return deselect(selection, day)
    return select(selection, day, is_bookable)
