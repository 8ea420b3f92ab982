"""
phases.py - Phase Schedule

A fixed, ordered set of sale phases. Each phase has a price, an allocation and
a half-open time window [start_time, end_time). Phase status is never stored:
it is derived from the clock value passed in on every call.

Windows are kept in index order and never overlap. set_phase_timing checks the
new window against every scheduled phase before and after it, so for any two
scheduled phases i < j, end_time(i) <= start_time(j) holds after every
successful call.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple

from .config import PhaseTerms
from .core import to_decimal
from .errors import (
    InvalidWindowError, OverlapError, PhaseActiveError, UnknownPhaseError,
    ConfigurationError,
)


class PhaseStatus(Enum):
    UNSCHEDULED = "unscheduled"   # window never set
    SCHEDULED = "scheduled"       # now < start_time
    ACTIVE = "active"             # start_time <= now < end_time
    ENDED = "ended"               # now >= end_time


@dataclass(slots=True)
class Phase:
    """
    One time-boxed sale window.

    Attributes:
        index: Position in the schedule
        price: Quote base units per whole sale token
        allocation: Maximum sale tokens sellable in this phase
        sold: Sale tokens sold so far (never decreases)
        window: (start inclusive, end exclusive), None until scheduled.
            Replaced as a whole, never edited in place.
        recovered: Unsold tokens already returned to the owner
    """
    index: int
    price: int
    allocation: Decimal
    sold: Decimal = Decimal("0")
    window: Optional[Tuple[datetime, datetime]] = None
    recovered: Decimal = Decimal("0")

    @property
    def start_time(self) -> Optional[datetime]:
        window = self.window
        return window[0] if window is not None else None

    @property
    def end_time(self) -> Optional[datetime]:
        window = self.window
        return window[1] if window is not None else None

    @property
    def is_scheduled(self) -> bool:
        return self.window is not None

    @property
    def remaining(self) -> Decimal:
        """Allocation still available to buyers."""
        return self.allocation - self.sold

    @property
    def unsold(self) -> Decimal:
        """Allocation neither sold nor already recovered."""
        return self.allocation - self.sold - self.recovered

    def status(self, now: datetime) -> PhaseStatus:
        window = self.window
        if window is None:
            return PhaseStatus.UNSCHEDULED
        start, end = window
        if now < start:
            return PhaseStatus.SCHEDULED
        if now < end:
            return PhaseStatus.ACTIVE
        return PhaseStatus.ENDED

    def is_active(self, now: datetime) -> bool:
        return self.status(now) == PhaseStatus.ACTIVE

    def has_started(self, now: datetime) -> bool:
        return self.status(now) in (PhaseStatus.ACTIVE, PhaseStatus.ENDED)

    def snapshot(self) -> 'Phase':
        """Detached copy for callers outside the pool."""
        return replace(self)


class PhaseSchedule:
    """
    Ordered phases with non-overlapping windows.

    Not thread-safe on its own; the Pool holds the phase's lock around every
    mutation.

    Example:
        schedule = PhaseSchedule(DEFAULT_PHASES)
        schedule.set_phase_timing(0, t0, t0 + timedelta(days=30), now=t0)
        schedule.active_phase(t0 + timedelta(days=1))   # -> phase 0
    """

    def __init__(self, terms: Sequence[PhaseTerms]):
        if not terms:
            raise ConfigurationError("at least one phase is required")
        self._phases: List[Phase] = [
            Phase(index=i, price=t.price, allocation=t.allocation)
            for i, t in enumerate(terms)
        ]

    def __len__(self) -> int:
        return len(self._phases)

    def __iter__(self) -> Iterator[Phase]:
        return iter(self._phases)

    def __getitem__(self, index: int) -> Phase:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._phases):
            raise UnknownPhaseError(f"Invalid phase index: {index!r}")
        return self._phases[index]

    def active_phase(self, now: datetime) -> Optional[Phase]:
        """The phase whose window contains now, or None."""
        for phase in self._phases:
            if phase.is_active(now):
                return phase
        return None

    def status(self, index: int, now: datetime) -> PhaseStatus:
        return self[index].status(now)

    def set_phase_timing(self, index: int, start: datetime, end: datetime, now: datetime) -> Phase:
        """
        Set the window of a phase that has not started yet.

        Raises:
            UnknownPhaseError: index outside the schedule
            InvalidWindowError: start >= end
            PhaseActiveError: the phase's current window has already opened
            OverlapError: the window overlaps a scheduled earlier or later phase
        """
        phase = self[index]
        if not start < end:
            raise InvalidWindowError(f"Start time must precede end time: {start} >= {end}")
        if phase.has_started(now):
            raise PhaseActiveError(f"Phase {index} already started")

        for other in self._phases:
            if other.index == index or not other.is_scheduled:
                continue
            if other.index < index and other.end_time > start:
                raise OverlapError("Overlaps with previous phase")
            if other.index > index and other.start_time < end:
                raise OverlapError("Overlaps with next phase")

        phase.window = (start, end)
        return phase

    def set_phase_terms(self, index: int, price: int, allocation: Decimal, now: datetime) -> Phase:
        """
        Change price and allocation of a phase that has not started yet.

        Raises:
            UnknownPhaseError: index outside the schedule
            PhaseActiveError: the phase has already started
            ConfigurationError: invalid price, or allocation below what is sold
        """
        phase = self[index]
        if phase.has_started(now):
            raise PhaseActiveError(f"Phase {index} already started")
        terms = PhaseTerms(price=price, allocation=to_decimal(allocation, "allocation"))
        if terms.allocation < phase.sold + phase.recovered:
            raise ConfigurationError(
                f"allocation {terms.allocation} below committed {phase.sold + phase.recovered}"
            )
        phase.price = terms.price
        phase.allocation = terms.allocation
        return phase
