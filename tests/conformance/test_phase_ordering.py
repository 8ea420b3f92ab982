"""
Phase Ordering Conformance Tests

INVARIANT: For any two scheduled phases i < j:
    end_time(i) <= start_time(j)

At most one phase is active at any instant, and a phase's window cannot be
changed once it has opened.
"""

from hypothesis import given, settings, note
from hypothesis import strategies as st
from datetime import timedelta

from blochpool import (
    PhaseSchedule, PhaseStatus, DEFAULT_PHASES,
    ConfigurationError, PhaseActiveError,
)

from tests.sale_setup import T0


# =============================================================================
# STRATEGIES
# =============================================================================

@st.composite
def timing_call(draw):
    """(index, start, end) with hour offsets that may be inverted or overlap."""
    index = draw(st.integers(min_value=0, max_value=len(DEFAULT_PHASES) - 1))
    start = draw(st.integers(min_value=0, max_value=200))
    length = draw(st.integers(min_value=-5, max_value=60))
    return index, T0 + timedelta(hours=start), T0 + timedelta(hours=start + length)


clock_offsets = st.integers(min_value=-10, max_value=300).map(lambda h: T0 + timedelta(hours=h))


def assert_ordered(schedule):
    scheduled = [p for p in schedule if p.is_scheduled]
    for earlier, later in zip(scheduled, scheduled[1:]):
        assert earlier.end_time <= later.start_time, f"phase {earlier.index} overlaps {later.index}"
    for phase in scheduled:
        assert phase.start_time < phase.end_time


# =============================================================================
# PROPERTY TESTS
# =============================================================================

class TestPhaseOrdering:
    """Property-based tests for non-overlapping windows."""

    @given(st.lists(timing_call(), min_size=1, max_size=25))
    @settings(max_examples=200)
    def test_windows_never_overlap(self, calls):
        """
        PROPERTY: Any sequence of set_phase_timing calls, accepted or
        refused, leaves the scheduled windows ordered and disjoint.
        """
        schedule = PhaseSchedule(DEFAULT_PHASES)
        now = T0 - timedelta(days=1)
        accepted = 0
        for index, start, end in calls:
            try:
                schedule.set_phase_timing(index, start, end, now)
                accepted += 1
            except ConfigurationError:
                pass
            assert_ordered(schedule)
        note(f"accepted {accepted} of {len(calls)} calls")

    @given(st.lists(timing_call(), min_size=1, max_size=25), clock_offsets)
    @settings(max_examples=200)
    def test_at_most_one_active(self, calls, now):
        """PROPERTY: active_phase() is the only phase whose status is ACTIVE."""
        schedule = PhaseSchedule(DEFAULT_PHASES)
        for index, start, end in calls:
            try:
                schedule.set_phase_timing(index, start, end, T0 - timedelta(days=1))
            except ConfigurationError:
                pass

        active = [p.index for p in schedule if p.status(now) == PhaseStatus.ACTIVE]
        assert len(active) <= 1
        found = schedule.active_phase(now)
        assert (found.index if found else None) == (active[0] if active else None)

    @given(timing_call(), timing_call(), clock_offsets)
    @settings(max_examples=200)
    def test_started_window_is_frozen(self, first, second, now):
        """PROPERTY: Once a phase has started, its window never changes."""
        schedule = PhaseSchedule(DEFAULT_PHASES)
        index, start, end = first
        try:
            schedule.set_phase_timing(index, start, end, T0 - timedelta(days=1))
        except ConfigurationError:
            return
        phase = schedule[index]
        started = phase.has_started(now)
        window = (phase.start_time, phase.end_time)

        _, new_start, new_end = second
        try:
            schedule.set_phase_timing(index, new_start, new_end, now)
        except PhaseActiveError:
            assert started
        except ConfigurationError:
            pass

        if started:
            assert (phase.start_time, phase.end_time) == window
