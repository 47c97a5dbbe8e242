import pytest

from backend.media import Duration
from backend.progress import ProgressReporter, progress_fraction, safe_duration
from tests.conftest import FakeUnit, make_track


@pytest.fixture
def unit(clock):
    unit = FakeUnit(make_track("alpha.mp3"), clock, length=10.0)
    unit.play()
    return unit


def test_duration_sum_type():
    assert Duration.known(3.5).seconds == 3.5
    assert Duration.known(0) is Duration.UNKNOWN
    assert Duration.known(float('inf')) is Duration.UNKNOWN
    assert Duration.known(None) is Duration.UNKNOWN
    assert not Duration.UNKNOWN.is_known
    assert Duration.known(2) == Duration.known(2.0)


def test_safe_duration_prefers_known_length(unit):
    unit.extent = 4.0
    assert safe_duration(unit) == 10.0


def test_safe_duration_falls_back_to_buffered_extent(unit):
    unit.length = None
    unit.extent = 4.0
    assert safe_duration(unit) == 4.0

    unit.extent = float('nan')
    assert safe_duration(unit) == 0.0

    unit.extent = None
    assert safe_duration(unit) == 0.0


def test_progress_fraction(unit, clock):
    clock.advance(2.5)
    assert progress_fraction(unit) == pytest.approx(0.25)

    clock.advance(20)
    assert progress_fraction(unit) == 1.0

    unit.length = None
    assert progress_fraction(unit) == 0.0


def test_reporter_updates_every_frame(unit, view, clock, scheduler):
    reporter = ProgressReporter(scheduler, view)
    reporter.bind(unit)

    for _ in range(3):
        clock.advance(1.0)
        scheduler.run_frame()

    fractions = [f for key, f in view.progress_calls if f is not None]
    assert fractions == pytest.approx([0.1, 0.2, 0.3])
    assert view.get_state()["progress"][unit.track.key] == pytest.approx(0.3)
    assert scheduler.pending == 1


def test_reporter_stops_when_unit_pauses(unit, view, clock, scheduler):
    reporter = ProgressReporter(scheduler, view)
    reporter.bind(unit)
    clock.advance(1.0)
    scheduler.run_frame()

    unit.pause()
    scheduler.run_frame()

    assert view.progress_calls[-1] == (unit.track.key, None)
    assert reporter.unit is None
    assert scheduler.pending == 0


def test_unknown_duration_reports_zero(unit, view, clock, scheduler):
    unit.length = None
    reporter = ProgressReporter(scheduler, view)
    reporter.bind(unit)
    clock.advance(1.0)
    scheduler.run_frame()

    assert view.get_state()["progress"][unit.track.key] == 0.0


def test_rebinding_hides_the_previous_bar(unit, view, clock, scheduler):
    other = FakeUnit(make_track("bravo.mp3"), clock)
    other.play()
    reporter = ProgressReporter(scheduler, view)
    reporter.bind(unit)
    clock.advance(1.0)
    scheduler.run_frame()

    reporter.bind(other)
    clock.advance(1.0)
    scheduler.run_frame()

    progress = view.get_state()["progress"]
    assert unit.track.key not in progress
    assert other.track.key in progress
    assert reporter.unit is other


def test_stop_for_other_unit_is_a_no_op(unit, view, scheduler, clock):
    other = FakeUnit(make_track("bravo.mp3"), clock)
    reporter = ProgressReporter(scheduler, view)
    reporter.bind(unit)

    reporter.stop(other)

    assert reporter.unit is unit
