import threading

import pytest

from src.pkl_attendance.pkl_attendance.core.enums import AssignmentStatus, PlacementType, Role, SessionStatus
from src.pkl_attendance.pkl_attendance.core.exceptions import (
    AlreadyTapped,
    ConcurrentModification,
    Forbidden,
    GeofenceViolation,
    NotFound,
    NotTappedIn,
    OutsideWindow,
    ValidationFailure,
)
from src.pkl_attendance.pkl_attendance.core.principal import Principal

from tests.fakes import make_assignment
from tests.world import ADMIN, STUDENT, SUPERVISOR, WORK_DATE, at, build_world


def test_end_to_end_tap_in_and_out(world):
    session = world.tap_service.tap_in(1, STUDENT, 0.0, 0.0005, "https://cdn/p.jpg", now=at(7, 5))

    assert session.status == SessionStatus.IN_PROGRESS
    assert session.tap_in_distance_m == 56
    assert session.tap_in_photo == "https://cdn/p.jpg"

    closed = world.tap_service.tap_out(1, STUDENT, now=at(16, 0))

    assert closed.status == SessionStatus.COMPLETED
    assert closed.total_hours == 8.92
    assert closed.closed_by_reconciliation is False


def test_tap_in_outside_geofence_reports_distance(world):
    with pytest.raises(GeofenceViolation) as exc:
        world.tap_service.tap_in(1, STUDENT, 0.0, 0.002, now=at(8, 0))

    assert exc.value.distance_meters == 222
    assert exc.value.to_dict()["radius_meters"] == 100
    assert world.attendance.rows == {}


@pytest.mark.parametrize("hour,minute", [(5, 59), (10, 1), (13, 0)])
def test_tap_in_outside_grace_window_is_rejected(world, hour, minute):
    with pytest.raises(OutsideWindow):
        world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, now=at(hour, minute))


@pytest.mark.parametrize("hour,minute", [(6, 0), (8, 0), (10, 0)])
def test_tap_in_inside_grace_window_is_accepted(world, hour, minute):
    session = world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, now=at(hour, minute))
    assert session.status == SessionStatus.IN_PROGRESS


def test_geofence_is_checked_before_the_window(world):
    with pytest.raises(GeofenceViolation):
        world.tap_service.tap_in(1, STUDENT, 0.0, 0.01, now=at(13, 0))


def test_second_tap_in_same_day_fails(world):
    world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, now=at(8, 0))

    with pytest.raises(AlreadyTapped):
        world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, now=at(8, 5))


def test_repeated_tap_event_id_returns_the_same_session(world):
    first = world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, tap_event_id="evt-1", now=at(8, 0))
    again = world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, tap_event_id="evt-1", now=at(8, 1))

    assert again == first
    assert len(world.attendance.rows) == 1


def test_repeated_tap_out_event_id_is_not_an_error(world):
    world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, now=at(8, 0))
    first = world.tap_service.tap_out(1, STUDENT, tap_event_id="out-1", now=at(16, 0))
    again = world.tap_service.tap_out(1, STUDENT, tap_event_id="out-1", now=at(16, 2))

    assert again.tap_out_time == first.tap_out_time


def test_only_the_owning_student_can_tap(world):
    other = Principal.of(99, [Role.STUDENT])
    with pytest.raises(Forbidden):
        world.tap_service.tap_in(1, other, 0.0, 0.0, now=at(8, 0))


def test_unknown_assignment(world):
    with pytest.raises(NotFound):
        world.tap_service.tap_in(404, STUDENT, 0.0, 0.0, now=at(8, 0))


def test_inactive_assignment_cannot_tap():
    world = build_world(make_assignment(status=AssignmentStatus.ON_HOLD))
    with pytest.raises(ValidationFailure):
        world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, now=at(8, 0))


def test_out_of_range_coordinates(world):
    with pytest.raises(ValidationFailure):
        world.tap_service.tap_in(1, STUDENT, 91.0, 0.0, now=at(8, 0))


def test_flexible_placement_skips_geofence():
    world = build_world(make_assignment(placement_type=PlacementType.FLEXIBLE))

    session = world.tap_service.tap_in(1, STUDENT, -6.2, 106.8, now=at(8, 0))

    assert session.status == SessionStatus.IN_PROGRESS
    assert session.tap_in_distance_m is None


def test_zero_radius_is_kept_not_defaulted():
    world = build_world(make_assignment(radius_meters=0))

    with pytest.raises(GeofenceViolation) as exc:
        world.tap_service.tap_in(1, STUDENT, 0.0, 0.00002, now=at(8, 0))

    assert exc.value.details["radius_meters"] == 0
    assert world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, now=at(8, 0)).tap_in_distance_m == 0


def test_tap_out_without_tap_in(world):
    with pytest.raises(NotTappedIn):
        world.tap_service.tap_out(1, STUDENT, now=at(16, 0))


def test_tap_out_twice(world):
    world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, now=at(8, 0))
    world.tap_service.tap_out(1, STUDENT, now=at(16, 0))

    with pytest.raises(NotTappedIn):
        world.tap_service.tap_out(1, STUDENT, now=at(16, 5))


def test_tap_out_far_away_is_recorded_not_rejected(world):
    world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, now=at(8, 0))

    closed = world.tap_service.tap_out(1, STUDENT, 0.0, 0.01, now=at(16, 0))

    assert closed.status == SessionStatus.COMPLETED
    assert closed.tap_out_within_radius is False
    assert closed.tap_out_lng == 0.01


def test_tap_out_version_conflict(world):
    opened = world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, now=at(8, 0))
    world.attendance.fail_update_for.add(opened.session_id)

    with pytest.raises(ConcurrentModification):
        world.tap_service.tap_out(1, STUDENT, now=at(16, 0))
    assert world.attendance.get_by_id(opened.session_id).status == SessionStatus.IN_PROGRESS


def test_concurrent_tap_ins_only_one_wins(world):
    barrier = threading.Barrier(2)
    results = []

    def attempt():
        barrier.wait()
        try:
            results.append(world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, now=at(8, 0)))
        except (AlreadyTapped, ConcurrentModification) as e:
            results.append(e)

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    sessions = [r for r in results if not isinstance(r, Exception)]
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(sessions) == 1
    assert len(errors) == 1
    assert len(world.attendance.rows) == 1


def test_history_and_stats_visible_to_supervisor(world):
    world.tap_service.tap_in(1, STUDENT, 0.0, 0.0, now=at(8, 0))
    world.tap_service.tap_out(1, STUDENT, now=at(16, 30))

    history = world.tap_service.get_history(1, SUPERVISOR)
    stats = world.tap_service.get_stats(1, ADMIN)

    assert [s.work_date for s in history] == [WORK_DATE]
    assert stats.total_days == 1
    assert stats.completed_days == 1
    assert stats.total_hours == 8.5
    assert stats.attendance_rate == 100


def test_history_hidden_from_unrelated_teacher(world):
    with pytest.raises(Forbidden):
        world.tap_service.get_history(1, Principal.of(55, [Role.TEACHER]))


def test_today_returns_none_before_tap_in(world):
    assert world.tap_service.get_today(1, STUDENT, now=at(7, 0)) is None
