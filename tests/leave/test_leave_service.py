from datetime import datetime

import pytest

from src.pkl_attendance.pkl_attendance.core.enums import (
    ApprovalStatus,
    Decision,
    LeavePermitStatus,
    LeaveType,
    RequesterType,
    Role,
)
from src.pkl_attendance.pkl_attendance.core.exceptions import (
    AlreadyDecided,
    ConcurrentModification,
    Forbidden,
    ValidationFailure,
)
from src.pkl_attendance.pkl_attendance.core.principal import Principal

from tests.world import STUDENT, SUPERVISOR

START = datetime(2025, 3, 3, 10, 0)
PIKET = Principal.of(40, [Role.TEACHER, Role.PIKET])
WALI_KELAS = Principal.of(41, [Role.TEACHER, Role.WALI_KELAS])
WAKA = Principal.of(42, [Role.TEACHER, Role.WAKA])


def _student_permit(world, members=(), leave_type=LeaveType.INDIVIDUAL):
    return world.leave_service.create_leave_permit(
        STUDENT, leave_type, "Family matter at home", START, datetime(2025, 3, 3, 12, 0), members
    )


def test_student_permit_goes_through_duty_officer_then_homeroom(world):
    permit = _student_permit(world)
    assert permit.status == LeavePermitStatus.OPEN
    assert permit.requester_type == RequesterType.STUDENT
    assert permit.member_ids == (10,)

    review = world.leave_service.start_review(permit.permit_id, PIKET)
    assert review.status == "Proses"

    result = world.leave_service.decide_leave_permit(
        permit.permit_id, WALI_KELAS, Decision.APPROVED, confirmed_return=datetime(2025, 3, 3, 13, 0)
    )

    assert result.status == "Close"
    stored = world.permits.get(permit.permit_id)
    assert stored.status == LeavePermitStatus.CLOSE
    assert stored.confirmed_return == datetime(2025, 3, 3, 13, 0)
    assert [m.status for m in stored.members] == [ApprovalStatus.APPROVED]


def test_homeroom_cannot_skip_the_duty_officer(world):
    permit = _student_permit(world)

    with pytest.raises(Forbidden):
        world.leave_service.decide_leave_permit(permit.permit_id, WALI_KELAS, Decision.APPROVED)


def test_teacher_permit_starts_in_review_and_needs_leadership(world):
    permit = world.leave_service.create_leave_permit(SUPERVISOR, "Individual", "Medical appointment", START)
    assert permit.requester_type == RequesterType.TEACHER
    assert permit.status == LeavePermitStatus.PROSES

    with pytest.raises(Forbidden):
        world.leave_service.decide_leave_permit(permit.permit_id, PIKET, Decision.APPROVED)

    result = world.leave_service.decide_leave_permit(permit.permit_id, WAKA, Decision.APPROVED)
    assert result.status == "Close"


def test_teacher_permits_are_individual_only(world):
    with pytest.raises(ValidationFailure):
        world.leave_service.create_leave_permit(SUPERVISOR, "Group", "Team outing", START, member_ids=[21])


def test_requester_cannot_approve_own_permit(world):
    permit = world.leave_service.create_leave_permit(WAKA, "Individual", "Dentist visit", START)

    with pytest.raises(Forbidden):
        world.leave_service.decide_leave_permit(permit.permit_id, WAKA, Decision.APPROVED)


def test_group_approval_is_all_or_nothing(world):
    permit = _student_permit(world, members=[11, 12], leave_type=LeaveType.GROUP)
    assert permit.member_ids == (10, 11, 12)
    world.leave_service.start_review(permit.permit_id, PIKET)
    world.permits.fail_members.add(12)

    with pytest.raises(ConcurrentModification):
        world.leave_service.decide_leave_permit(permit.permit_id, WALI_KELAS, Decision.APPROVED)

    stored = world.permits.get(permit.permit_id)
    assert stored.status == LeavePermitStatus.PROSES
    assert all(m.status == ApprovalStatus.PENDING for m in stored.members)
    assert len(world.decisions.list_for(request_kind="leave_permit", request_id=permit.permit_id)) == 1


def test_group_approval_marks_every_member(world):
    permit = _student_permit(world, members=[11, 12, 11, 10], leave_type=LeaveType.GROUP)
    world.leave_service.start_review(permit.permit_id, PIKET)

    world.leave_service.decide_leave_permit(permit.permit_id, WALI_KELAS, Decision.APPROVED)

    stored = world.permits.get(permit.permit_id)
    assert stored.member_ids == (10, 11, 12)
    assert all(m.status == ApprovalStatus.APPROVED for m in stored.members)


def test_rejection_requires_reason_and_marks_members(world):
    permit = _student_permit(world)
    world.leave_service.start_review(permit.permit_id, PIKET)

    with pytest.raises(ValidationFailure):
        world.leave_service.decide_leave_permit(permit.permit_id, WALI_KELAS, Decision.REJECTED)

    result = world.leave_service.decide_leave_permit(
        permit.permit_id, WALI_KELAS, Decision.REJECTED, "Exam in progress"
    )
    assert result.status == "Ditolak"
    stored = world.permits.get(permit.permit_id)
    assert [m.status for m in stored.members] == [ApprovalStatus.REJECTED]

    with pytest.raises(AlreadyDecided):
        world.leave_service.decide_leave_permit(permit.permit_id, WAKA, Decision.APPROVED)


def test_duty_officer_can_reject_at_review(world):
    permit = _student_permit(world)

    result = world.leave_service.decide_leave_permit(permit.permit_id, PIKET, Decision.REJECTED, "No parent consent")

    assert result.status == "Ditolak"


def test_review_only_from_open(world):
    permit = world.leave_service.create_leave_permit(SUPERVISOR, "Individual", "Medical appointment", START)
    with pytest.raises(ValidationFailure):
        world.leave_service.start_review(permit.permit_id, PIKET)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"leave_type": "Individual", "reason": "sick"},
        {"leave_type": "Group", "reason": "Class trip to museum"},
        {"leave_type": "Individual", "reason": "Family matter", "member_ids": [11]},
        {"leave_type": "Individual", "reason": "Family matter", "estimated_return": datetime(2025, 3, 3, 9, 0)},
        {"leave_type": "Holiday", "reason": "Family matter"},
    ],
)
def test_invalid_permits(world, kwargs):
    with pytest.raises(ValidationFailure):
        world.leave_service.create_leave_permit(STUDENT, start_time=START, **kwargs)


def test_permit_cannot_start_on_a_weekend(world):
    saturday = datetime(2025, 3, 8, 10, 0)

    with pytest.raises(ValidationFailure, match="Saturday or Sunday"):
        world.leave_service.create_leave_permit(STUDENT, "Individual", "Family matter", saturday)
    assert world.permits.rows == {}


def test_student_cannot_file_as_teacher(world):
    with pytest.raises(Forbidden):
        world.leave_service.create_leave_permit(
            STUDENT, "Individual", "Family matter", START, requester_type="Teacher"
        )


def test_complete_records_return_once(world):
    permit = _student_permit(world)
    world.leave_service.start_review(permit.permit_id, PIKET)
    world.leave_service.decide_leave_permit(permit.permit_id, WALI_KELAS, Decision.APPROVED)

    done = world.leave_service.complete_leave_permit(
        permit.permit_id, STUDENT, "Back in class", returned_at=datetime(2025, 3, 3, 12, 30)
    )
    assert done.returned_at == datetime(2025, 3, 3, 12, 30)
    assert done.completion_notes == "Back in class"

    with pytest.raises(ValidationFailure):
        world.leave_service.complete_leave_permit(permit.permit_id, PIKET)


def test_cannot_complete_before_approval(world):
    permit = _student_permit(world)
    with pytest.raises(ValidationFailure):
        world.leave_service.complete_leave_permit(permit.permit_id, STUDENT)


def test_awaiting_lists_follow_the_chain(world):
    open_permit = _student_permit(world)
    reviewed = _student_permit(world)
    world.leave_service.start_review(reviewed.permit_id, PIKET)

    assert [p.permit_id for p in world.leave_service.list_awaiting(PIKET)] == [open_permit.permit_id]
    assert [p.permit_id for p in world.leave_service.list_awaiting(WALI_KELAS)] == [reviewed.permit_id]
    assert world.leave_service.list_awaiting(STUDENT) == []
