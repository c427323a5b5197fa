"""
Classroom, roster and assignment service tests.
"""

import pytest

from pythink.core.errors import ConflictError, NotFoundError, PermissionDeniedError
from pythink.schemas.classroom import AssignmentCreate, AssignmentUpdate, ClassroomCreate
from pythink.services import assignment_service, classroom_service


class TestCreateClassroom:

    def test_starter_problems_are_assigned(self, db_session, test_teacher, make_problem):
        first = make_problem("Hello")
        second = make_problem("Print twice")
        make_problem("Hard one", difficulty=3)
        make_problem("Draft", status="draft")

        classroom = classroom_service.create_classroom(
            db_session,
            teacher=test_teacher,
            obj_in=ClassroomCreate(name="2-3"),
            default_ai_level=1,
        )

        assert len(classroom.join_code) == 5
        assert classroom.join_code.isdigit()

        rows = assignment_service.list_active_assignments(db_session, classroom.id)
        assert [problem.id for _, problem in rows] == [first.id, second.id]
        assert all(a.ai_level == 1 for a, _ in rows)
        assert all(a.gallery_enabled is False for a, _ in rows)

    def test_duplicate_name_is_rejected(self, db_session, test_teacher):
        classroom_service.create_classroom(db_session, teacher=test_teacher, obj_in=ClassroomCreate(name="2-3"))
        with pytest.raises(ConflictError):
            classroom_service.create_classroom(
                db_session, teacher=test_teacher, obj_in=ClassroomCreate(name="2-3")
            )

    def test_same_name_for_different_teachers(self, db_session, test_teacher, other_teacher):
        a = classroom_service.create_classroom(db_session, teacher=test_teacher, obj_in=ClassroomCreate(name="2-3"))
        b = classroom_service.create_classroom(db_session, teacher=other_teacher, obj_in=ClassroomCreate(name="2-3"))
        assert a.id != b.id
        assert a.join_code != b.join_code

    def test_list_with_student_count(self, db_session, test_teacher, test_classroom, enroll):
        enroll(test_classroom, "Kim", number="1")
        enroll(test_classroom, "Lee", number="2")
        rows = classroom_service.list_classrooms_for_teacher(db_session, teacher=test_teacher)
        assert [(c.id, count) for c, count in rows] == [(test_classroom.id, 2)]


class TestRoster:

    def test_join_is_idempotent(self, db_session, test_classroom, make_user):
        student = make_user("kim@test.com", "Kim")
        classroom_service.join_classroom(db_session, student=student, join_code=" 12345 ", student_number="7")
        classroom_service.join_classroom(db_session, student=student, join_code="12345", student_number="9")

        roster = classroom_service.list_roster(db_session, test_classroom.id)
        assert len(roster) == 1
        assert roster[0][1].student_number == "7"

    def test_invalid_join_code(self, db_session, test_classroom, make_user):
        student = make_user("kim@test.com", "Kim")
        with pytest.raises(NotFoundError):
            classroom_service.join_classroom(db_session, student=student, join_code="00000")

    def test_roster_order_is_numeric(self, db_session, test_classroom, enroll):
        enroll(test_classroom, "Choi", number="10")
        enroll(test_classroom, "Kim", number="2")
        enroll(test_classroom, "Ahn", number=None)
        enroll(test_classroom, "Lee", number="1")

        names = [user.name for user, _ in classroom_service.list_roster(db_session, test_classroom.id)]
        assert names == ["Lee", "Kim", "Choi", "Ahn"]

    def test_student_updates_own_number(self, db_session, test_classroom, enroll):
        student = enroll(test_classroom, "Kim", number="1")
        member = classroom_service.update_roster_number(
            db_session,
            classroom_id=test_classroom.id,
            student_id=student.id,
            actor=student,
            student_number=" 15 ",
        )
        assert member.student_number == "15"

    def test_teacher_updates_number(self, db_session, test_teacher, test_classroom, enroll):
        student = enroll(test_classroom, "Kim", number="1")
        member = classroom_service.update_roster_number(
            db_session,
            classroom_id=test_classroom.id,
            student_id=student.id,
            actor=test_teacher,
            student_number="",
        )
        assert member.student_number is None

    def test_classmate_cannot_update_number(self, db_session, test_classroom, enroll):
        kim = enroll(test_classroom, "Kim", number="1")
        lee = enroll(test_classroom, "Lee", number="2")
        with pytest.raises(PermissionDeniedError):
            classroom_service.update_roster_number(
                db_session,
                classroom_id=test_classroom.id,
                student_id=kim.id,
                actor=lee,
                student_number="3",
            )

    def test_unenroll(self, db_session, test_classroom, enroll):
        student = enroll(test_classroom, "Kim", number="1")
        classroom_service.unenroll_student(db_session, classroom=test_classroom, student_id=student.id)
        assert classroom_service.list_roster(db_session, test_classroom.id) == []
        with pytest.raises(NotFoundError):
            classroom_service.unenroll_student(db_session, classroom=test_classroom, student_id=student.id)

    def test_owner_check(self, db_session, test_classroom, other_teacher, test_teacher):
        assert classroom_service.get_owned_classroom(
            db_session, classroom_id=test_classroom.id, teacher_id=test_teacher.id
        ).id == test_classroom.id
        with pytest.raises(PermissionDeniedError):
            classroom_service.get_owned_classroom(
                db_session, classroom_id=test_classroom.id, teacher_id=other_teacher.id
            )


class TestAssignments:

    def test_assign_appends_in_order(self, db_session, test_classroom, make_problem):
        p1 = make_problem("A")
        p2 = make_problem("B")
        a1 = assignment_service.assign_problem(
            db_session, classroom=test_classroom, obj_in=AssignmentCreate(problem_id=p2.id, ai_level=0)
        )
        a2 = assignment_service.assign_problem(
            db_session,
            classroom=test_classroom,
            obj_in=AssignmentCreate(problem_id=p1.id, ai_level=4, gallery_enabled=True),
        )
        assert (a1.sort_order, a2.sort_order) == (0, 1)
        rows = assignment_service.list_active_assignments(db_session, test_classroom.id)
        assert [p.id for _, p in rows] == [p2.id, p1.id]

    def test_reassign_reactivates(self, db_session, test_classroom, make_problem):
        p1 = make_problem("A")
        a = assignment_service.assign_problem(
            db_session, classroom=test_classroom, obj_in=AssignmentCreate(problem_id=p1.id)
        )
        assignment_service.update_assignment(
            db_session, assignment=a, obj_in=AssignmentUpdate(is_active=False)
        )
        assert assignment_service.list_active_assignments(db_session, test_classroom.id) == []

        again = assignment_service.assign_problem(
            db_session, classroom=test_classroom, obj_in=AssignmentCreate(problem_id=p1.id, ai_level=3)
        )
        assert again.id == a.id
        assert again.is_active is True
        assert again.ai_level == 3

    def test_unknown_problem(self, db_session, test_classroom):
        with pytest.raises(NotFoundError):
            assignment_service.assign_problem(
                db_session, classroom=test_classroom, obj_in=AssignmentCreate(problem_id=999)
            )

    def test_ai_level_lookup(self, db_session, test_classroom, make_problem, assign):
        p1 = make_problem("A")
        assign(test_classroom, p1, ai_level=0)
        assert assignment_service.ai_level_for(
            db_session, classroom_id=test_classroom.id, problem_id=p1.id, default=2
        ) == 0
        assert assignment_service.ai_level_for(db_session, classroom_id=None, problem_id=p1.id, default=2) == 2
