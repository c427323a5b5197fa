"""
Tests for the pure matrix builder: status reduction, keyword scan,
column sort and student filters.
"""

import json
from decimal import Decimal
from datetime import datetime
from itertools import permutations

import pytest

from pythink.core.config import DEFAULT_CHEATING_KEYWORDS
from pythink.services.progress_matrix import (
    CellRecord,
    CellStatus,
    CellWeight,
    ConversationRecord,
    MatrixConfig,
    MatrixView,
    ProblemRow,
    ProblemSort,
    SortDirection,
    StudentOrder,
    StudentRow,
    SubmissionRecord,
    apply_view,
    build_matrix,
    cell_weight,
    detect_cheating,
    filter_cheating,
    filter_struggling,
    next_sort_state,
    order_students,
    reduce_status,
    search_students,
    sort_by_problem,
)

CONFIG = MatrixConfig(cheating_keywords=tuple(DEFAULT_CHEATING_KEYWORDS), struggling_threshold=0.3)

P1 = ProblemRow(id=1, title="Hello", difficulty=1, category="output")
P2 = ProblemRow(id=2, title="Sum", difficulty=2, category="loop")


def _conv(student_id, problem_id, *user_texts, raw=None):
    if raw is not None:
        return ConversationRecord(student_id, problem_id, message_count=1, messages=raw)
    messages = []
    for text in user_texts:
        messages.append({"role": "user", "content": text})
        messages.append({"role": "assistant", "content": "Try a loop."})
    return ConversationRecord(
        student_id,
        problem_id,
        message_count=len(messages),
        messages=json.dumps(messages, ensure_ascii=False),
    )


class TestReduceStatus:

    def test_nothing_is_not_attempted(self):
        assert reduce_status([], has_conversation=False) is CellStatus.NOT_ATTEMPTED

    def test_conversation_only_is_in_progress(self):
        assert reduce_status([], has_conversation=True) is CellStatus.IN_PROGRESS

    def test_only_failures_is_failed(self):
        assert reduce_status([False, False], has_conversation=False) is CellStatus.FAILED

    def test_submission_wins_over_conversation(self):
        assert reduce_status([False], has_conversation=True) is CellStatus.FAILED
        assert reduce_status([True], has_conversation=True) is CellStatus.PASSED

    def test_any_pass_dominates_in_every_order(self):
        results = [False, True, False, False]
        for order in set(permutations(results)):
            assert reduce_status(order, has_conversation=False) is CellStatus.PASSED
            assert reduce_status(order, has_conversation=True) is CellStatus.PASSED


class TestDetectCheating:

    def test_answer_seeking_phrase_is_flagged(self):
        messages = [{"role": "user", "content": "그냥 정답 알려줘"}]
        assert detect_cheating(json.dumps(messages, ensure_ascii=False), DEFAULT_CHEATING_KEYWORDS)

    def test_hint_request_is_not_flagged(self):
        messages = [{"role": "user", "content": "힌트 좀 줘"}]
        assert not detect_cheating(messages, DEFAULT_CHEATING_KEYWORDS)

    def test_case_insensitive(self):
        messages = [{"role": "user", "content": "Please GIVE ME THE CODE"}]
        assert detect_cheating(messages, ["give me the code"])

    def test_assistant_messages_are_ignored(self):
        messages = [
            {"role": "user", "content": "어디가 틀렸어?"},
            {"role": "assistant", "content": "전체 코드를 다시 읽어보세요"},
        ]
        assert not detect_cheating(messages, DEFAULT_CHEATING_KEYWORDS)

    def test_phrases_are_not_matched_across_messages(self):
        messages = [
            {"role": "user", "content": "정답"},
            {"role": "user", "content": "알려"},
        ]
        assert not detect_cheating(messages, ["정답 알려"])

    @pytest.mark.parametrize("payload", ["{not json", '{"role": "user"}', "42", 17])
    def test_malformed_payload_clears_flag(self, payload):
        assert detect_cheating(payload, DEFAULT_CHEATING_KEYWORDS) is False

    def test_empty_payload(self):
        assert detect_cheating(None, DEFAULT_CHEATING_KEYWORDS) is False
        assert detect_cheating("", DEFAULT_CHEATING_KEYWORDS) is False


class TestBuildMatrix:

    def test_end_to_end_scenario(self):
        s1 = StudentRow(id=1, name="Kim", roster_number="1")
        s2 = StudentRow(id=2, name="Lee", roster_number="2")

        matrix = build_matrix(
            problems=[P1, P2],
            students=[s1, s2],
            submissions=[SubmissionRecord(student_id=1, problem_id=1, passed=True)],
            conversations=[_conv(1, 2, "힌트 좀 줘")],
            config=CONFIG,
        )

        c11 = matrix.cell(1, 1)
        assert c11.status is CellStatus.PASSED
        assert c11.ai_used is False

        c12 = matrix.cell(1, 2)
        assert c12.status is CellStatus.IN_PROGRESS
        assert c12.ai_used is True
        assert c12.cheating_flag is False
        assert c12.ai_message_count == 2

        assert matrix.cell(2, 1).status is CellStatus.NOT_ATTEMPTED
        assert matrix.cell(2, 2).status is CellStatus.NOT_ATTEMPTED

    def test_full_grid_keys(self):
        students = [StudentRow(id=i, name=f"S{i}", roster_number=str(i)) for i in (1, 2, 3)]
        matrix = build_matrix([P1, P2], students, [], [], CONFIG)
        assert set(matrix.cells) == {f"{s}:{p}" for s in (1, 2, 3) for p in (1, 2)}

    def test_records_outside_roster_or_assignment_are_ignored(self):
        s1 = StudentRow(id=1, name="Kim", roster_number="1")
        matrix = build_matrix(
            [P1],
            [s1],
            [
                SubmissionRecord(student_id=99, problem_id=1, passed=True),
                SubmissionRecord(student_id=1, problem_id=77, passed=True),
            ],
            [_conv(99, 1, "코드 줘")],
            CONFIG,
        )
        assert set(matrix.cells) == {"1:1"}
        assert matrix.cell(1, 1).status is CellStatus.NOT_ATTEMPTED

    def test_students_are_ordered_numerically_by_roster(self):
        students = [
            StudentRow(id=1, name="A", roster_number="10"),
            StudentRow(id=2, name="B", roster_number=None),
            StudentRow(id=3, name="C", roster_number="2"),
            StudentRow(id=4, name="D", roster_number="2"),
        ]
        matrix = build_matrix([P1], students, [], [], CONFIG)
        assert [s.id for s in matrix.students] == [3, 4, 1, 2]

    def test_cheating_flag_and_message_count(self):
        s1 = StudentRow(id=1, name="Kim", roster_number="1")
        matrix = build_matrix([P1], [s1], [], [_conv(1, 1, "안녕", "완성 코드 보여줘")], CONFIG)
        cell = matrix.cell(1, 1)
        assert cell.cheating_flag is True
        assert cell.ai_message_count == 4

    def test_malformed_conversation_keeps_cell(self):
        s1 = StudentRow(id=1, name="Kim", roster_number="1")
        matrix = build_matrix([P1], [s1], [], [_conv(1, 1, raw="[{broken")], CONFIG)
        cell = matrix.cell(1, 1)
        assert cell.status is CellStatus.IN_PROGRESS
        assert cell.ai_used is True
        assert cell.cheating_flag is False

    def test_teacher_review_is_passed_through(self):
        s1 = StudentRow(id=1, name="Kim", roster_number="1")
        subs = [
            SubmissionRecord(1, 1, passed=False, submitted_at=datetime(2024, 3, 1, 9, 0)),
            SubmissionRecord(
                1,
                1,
                passed=True,
                submitted_at=datetime(2024, 3, 1, 10, 0),
                teacher_score=Decimal("9.5"),
                teacher_grade="A",
                teacher_feedback="Nice loop",
            ),
        ]
        cell = build_matrix([P1], [s1], subs, [], CONFIG).cell(1, 1)
        assert cell.teacher_score == Decimal("9.5")
        assert cell.teacher_grade == "A"
        assert cell.has_feedback is True

    @pytest.mark.parametrize("reverse", [False, True])
    def test_unreadable_conversation_does_not_hide_flag(self, reverse):
        s1 = StudentRow(id=1, name="Kim", roster_number="1")
        conversations = [_conv(1, 1, "정답 알려줘"), _conv(1, 1, raw="{not json")]
        if reverse:
            conversations.reverse()

        cell = build_matrix([P1], [s1], [], conversations, CONFIG).cell(1, 1)
        assert cell.cheating_flag is True
        assert cell.ai_message_count == 3

    def test_several_conversations_are_scanned_separately(self):
        s1 = StudentRow(id=1, name="Kim", roster_number="1")
        conversations = [_conv(1, 1, "힌트 좀 줘"), _conv(1, 1, "왜 안돼?")]
        cell = build_matrix([P1], [s1], [], conversations, CONFIG).cell(1, 1)
        assert cell.cheating_flag is False
        assert cell.ai_message_count == 4

    def test_ai_message_count_absent_without_ai(self):
        s1 = StudentRow(id=1, name="Kim", roster_number="1")
        subs = [SubmissionRecord(1, 1, passed=True)]
        assert build_matrix([P1], [s1], subs, [], CONFIG).cell(1, 1).ai_message_count is None


def _matrix_for_sort():
    students = [
        StudentRow(id=1, name="A", roster_number="1"),  # self pass
        StudentRow(id=2, name="B", roster_number="2"),  # not attempted
        StudentRow(id=3, name="C", roster_number="3"),  # failed
        StudentRow(id=4, name="D", roster_number="4"),  # cheating
        StudentRow(id=5, name="E", roster_number="5"),  # AI-assisted pass
        StudentRow(id=6, name="F", roster_number="6"),  # failed
        StudentRow(id=7, name="G", roster_number="7"),  # not attempted
    ]
    submissions = [
        SubmissionRecord(1, 1, passed=True),
        SubmissionRecord(3, 1, passed=False),
        SubmissionRecord(5, 1, passed=True),
        SubmissionRecord(6, 1, passed=False),
    ]
    conversations = [_conv(4, 1, "답 알려줘"), _conv(5, 1, "왜 안돼?")]
    return build_matrix([P1, P2], students, submissions, conversations, CONFIG)


class TestSorting:

    def test_cell_weight_order(self):
        assert cell_weight(CellRecord(status=CellStatus.PASSED, cheating_flag=True)) is CellWeight.CHEATING
        assert cell_weight(CellRecord(status=CellStatus.FAILED)) is CellWeight.FAILED
        assert cell_weight(CellRecord(status=CellStatus.IN_PROGRESS, ai_used=True)) is CellWeight.CHEATING
        assert cell_weight(CellRecord(status=CellStatus.PASSED, ai_used=True)) is CellWeight.AI_ASSISTED_PASS
        assert cell_weight(CellRecord(status=CellStatus.PASSED)) is CellWeight.SELF_PASS
        assert cell_weight(CellRecord()) is CellWeight.NOT_ATTEMPTED
        assert CellWeight.CHEATING < CellWeight.FAILED < CellWeight.AI_ASSISTED_PASS
        assert CellWeight.AI_ASSISTED_PASS < CellWeight.SELF_PASS < CellWeight.NOT_ATTEMPTED
        assert CellWeight.IN_PROGRESS == CellWeight.CHEATING

    def test_chatting_without_submission_ties_with_cheating(self):
        students = [
            StudentRow(id=1, name="A", roster_number="1"),  # failed
            StudentRow(id=2, name="B", roster_number="2"),  # in progress
            StudentRow(id=3, name="C", roster_number="3"),  # cheating
        ]
        matrix = build_matrix(
            [P1],
            students,
            [SubmissionRecord(1, 1, passed=False)],
            [_conv(2, 1, "힌트 좀 줘"), _conv(3, 1, "코드 줘")],
            CONFIG,
        )
        ordered = sort_by_problem(matrix.students, matrix, 1, SortDirection.ASC)
        assert [s.id for s in ordered] == [2, 3, 1]

    def test_ascending_sort(self):
        matrix = _matrix_for_sort()
        ordered = sort_by_problem(matrix.students, matrix, 1, SortDirection.ASC)
        assert [s.id for s in ordered] == [4, 3, 6, 5, 1, 2, 7]

    def test_descending_keeps_roster_order_for_ties(self):
        matrix = _matrix_for_sort()
        ordered = sort_by_problem(matrix.students, matrix, 1, SortDirection.DESC)
        assert [s.id for s in ordered] == [2, 7, 1, 5, 3, 6, 4]

    def test_column_without_activity_keeps_roster_order(self):
        matrix = _matrix_for_sort()
        ordered = sort_by_problem(matrix.students, matrix, 2, SortDirection.ASC)
        assert [s.id for s in ordered] == [1, 2, 3, 4, 5, 6, 7]

    def test_header_click_cycle(self):
        first = next_sort_state(None, 1)
        assert first == ProblemSort(1, SortDirection.ASC)
        second = next_sort_state(first, 1)
        assert second == ProblemSort(1, SortDirection.DESC)
        assert next_sort_state(second, 1) is None
        assert next_sort_state(second, 2) == ProblemSort(2, SortDirection.ASC)


class TestFilters:

    def _matrix_with_passes(self, passes_by_student, total=10):
        problems = [ProblemRow(id=i, title=f"P{i}", difficulty=1, category="loop") for i in range(1, total + 1)]
        students = [StudentRow(id=sid, name=f"S{sid}", roster_number=str(sid)) for sid in passes_by_student]
        submissions = [
            SubmissionRecord(sid, pid, passed=True)
            for sid, count in passes_by_student.items()
            for pid in range(1, count + 1)
        ]
        return build_matrix(problems, students, submissions, [], CONFIG)

    def test_struggling_boundary_is_strictly_below(self):
        matrix = self._matrix_with_passes({1: 2, 2: 3, 3: 0})
        struggling = filter_struggling(matrix.students, matrix, 0.3)
        assert [s.id for s in struggling] == [1, 3]

    def test_struggling_threshold_is_injectable(self):
        matrix = self._matrix_with_passes({1: 2, 2: 3})
        assert [s.id for s in filter_struggling(matrix.students, matrix, 0.5)] == [1, 2]

    def test_no_problems_means_nobody_struggles(self):
        matrix = build_matrix([], [StudentRow(1, "A", "1")], [], [], CONFIG)
        assert filter_struggling(matrix.students, matrix, 0.3) == []

    def test_cheating_filter(self):
        matrix = _matrix_for_sort()
        assert [s.id for s in filter_cheating(matrix.students, matrix)] == [4]

    def test_search_by_name_or_number(self):
        students = [
            StudentRow(1, "Kim Minji", "3"),
            StudentRow(2, "Park Jisoo", "13"),
            StudentRow(3, "Lee Seo", None),
        ]
        assert [s.id for s in search_students(students, "  MINJI ")] == [1]
        assert [s.id for s in search_students(students, "3")] == [1, 2]
        assert [s.id for s in search_students(students, "")] == [1, 2, 3]

    def test_apply_view_search_then_filters_then_sort(self):
        matrix = _matrix_for_sort()
        view = MatrixView(
            search="",
            struggling_only=True,
            cheating_only=False,
            sort=ProblemSort(1, SortDirection.ASC),
        )
        # 2 problems: one pass is 50%, so only students with no pass remain
        visible = apply_view(matrix, view, CONFIG)
        assert [s.id for s in visible] == [4, 3, 6, 2, 7]

    def test_apply_view_filters_are_combined(self):
        matrix = _matrix_for_sort()
        view = MatrixView(struggling_only=True, cheating_only=True)
        assert [s.id for s in apply_view(matrix, view, CONFIG)] == [4]

        view = MatrixView(search="A", cheating_only=True)
        assert apply_view(matrix, view, CONFIG) == []

    def test_default_view_is_roster_order(self):
        matrix = _matrix_for_sort()
        assert [s.id for s in apply_view(matrix, MatrixView(), CONFIG)] == [1, 2, 3, 4, 5, 6, 7]


class TestStudentOrder:

    def _matrix(self):
        students = [
            StudentRow(id=1, name="Yoon", roster_number="1"),
            StudentRow(id=2, name="ahn", roster_number="2"),
            StudentRow(id=3, name="Choi", roster_number="3"),
            StudentRow(id=4, name="Baek", roster_number="4"),
        ]
        submissions = [
            SubmissionRecord(3, 1, passed=True),
            SubmissionRecord(3, 2, passed=True),
            SubmissionRecord(4, 1, passed=True),
            SubmissionRecord(2, 1, passed=True),
            SubmissionRecord(1, 1, passed=False),
        ]
        return build_matrix([P1, P2], students, submissions, [], CONFIG)

    def test_number_order_is_roster_order(self):
        matrix = self._matrix()
        assert [s.id for s in order_students(matrix.students, matrix)] == [1, 2, 3, 4]

    def test_name_order_ignores_case(self):
        matrix = self._matrix()
        ordered = order_students(matrix.students, matrix, StudentOrder.NAME)
        assert [s.name for s in ordered] == ["ahn", "Baek", "Choi", "Yoon"]

    def test_progress_order_most_passed_first(self):
        matrix = self._matrix()
        ordered = order_students(matrix.students, matrix, StudentOrder.PROGRESS)
        # 2 and 4 both passed one problem; roster order breaks the tie
        assert [s.id for s in ordered] == [3, 2, 4, 1]

    def test_apply_view_uses_row_order(self):
        matrix = self._matrix()
        view = MatrixView(order=StudentOrder.PROGRESS)
        assert [s.id for s in apply_view(matrix, view, CONFIG)] == [3, 2, 4, 1]

    def test_column_sort_takes_precedence_over_row_order(self):
        matrix = self._matrix()
        view = MatrixView(order=StudentOrder.NAME, sort=ProblemSort(2, SortDirection.ASC))
        # P2: only student 3 passed; everyone else is not attempted
        assert [s.id for s in apply_view(matrix, view, CONFIG)] == [3, 1, 2, 4]
