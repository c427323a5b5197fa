# pythink/services/progress_matrix.py
"""
Student x problem progress matrix for the teacher live dashboard.

Everything in this module is a pure function of the records handed in:
no database access, no settings lookups, no shared state. The dashboard
service fetches the rows and passes them here together with a
MatrixConfig.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum, IntEnum
from functools import reduce
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)


class CellStatus(str, Enum):
    NOT_ATTEMPTED = "NOT_ATTEMPTED"
    IN_PROGRESS = "IN_PROGRESS"
    FAILED = "FAILED"
    PASSED = "PASSED"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class StudentOrder(str, Enum):
    """Row order used when no problem column is sorted."""

    NUMBER = "number"
    NAME = "name"
    PROGRESS = "progress"


class CellWeight(IntEnum):
    """Column sort weight; lower sorts first in ascending order."""

    CHEATING = 0
    # chatting without a submission ranks with cheating
    IN_PROGRESS = 0
    FAILED = 1
    AI_ASSISTED_PASS = 2
    SELF_PASS = 3
    NOT_ATTEMPTED = 4


# ----------------------------------------------------------------------
# Input records
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class ProblemRow:
    id: int
    title: str
    difficulty: int
    category: str


@dataclass(frozen=True)
class StudentRow:
    id: int
    name: str
    roster_number: Optional[str] = None


@dataclass(frozen=True)
class SubmissionRecord:
    student_id: int
    problem_id: int
    passed: bool
    submitted_at: Optional[datetime] = None
    teacher_score: Optional[Decimal] = None
    teacher_grade: Optional[str] = None
    teacher_feedback: Optional[str] = None

    @property
    def reviewed(self) -> bool:
        return (
            self.teacher_score is not None
            or bool(self.teacher_grade)
            or bool(self.teacher_feedback)
        )


@dataclass(frozen=True)
class ConversationRecord:
    student_id: int
    problem_id: int
    message_count: int
    # raw JSON text as stored, or an already decoded list
    messages: Union[str, List[Any], None] = None


@dataclass(frozen=True)
class MatrixConfig:
    cheating_keywords: Tuple[str, ...]
    struggling_threshold: float = 0.3
    keywords_version: str = ""


# ----------------------------------------------------------------------
# Output records
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class CellRecord:
    status: CellStatus = CellStatus.NOT_ATTEMPTED
    ai_used: bool = False
    ai_message_count: Optional[int] = None
    cheating_flag: bool = False
    teacher_score: Optional[Decimal] = None
    teacher_grade: Optional[str] = None
    has_feedback: bool = False


EMPTY_CELL = CellRecord()


def cell_key(student_id: Any, problem_id: Any) -> str:
    return f"{student_id}:{problem_id}"


@dataclass
class ProgressMatrix:
    problems: List[ProblemRow]
    students: List[StudentRow]
    cells: Dict[str, CellRecord] = field(default_factory=dict)

    def cell(self, student_id: Any, problem_id: Any) -> CellRecord:
        return self.cells.get(cell_key(student_id, problem_id), EMPTY_CELL)

    def passed_count(self, student_id: Any) -> int:
        return sum(
            1
            for p in self.problems
            if self.cell(student_id, p.id).status is CellStatus.PASSED
        )


# ----------------------------------------------------------------------
# Status reduction
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class _SubmissionEvent:
    passed: bool


@dataclass(frozen=True)
class _ConversationEvent:
    pass


_Event = Union[_SubmissionEvent, _ConversationEvent]


def _advance(status: CellStatus, event: _Event) -> CellStatus:
    if isinstance(event, _ConversationEvent):
        # an open chat only matters while nothing was submitted
        return CellStatus.IN_PROGRESS if status is CellStatus.NOT_ATTEMPTED else status

    if event.passed:
        return CellStatus.PASSED
    if status is CellStatus.PASSED:
        return status
    return CellStatus.FAILED


def reduce_status(submission_results: Iterable[bool], has_conversation: bool) -> CellStatus:
    """
    Fold a pairing's submission pass flags and conversation presence
    into a single CellStatus. The result does not depend on the order
    of submission_results.
    """
    events: List[_Event] = [_SubmissionEvent(passed=bool(p)) for p in submission_results]
    if has_conversation:
        events.append(_ConversationEvent())
    return reduce(_advance, events, CellStatus.NOT_ATTEMPTED)


# ----------------------------------------------------------------------
# Cheating keyword scan
# ----------------------------------------------------------------------


def _decode_messages(messages: Union[str, List[Any], None]) -> List[Any]:
    if messages is None:
        return []
    if isinstance(messages, (str, bytes)):
        decoded = json.loads(messages or "[]")
    else:
        decoded = messages
    if not isinstance(decoded, list):
        raise ValueError("conversation payload is not a list")
    return decoded


def detect_cheating(
    messages: Union[str, List[Any], None],
    keywords: Sequence[str],
) -> bool:
    """
    True iff a user-authored message contains one of the keywords
    (case-insensitive substring). Unparseable payloads yield False.
    """
    try:
        decoded = _decode_messages(messages)
    except (ValueError, TypeError) as e:
        logger.warning(f"Unreadable conversation payload, cheating flag cleared: {e}")
        return False

    lowered = [kw.lower() for kw in keywords if kw]
    for message in decoded:
        if not isinstance(message, dict) or message.get("role") != "user":
            continue
        content = message.get("content")
        if not isinstance(content, str):
            continue
        text = content.lower()
        if any(kw in text for kw in lowered):
            return True
    return False


# ----------------------------------------------------------------------
# Matrix construction
# ----------------------------------------------------------------------


def roster_number_key(roster_number: Optional[str], name: str) -> Tuple[int, int, str, str]:
    """Numeric roster numbers first (numerically), then other labels, then unnumbered."""
    number = (roster_number or "").strip()
    if number.isdigit():
        return (0, int(number), "", name)
    if number:
        return (1, 0, number, name)
    return (2, 0, "", name)


def roster_sort_key(student: StudentRow) -> Tuple[int, int, str, str]:
    return roster_number_key(student.roster_number, student.name)


def _review_source(records: List[SubmissionRecord]) -> Optional[SubmissionRecord]:
    reviewed = [r for r in records if r.reviewed]
    if not reviewed:
        return None
    # latest reviewed submission; records without a timestamp count as oldest
    return max(reviewed, key=lambda r: (r.submitted_at is not None, r.submitted_at or datetime.min))


def _build_cell(
    submissions: List[SubmissionRecord],
    conversations: List[ConversationRecord],
    config: MatrixConfig,
) -> CellRecord:
    status = reduce_status((s.passed for s in submissions), bool(conversations))
    review = _review_source(submissions)

    return CellRecord(
        status=status,
        ai_used=bool(conversations),
        ai_message_count=sum(c.message_count for c in conversations) if conversations else None,
        # each payload is scanned on its own; an unreadable one contributes nothing
        cheating_flag=any(
            detect_cheating(c.messages, config.cheating_keywords) for c in conversations
        ),
        teacher_score=review.teacher_score if review else None,
        teacher_grade=review.teacher_grade if review else None,
        has_feedback=bool(review and review.teacher_feedback),
    )


def build_matrix(
    problems: Sequence[ProblemRow],
    students: Sequence[StudentRow],
    submissions: Iterable[SubmissionRecord],
    conversations: Iterable[ConversationRecord],
    config: MatrixConfig,
) -> ProgressMatrix:
    """
    Build the full grid: one cell for every (student, problem) pair.

    Records for students no longer on the roster or for problems no
    longer assigned are ignored. When a pairing has several
    conversation rows their message counts are added up and any of them
    can raise the cheating flag.
    """
    problem_list = list(problems)
    student_list = sorted(students, key=roster_sort_key)

    problem_ids = {p.id for p in problem_list}
    student_ids = {s.id for s in student_list}

    subs_by_pair: Dict[Tuple[Any, Any], List[SubmissionRecord]] = {}
    for sub in submissions:
        if sub.student_id in student_ids and sub.problem_id in problem_ids:
            subs_by_pair.setdefault((sub.student_id, sub.problem_id), []).append(sub)

    convs_by_pair: Dict[Tuple[Any, Any], List[ConversationRecord]] = {}
    for conv in conversations:
        if conv.student_id in student_ids and conv.problem_id in problem_ids:
            convs_by_pair.setdefault((conv.student_id, conv.problem_id), []).append(conv)

    cells: Dict[str, CellRecord] = {}
    for student in student_list:
        for problem in problem_list:
            pair = (student.id, problem.id)
            cells[cell_key(student.id, problem.id)] = _build_cell(
                subs_by_pair.get(pair, []),
                convs_by_pair.get(pair, []),
                config,
            )

    return ProgressMatrix(problems=problem_list, students=student_list, cells=cells)


# ----------------------------------------------------------------------
# Sorting and filtering
# ----------------------------------------------------------------------


def cell_weight(cell: CellRecord) -> CellWeight:
    if cell.cheating_flag:
        return CellWeight.CHEATING
    if cell.status is CellStatus.FAILED:
        return CellWeight.FAILED
    if cell.status is CellStatus.IN_PROGRESS:
        return CellWeight.IN_PROGRESS
    if cell.status is CellStatus.PASSED:
        return CellWeight.AI_ASSISTED_PASS if cell.ai_used else CellWeight.SELF_PASS
    return CellWeight.NOT_ATTEMPTED


@dataclass(frozen=True)
class ProblemSort:
    problem_id: Any
    direction: SortDirection = SortDirection.ASC


def next_sort_state(current: Optional[ProblemSort], clicked_problem_id: Any) -> Optional[ProblemSort]:
    """Column header toggle: ascending, then descending, then back to roster order."""
    if current is None or current.problem_id != clicked_problem_id:
        return ProblemSort(problem_id=clicked_problem_id, direction=SortDirection.ASC)
    if current.direction is SortDirection.ASC:
        return ProblemSort(problem_id=clicked_problem_id, direction=SortDirection.DESC)
    return None


def sort_by_problem(
    students: Sequence[StudentRow],
    matrix: ProgressMatrix,
    problem_id: Any,
    direction: SortDirection = SortDirection.ASC,
) -> List[StudentRow]:
    sign = 1 if direction is SortDirection.ASC else -1
    return sorted(
        students,
        key=lambda s: (sign * int(cell_weight(matrix.cell(s.id, problem_id))), roster_sort_key(s)),
    )


def is_struggling(matrix: ProgressMatrix, student_id: Any, threshold: float) -> bool:
    total = len(matrix.problems)
    if total == 0:
        return False
    return matrix.passed_count(student_id) / total < threshold


def filter_struggling(
    students: Sequence[StudentRow],
    matrix: ProgressMatrix,
    threshold: float,
) -> List[StudentRow]:
    return [s for s in students if is_struggling(matrix, s.id, threshold)]


def filter_cheating(students: Sequence[StudentRow], matrix: ProgressMatrix) -> List[StudentRow]:
    return [
        s
        for s in students
        if any(matrix.cell(s.id, p.id).cheating_flag for p in matrix.problems)
    ]


def search_students(students: Sequence[StudentRow], query: str) -> List[StudentRow]:
    q = (query or "").strip().lower()
    if not q:
        return list(students)
    return [
        s
        for s in students
        if q in s.name.lower() or q in (s.roster_number or "").lower()
    ]


def order_students(
    students: Sequence[StudentRow],
    matrix: ProgressMatrix,
    order: StudentOrder = StudentOrder.NUMBER,
) -> List[StudentRow]:
    """
    NUMBER is roster order, NAME is alphabetical, PROGRESS puts the most
    passed problems first. Ties fall back to roster order.
    """
    if order is StudentOrder.NAME:
        return sorted(students, key=lambda s: (s.name.casefold(), roster_sort_key(s)))
    if order is StudentOrder.PROGRESS:
        return sorted(students, key=lambda s: (-matrix.passed_count(s.id), roster_sort_key(s)))
    return sorted(students, key=roster_sort_key)


@dataclass(frozen=True)
class MatrixView:
    search: str = ""
    struggling_only: bool = False
    cheating_only: bool = False
    sort: Optional[ProblemSort] = None
    order: StudentOrder = StudentOrder.NUMBER


def apply_view(matrix: ProgressMatrix, view: MatrixView, config: MatrixConfig) -> List[StudentRow]:
    """
    Search, then the selected filters (all must hold), then ordering: a
    problem column sort when one is active, otherwise the row order.
    """
    result = search_students(matrix.students, view.search)
    if view.struggling_only:
        result = filter_struggling(result, matrix, config.struggling_threshold)
    if view.cheating_only:
        result = filter_cheating(result, matrix)
    if view.sort is not None:
        return sort_by_problem(result, matrix, view.sort.problem_id, view.sort.direction)
    return order_students(result, matrix, view.order)
