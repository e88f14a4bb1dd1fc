import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add repo root to sys.path so we can import config / exam_cbt / api
ROOT_PATH = Path(__file__).resolve().parent.parent
if ROOT_PATH.as_posix() not in sys.path:
    sys.path.insert(0, ROOT_PATH.as_posix())

from exam_cbt.models.question_model import Question
from exam_cbt.services.persistence import MemoryStorage, PersistenceAdapter
from exam_cbt.services.session_store import ExamSessionStore


class FakeClock:
    """고정 시각에서 시작해 수동으로만 흐르는 시계."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def _choice(qid: int, correct: str = "a", qtype: str = "singleChoice", points: float = 1) -> Question:
    return Question.model_validate({
        "id": qid,
        "text": f"문제 {qid}",
        "type": qtype,
        "pointValue": points,
        "options": [
            {"id": opt, "text": opt.upper(), "isCorrect": opt == correct}
            for opt in ("a", "b", "c", "d")
        ],
    })


# Common test fixtures
@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def three_questions():
    """배점 [1, 1, 1], 정답은 모두 'a'."""
    return [_choice(101), _choice(102), _choice(103)]


@pytest.fixture
def mixed_questions():
    """유형별 문제 한 개씩."""
    return [
        Question.model_validate({
            "id": 1,
            "text": "복수 선택",
            "type": "multipleChoice",
            "pointValue": 2,
            "options": [
                {"id": "a", "text": "A", "isCorrect": True},
                {"id": "b", "text": "B", "isCorrect": False},
                {"id": "c", "text": "C", "isCorrect": True},
            ],
        }),
        _choice(2, correct="b"),
        Question.model_validate({
            "id": 3,
            "text": "참/거짓",
            "type": "trueFalse",
            "options": [
                {"id": "true", "text": "참", "isCorrect": True},
                {"id": "false", "text": "거짓", "isCorrect": False},
            ],
        }),
        Question.model_validate({
            "id": 4,
            "text": "연결하기",
            "type": "matching",
            "correctAnswers": ["m1", "m2"],
            "options": [
                {"id": "m1", "text": "1-가"},
                {"id": "m2", "text": "2-나"},
            ],
        }),
        Question.model_validate({
            "id": 5,
            "text": "단답형",
            "type": "shortAnswer",
            "acceptedAnswers": ["Seoul"],
        }),
    ]


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def adapter(storage):
    return PersistenceAdapter(storage)


@pytest.fixture
def store(adapter, clock):
    return ExamSessionStore(persistence=adapter, clock=clock)


@pytest.fixture
def started_store(store, three_questions):
    store.start_exam(7, three_questions, duration_minutes=1)
    return store
