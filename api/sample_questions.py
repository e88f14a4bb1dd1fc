"""
api/sample_questions.py — 콘텐츠 제공자 없이 바로 풀어볼 수 있는 예시 시험
"""

from exam_cbt.models.question_model import Exam, Question

SAMPLE_EXAM = Exam(id=1, title="샘플 모의고사", duration_minutes=10, passing_score=60)

SAMPLE_QUESTIONS = [
    Question.model_validate({
        "id": 1,
        "text": "컴파일러의 주된 역할은?",
        "type": "singleChoice",
        "pointValue": 2,
        "options": [
            {"id": "1", "text": "고수준 언어를 기계어로 번역", "isCorrect": True},
            {"id": "2", "text": "코드 디버깅", "isCorrect": False},
            {"id": "3", "text": "코드 포맷팅", "isCorrect": False},
            {"id": "4", "text": "코드 실행", "isCorrect": False},
        ],
        "explanation": "컴파일러는 소스 코드를 목적 코드로 번역한다.",
    }),
    Question.model_validate({
        "id": 2,
        "text": "다음 중 파이썬의 불변(immutable) 자료형을 모두 고르시오.",
        "type": "multipleChoice",
        "options": [
            {"id": "a", "text": "tuple", "isCorrect": True},
            {"id": "b", "text": "list", "isCorrect": False},
            {"id": "c", "text": "frozenset", "isCorrect": True},
            {"id": "d", "text": "dict", "isCorrect": False},
        ],
        "explanation": "tuple 과 frozenset 은 생성 후 변경할 수 없다.",
    }),
    Question.model_validate({
        "id": 3,
        "text": "HTTP 는 상태를 유지하는(stateful) 프로토콜이다.",
        "type": "trueFalse",
        "options": [
            {"id": "true", "text": "참", "isCorrect": False},
            {"id": "false", "text": "거짓", "isCorrect": True},
        ],
        "explanation": "HTTP 는 무상태(stateless) 프로토콜이다.",
    }),
    Question.model_validate({
        "id": 4,
        "text": "TCP 연결 수립 과정을 무엇이라 부르는가?",
        "type": "shortAnswer",
        "acceptedAnswers": ["3-way handshake", "three-way handshake", "3웨이 핸드셰이크"],
        "explanation": "SYN, SYN-ACK, ACK 세 단계로 연결을 맺는다.",
    }),
]
