"""
errors.py

시험 세션 엔진의 예외 분류.

세 예외 모두 엔진 내부에서 발생하고 엔진 내부에서 흡수된다.
호출자(UI, API)는 예외 대신 no-op + 로그를 보게 된다.
"""


class ExamError(Exception):
    """시험 엔진 예외의 기반 클래스."""


class ExamValidationError(ExamError, ValueError):
    """
    잘못된 이동 대상 인덱스, 세션에 없는 문제 ID에 대한 답안/플래그 등.
    세션 저장소가 경고 로그를 남기고 무시한다.
    """


class PersistenceError(ExamError, RuntimeError):
    """
    저장된 세션 레코드가 손상되었거나 스키마가 맞지 않을 때.
    세션 저장소가 에러 로그를 남기고 Idle 상태로 되돌린다.
    """


class StateConflictError(ExamError):
    """완료된 시험에 대한 변경 시도. 조용히 무시된다 (멱등 no-op)."""
