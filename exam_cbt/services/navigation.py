"""
services/navigation.py

문제 이동 규칙. 인덱스 범위 검증과 방문 기록만 담당한다.
"""

from typing import Optional, Set

from exam_cbt.errors import ExamValidationError


def is_valid_index(index: int, total: int) -> bool:
    return 0 <= index < total


def resolve_target(index: int, total: int) -> int:
    """
    이동 대상 인덱스를 검증한다.

    Raises:
        ExamValidationError: 0 <= index < total 을 벗어난 경우.
    """
    if isinstance(index, bool) or not isinstance(index, int):
        raise ExamValidationError(f"문제 인덱스는 정수여야 합니다: {index!r}")
    if not is_valid_index(index, total):
        raise ExamValidationError(
            f"잘못된 문제 이동 요청: index={index}, 문제 수={total}"
        )
    return index


def next_index(current: int, total: int) -> Optional[int]:
    """다음 문제 인덱스. 마지막 문제면 None."""
    if current < total - 1:
        return current + 1
    return None


def previous_index(current: int) -> Optional[int]:
    """이전 문제 인덱스. 첫 문제면 None."""
    if current > 0:
        return current - 1
    return None


def mark_visited(visited: Set[int], index: int) -> Set[int]:
    """방문 집합에 index를 추가한 새 집합."""
    return set(visited) | {index}
