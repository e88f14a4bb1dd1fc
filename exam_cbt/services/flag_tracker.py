"""
services/flag_tracker.py

검토 표시(플래그) 집합 관리. 채점에는 영향이 없다.
"""

from typing import Set


def toggle_flag(flagged: Set[int], question_id: int) -> Set[int]:
    """플래그를 뒤집은 새 집합 (두 번 적용하면 원상태)."""
    updated = set(flagged)
    if question_id in updated:
        updated.remove(question_id)
    else:
        updated.add(question_id)
    return updated


def is_flagged(flagged: Set[int], question_id: int) -> bool:
    return question_id in flagged
