"""
Lifecycle states shared by commitments and recurring templates.
"""

from enum import Enum


class LifecycleState(str, Enum):
    """
    DRAFT entities skip field validation and are invisible to conflict
    detection. CONFIRMED entities carry every required field and take part
    in conflict detection.
    """

    DRAFT = "draft"
    CONFIRMED = "confirmed"

    @classmethod
    def of(cls, provisional: bool) -> "LifecycleState":
        return cls.DRAFT if provisional else cls.CONFIRMED
