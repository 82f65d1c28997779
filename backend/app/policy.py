# backend/app/policy.py
"""Moderation policy: who may delete or flag a review. Pure predicates, no I/O."""

from .errors import Forbidden
from .models import Role


def is_admin(principal) -> bool:
    return principal.role is Role.admin


def can_delete(principal, review) -> bool:
    return is_admin(principal) or principal.id == review.user_id


def can_flag(principal) -> bool:
    return is_admin(principal)


def ensure_can_delete(principal, review):
    if not can_delete(principal, review):
        raise Forbidden("Not authorized to delete this review")


def ensure_can_flag(principal):
    if not can_flag(principal):
        raise Forbidden("Admin access required")
