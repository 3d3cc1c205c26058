# donation_core/permissions.py
from __future__ import annotations

from typing import Optional, Set

from django.contrib.auth import get_user_model
from rest_framework.permissions import BasePermission

from .models import UserRole
from .workflows.rules import Role, normalize_role


# ------------------------------------------------------------------
# Role resolution
# ------------------------------------------------------------------
# Highest first; used when an account holds several roles and the
# request does not name one.
ROLE_PRECEDENCE = (Role.ADMIN, Role.DOCTOR, Role.RECIPIENT, Role.DONOR)

STAFF_ROLES = {Role.ADMIN, Role.DOCTOR}


def user_roles(user) -> Set[str]:
    if not user or not user.is_authenticated:
        return set()
    if user.is_superuser:
        return {Role.ADMIN}
    raw = UserRole.objects.filter(user=user).values_list("role", flat=True)
    roles = {normalize_role(r) for r in raw}
    # Actors may never claim the internal system role.
    roles.discard(Role.SYSTEM)
    return roles


def acting_role(user, requested: Optional[str] = None) -> str:
    """
    Role the user acts under for this request.

    Accounts without any role row are donors.
    """
    roles = user_roles(user)
    if requested:
        wanted = normalize_role(requested)
        if wanted in roles:
            return wanted
    for role in ROLE_PRECEDENCE:
        if role in roles:
            return role
    return Role.DONOR


# ------------------------------------------------------------------
# DRF permissions
# ------------------------------------------------------------------
class IsDoctorOrAdmin(BasePermission):
    message = "Only doctors and administrators can perform this action."

    def has_permission(self, request, view):
        return bool(user_roles(request.user) & STAFF_ROLES)


class IsAdmin(BasePermission):
    message = "Only administrators can perform this action."

    def has_permission(self, request, view):
        return Role.ADMIN in user_roles(request.user)


# ------------------------------------------------------------------
# Directory
# ------------------------------------------------------------------
def users_with_role(role: str):
    """
    Active accounts holding ``role`` under any of its spellings.
    """
    wanted = normalize_role(role)
    ids = {
        user_id
        for user_id, raw in UserRole.objects.values_list("user_id", "role")
        if normalize_role(raw) == wanted
    }
    return get_user_model().objects.filter(pk__in=ids, is_active=True).order_by("last_name", "first_name", "username")
