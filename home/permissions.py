"""
Role-based permission classes shared by the API views.
"""

from rest_framework import permissions


class IsAdminUser(permissions.BasePermission):
    """
    Permission check for admin role.
    """
    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.is_admin_user()
        )


class CanManageStore(permissions.BasePermission):
    """
    Permission check for users who can manage store operations
    (device statistics).
    """
    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.can_manage_store()
        )


class IsAuthenticatedUser(permissions.BasePermission):
    """
    Permission for any authenticated user.
    """
    def has_permission(self, request, view):
        return request.user and request.user.is_authenticated


class CanRunLockout(permissions.BasePermission):
    """
    Permission check for users who can run lockout passes and manual
    lock/unlock actions.
    """
    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.can_run_lockout()
        )
