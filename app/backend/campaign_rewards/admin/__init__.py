"""Admin authentication package."""

from .admin_auth import AdminAuth, admin_auth, require_admin_auth

__all__ = ["AdminAuth", "admin_auth", "require_admin_auth"]
