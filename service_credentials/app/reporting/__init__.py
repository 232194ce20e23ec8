"""Management reporting for the credential service."""

from .admin import AdminReporter, AdminSnapshot

__all__ = ["AdminReporter", "AdminSnapshot"]
