"""Pydantic models shared across LabSync layers."""

from .api import ApiResponse, Envelope, LoginResult, UserSummary
from .records import CatalogRecord, OwnerRecord, RecordStatus
from .view import FilterDescriptor, SortDescriptor, SortDirection, SortField

__all__ = [
    "ApiResponse",
    "CatalogRecord",
    "Envelope",
    "FilterDescriptor",
    "LoginResult",
    "OwnerRecord",
    "RecordStatus",
    "SortDescriptor",
    "SortDirection",
    "SortField",
    "UserSummary",
]
