"""HTTP transport and credential storage."""

from .client import (
    Navigator,
    ProgressCallback,
    StreamCallbacks,
    TransportClient,
    UploadFile,
)
from .credentials import CredentialStore

__all__ = [
    "CredentialStore",
    "Navigator",
    "ProgressCallback",
    "StreamCallbacks",
    "TransportClient",
    "UploadFile",
]
