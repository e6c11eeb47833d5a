"""
LabSync Constants Module

Single import point for endpoint paths, transport defaults, cache policy
defaults and storage keys.
"""

from .api import Endpoints, EnvelopeKeys, HTTPConfig, UserMessages
from .cache import CacheDefaults
from .storage import StorageKeys

__all__ = [
    "CacheDefaults",
    "Endpoints",
    "EnvelopeKeys",
    "HTTPConfig",
    "StorageKeys",
    "UserMessages",
]
