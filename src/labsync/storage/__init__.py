"""Client-side persistence for LabSync."""

from .key_value import JsonFileStorage, KeyValueStorage, MemoryStorage

__all__ = [
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
]
