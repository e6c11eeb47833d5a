"""
Backend API constants.

Endpoint paths are relative to ``Settings.api.base_url``.
"""

from __future__ import annotations


class Endpoints:
    """Backend endpoint paths and path builders."""

    # Auth
    LOGIN = "/login"
    LOGOUT = "/logout"
    CURRENT_USER = "/me"
    PASSWORD = "/password"

    # Catalog
    TEMPLATES = "/templates"

    # Generation
    GENERATE = "/llm/generate"
    GENERATE_STREAM = "/llm/generate/stream"

    @staticmethod
    def template(template_id: str) -> str:
        return f"/templates/{template_id}"

    @staticmethod
    def owner_root(owner_id: str) -> str:
        return f"/users/{owner_id}"

    @staticmethod
    def owner_records(owner_id: str) -> str:
        return f"/users/{owner_id}/records"

    @staticmethod
    def owner_record(owner_id: str, record_id: int | str) -> str:
        return f"/users/{owner_id}/records/{record_id}"

    @staticmethod
    def profile(user_id: str) -> str:
        return f"/users/{user_id}/profile"

    @staticmethod
    def preferences(user_id: str) -> str:
        return f"/users/{user_id}/preferences"

    @staticmethod
    def avatar(user_id: str) -> str:
        return f"/users/{user_id}/avatar"

    @staticmethod
    def progress(user_id: str) -> str:
        return f"/users/{user_id}/progress"


class HTTPConfig:
    """Transport defaults."""

    DEFAULT_BASE_URL = "http://localhost:5000/api"
    DEFAULT_TIMEOUT = 30.0  # seconds, applied to every request
    DEFAULT_LOGIN_PATH = "/login"
    USER_AGENT = "LabSync/0.1"
    CHUNK_SIZE = 64 * 1024
    MAX_CONCURRENT_REQUESTS = 10
    RATE_LIMIT = 50.0  # requests per RATE_LIMIT_PERIOD
    RATE_LIMIT_PERIOD = 1.0
    STREAM_EVENT_PREFIX = "data:"


class EnvelopeKeys:
    """Keys of the backend response envelope ``{success, data, message?, error?}``."""

    SUCCESS = "success"
    DATA = "data"
    MESSAGE = "message"
    ERROR = "error"
    DETAIL = "detail"


class UserMessages:
    """Fallback user-presentable messages."""

    REQUEST_FAILED = "The request failed"
    NO_RESPONSE = "The server did not respond, please check your network connection"
    INVALID_RESPONSE = "The server returned an unexpected response"
