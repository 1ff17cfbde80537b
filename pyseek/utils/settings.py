"""Settings resolution utilities for Document configuration."""

from __future__ import annotations

from pyseek.core.cursor import CursorCodec, InvalidCursorPolicy, get_codec
from pyseek.utils.pagination import DEFAULT_PAGINATION, PaginationConfig
from pyseek.utils.retry import DEFAULT_RETRY_POLICY, RetryPolicy


def _pluralize(name: str) -> str:
    """Naive pluralization for collection names.

    Args:
        name: Singular class name

    Returns:
        Pluralized collection name
    """
    lower = name.lower()
    if lower.endswith("s"):
        return lower + "es"
    if lower.endswith("y") and not lower.endswith(("ay", "ey", "iy", "oy", "uy")):
        return lower[:-1] + "ies"
    return lower + "s"


def _setting(cls: type, name: str, default):
    settings = getattr(cls, "Settings", None)
    if settings is not None and hasattr(settings, name):
        return getattr(settings, name)
    return default


class SettingsResolver:
    """Resolves document settings from inner Settings class."""

    @staticmethod
    def get_collection_name(cls: type) -> str:
        """Get collection name from Settings or auto-pluralize."""
        return _setting(cls, "collection", None) or _pluralize(cls.__name__)

    @staticmethod
    def get_connection_alias(cls: type) -> str:
        """Get connection alias from Settings or default."""
        return _setting(cls, "connection_alias", "default")

    @staticmethod
    def get_retry_policy(cls: type) -> RetryPolicy:
        """Get the retry policy applied to every store call of the class.

        Settings.retry may be a RetryPolicy or a dict of its fields.
        """
        policy = _setting(cls, "retry", DEFAULT_RETRY_POLICY)
        if isinstance(policy, dict):
            policy = RetryPolicy(**policy)
        if not isinstance(policy, RetryPolicy):
            raise TypeError(f"{cls.__name__}.Settings.retry must be a RetryPolicy or dict")
        return policy

    @staticmethod
    def get_cursor_codec(cls: type) -> CursorCodec:
        """Get the cursor codec: "delimited" (default), "base64" or an instance."""
        return get_codec(_setting(cls, "cursor_codec", "delimited"))

    @staticmethod
    def get_invalid_cursor_policy(cls: type) -> InvalidCursorPolicy:
        """Get what keyset pagination does with unusable cursors (default: fallback)."""
        return InvalidCursorPolicy(_setting(cls, "invalid_cursor", InvalidCursorPolicy.FALLBACK))

    @staticmethod
    def get_search_fields(cls: type) -> tuple[str, ...]:
        """Get the fields a free-text search term is matched against."""
        return tuple(_setting(cls, "search_fields", ()))

    @staticmethod
    def get_pagination(cls: type) -> PaginationConfig:
        """Get pagination limits from Settings or the defaults."""
        config = _setting(cls, "pagination", DEFAULT_PAGINATION)
        if isinstance(config, dict):
            config = PaginationConfig(**config)
        return config
