from pyseek.plugins.soft_delete import SoftDeleteMixin
from pyseek.plugins.timestamps import TimestampsMixin

__all__ = [
    "SoftDeleteMixin",
    "TimestampsMixin",
]
