"""Shared, lazily created resources."""

from .shared_resource import ResourceHandle, SharedResource

__all__ = ["ResourceHandle", "SharedResource"]
