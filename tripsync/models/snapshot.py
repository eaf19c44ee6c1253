"""Versioned snapshot wrapper for persisted store state."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

CURRENT_MEMORY_VERSION = 2


class VersionedMemory(BaseModel, Generic[T]):
    """Persisted store state tagged with its schema version."""

    version: int = Field(..., ge=1)
    data: T


RawMemory = VersionedMemory[dict[str, Any]]
