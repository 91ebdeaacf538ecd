"""Response envelope shared by every endpoint."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Discriminated success result. Failures are rendered by the error handlers."""

    success: bool = True
    message: str | None = None
    data: T | None = None


def ok(data: object = None, message: str | None = None) -> dict[str, object]:
    """Build a success envelope as a plain dict (cache-friendly)."""
    return {"success": True, "message": message, "data": data}
