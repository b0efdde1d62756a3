"""Shared schema helpers and the response envelope."""
from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    """Snake-case attributes exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(BaseModel, Generic[DataT]):
    success: bool = True
    data: Optional[DataT] = None


class ApiError(BaseModel):
    success: bool = False
    error: str
    details: Optional[Any] = None


def ok(data: Any) -> dict:
    """Wrap a payload in the success envelope."""
    return {"success": True, "data": data}
