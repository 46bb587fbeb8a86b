from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ListEnvelope(BaseModel, Generic[T]):
    success: bool = True
    count: int
    # {total, next?, prev?}; next/prev are {page, limit} and only present when they exist
    pagination: Optional[Dict[str, Any]] = None
    data: List[T]


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: str


class UserRef(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


def envelope(data: Any, **extra: Any) -> Dict[str, Any]:
    return {"success": True, "data": data, **extra}
