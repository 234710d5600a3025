from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class BulkResultRead(BaseModel):
    successful: int
    failed: int
    total: int

    class Config:
        from_attributes = True


def ok(data=None, message: str | None = None) -> dict:
    return {"success": True, "data": data, "message": message}
