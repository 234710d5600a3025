from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ActivityRead(BaseModel):
    id: int
    user_id: Optional[int] = None
    type: str
    description: str
    created_at: datetime

    class Config:
        from_attributes = True
