from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[str] = None
    profile_description: Optional[str] = None
    profile_embedding: Optional[list[float]] = None
    created_at: Optional[datetime] = None
