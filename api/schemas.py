from datetime import date as DateType, datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict

from achievements.models import Achievement


class User(BaseModel):
    id: UUID
    email: str
    name: str
    is_guest: bool = True
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GuestLoginRequest(BaseModel):
    device_id: Optional[str] = None


class GuestLoginResponse(BaseModel):
    success: bool = True
    token: str
    user: User
    is_guest: bool = True


class StepsRequest(BaseModel):
    steps: int
    date: Optional[DateType] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {"steps": 12000, "date": "2024-06-01"}
    })


class AchievementListResponse(BaseModel):
    achievements: list[Achievement]
    total_count: int
