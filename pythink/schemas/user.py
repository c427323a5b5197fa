# pythink/schemas/user.py
from pydantic import BaseModel, EmailStr
from datetime import datetime


class UserPublic(BaseModel):
    id: int
    email: EmailStr
    name: str
    role: str  # "teacher" / "student"
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
