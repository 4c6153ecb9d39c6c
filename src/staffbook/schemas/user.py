from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

ROLE_PATTERN = r"^(user|professional|admin)$"


class UserBase(BaseModel):
    name: str = Field(max_length=100)
    email: EmailStr
    role: str = Field(default="user", pattern=ROLE_PATTERN)


class UserCreate(UserBase):
    pass


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None
    role: str | None = Field(default=None, pattern=ROLE_PATTERN)


class UserRead(UserBase):
    id: int
    suspended_until: datetime | None = None
    blocked: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SuspensionCreate(BaseModel):
    # Empty list suspends the whole account
    specialty_ids: list[int] = Field(default_factory=list)


class SuspensionRead(BaseModel):
    user_id: int
    suspended_until: datetime
    specialty_ids: list[int]


class SpecialtyBlockRead(BaseModel):
    id: int
    user_id: int
    specialty_id: int
    blocked_until: datetime | None = None
    reason: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
