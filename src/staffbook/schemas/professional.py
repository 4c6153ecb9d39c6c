from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class SpecialtyBase(BaseModel):
    name: str = Field(max_length=100)
    description: str | None = None
    duration_minutes: int = Field(default=60, gt=0)
    active: bool = True


class SpecialtyCreate(SpecialtyBase):
    pass


class SpecialtyUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    active: bool | None = None


class SpecialtyRead(SpecialtyBase):
    id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfessionalBase(BaseModel):
    name: str = Field(max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=30)
    active: bool = True
    user_id: int | None = None


class ProfessionalCreate(ProfessionalBase):
    specialty_ids: list[int] = Field(default_factory=list)


class ProfessionalUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=30)
    active: bool | None = None
    user_id: int | None = None
    specialty_ids: list[int] | None = None


class ProfessionalRead(ProfessionalBase):
    id: int
    specialty_ids: list[int] = Field(default_factory=list)
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfessionalSummary(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class BookableSpecialtyRead(BaseModel):
    id: int
    name: str
    description: str | None = None
    professionals: list[ProfessionalSummary]
    suspended: bool

    model_config = {"from_attributes": True}
