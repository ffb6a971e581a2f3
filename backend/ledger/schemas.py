from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ApiErrorDetail(BaseModel):
    field: str
    message: str


class ApiErrorPayload(BaseModel):
    code: str
    message: str
    details: list[ApiErrorDetail] = Field(default_factory=list)


class ApiErrorResponse(BaseModel):
    error: ApiErrorPayload


class HealthResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")
    status: str
    ts: datetime


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=6, max_length=255)


class LoginRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=6, max_length=255)


class UserResponse(BaseModel):
    id: int
    name: str
    createdAt: datetime


class RegisterResponse(BaseModel):
    user: UserResponse
    accessToken: str


class LoginResponse(BaseModel):
    accessToken: str


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    userId: Optional[int] = Field(default=None, gt=0)

    # strip before the length constraints run
    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value


class CategoryResponse(BaseModel):
    id: int
    name: str
    isCustom: bool
    ownerId: Optional[int] = None


class RecordCreate(BaseModel):
    userId: int = Field(gt=0)
    categoryId: int = Field(gt=0)
    amount: float = Field(gt=0, allow_inf_nan=False)


class RecordResponse(BaseModel):
    id: int
    userId: int
    categoryId: int
    amount: float
    createdAt: datetime
