from pydantic import BaseModel, Field, model_validator, field_validator
from datetime import datetime
from enum import Enum
from uuid import UUID
from typing import Optional
from typing_extensions import Self
import re


class UserStatusEnum(str, Enum):
    PELAJAR = "Pelajar"
    MAHASISWA = "Mahasiswa"
    PEKERJA = "Pekerja"
    PENGANGGURAN = "Pengangguran"
    LAINNYA = "Lainnya"


# ===== USER PYDANTIC MODELS =====

class UserCreate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=255)
    email: str = Field(..., description="User's email address")
    username: str = Field(..., min_length=3, max_length=50, description="Username (3-50 characters)")
    password: str = Field(..., min_length=6, description="Password (minimum 6 characters)")
    confirm_password: str
    status: Optional[UserStatusEnum] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not re.match(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$', v.strip()):
            raise ValueError('Invalid email format')
        return v.lower().strip()

    @field_validator('username')
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not re.match(r'^[a-zA-Z0-9_-]+$', v):
            raise ValueError('Username can only contain letters, numbers, hyphens, and underscores')
        return v.lower()

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else None

    @model_validator(mode="after")
    def check_passwords_match(self) -> Self:
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class UserLogin(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class UserResponse(BaseModel):
    db_id: int
    id: UUID
    full_name: Optional[str] = None
    email: str
    username: str
    status: Optional[UserStatusEnum] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserProfile(UserResponse):
    """Profile plus where the user stands with their bank accounts"""
    account_count: int
    advice: str


class LoginResponse(BaseModel):
    user_id: int
    username: str
    message: str
