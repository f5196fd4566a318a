from pydantic import BaseModel, ConfigDict, EmailStr
from sqlmodel import Field, SQLModel

from app.core.timeutils import UtcDatetime
from app.models.enums.user_role import UserRole


class UserBase(SQLModel):
    model_config = ConfigDict(extra="forbid")
    email: EmailStr = Field(unique=True, index=True, max_length=255)
    full_name: str | None = Field(default=None, max_length=255)
    role: UserRole = Field(default=UserRole.USER)


class UserGet(UserBase):
    id: int
    created_at: UtcDatetime


class UserRoleUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    role: UserRole
