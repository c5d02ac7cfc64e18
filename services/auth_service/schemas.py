from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator

UserRole = Literal["buyer", "farmer", "driver"]


class User(BaseModel):
    # The backend sends Mongo's `_id`; locally persisted users carry `id`
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str = ""
    email: str
    role: UserRole = "buyer"

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value):
        return str(value) if value is not None else value


class LoginCredentials(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)
    role: Optional[UserRole] = None


class RegisterPayload(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: UserRole = "buyer"


class AuthResponse(BaseModel):
    token: str
    user: User
    msg: Optional[str] = None


class SessionRecord(BaseModel):
    token: str
    user: User
    issued_at: float  # epoch seconds
    remember_me: bool = False
