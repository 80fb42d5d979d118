from pydantic import BaseModel, EmailStr, Field, field_validator

from guide_booking.db.models.user import UserRole


class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=2)
    password: str = Field(..., min_length=8)
    role: UserRole = UserRole.customer

    @field_validator("role")
    @classmethod
    def no_self_promotion(cls, v):
        # admins and guides are appointed through /admin/users/{id}/role
        if v != UserRole.customer:
            raise ValueError(f"cannot register as {v.value}")
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    name: str
    role: str

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
