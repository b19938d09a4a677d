from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, constr

from auth.constants import AccountStatus


class AccountBase(BaseModel):
    full_name: constr(min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[constr(max_length=30)] = None


class AccountCreate(AccountBase):
    password: constr(min_length=8)


class AccountResponse(AccountBase):

    class Config:
        from_attributes = True

    id: int
    status: str = AccountStatus.ACTIVE
    created_at: Optional[datetime] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str


class ProfileUpdate(BaseModel):
    full_name: Optional[constr(min_length=1, max_length=100)] = None
    email: Optional[EmailStr] = None
    phone: Optional[constr(max_length=30)] = None

    def changes(self) -> dict:
        updates = self.model_dump(exclude_none=True)
        if not updates:
            raise ValueError("No valid fields provided for update")
        return updates


class PasswordUpdate(BaseModel):
    current_password: str
    new_password: constr(min_length=8)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: constr(min_length=8)


class StatusUpdate(BaseModel):
    status: str

    def validate_status(self):
        if self.status not in AccountStatus.values():
            raise ValueError(
                f"Invalid status. Must be one of: {', '.join(AccountStatus.values())}"
            )
