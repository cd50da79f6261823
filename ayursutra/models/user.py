# ayursutra/models/user.py

from typing import Optional

from pydantic import BaseModel, Field


class AuthenticatedUser(BaseModel):
    id: str
    email: Optional[str] = None
    role: Optional[str] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    is_active: bool = Field(True, alias="isActive")

    class Config:
        populate_by_name = True
        extra = "allow"
        coerce_numbers_to_str = True

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        if parts:
            return " ".join(parts)
        return self.email or self.id


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    role: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = "allow"

    @classmethod
    def from_form(cls, form: dict) -> "RegisterRequest":
        """Build a request from registration form fields.

        A single `name` field is split into first/last name and
        `confirmPassword` is dropped, matching what the backend expects.
        """
        data = dict(form)
        data.pop("confirmPassword", None)
        name = data.pop("name", None)
        if name:
            parts = name.strip().split(" ")
            data["firstName"] = parts[0] or ""
            data["lastName"] = " ".join(parts[1:]) or parts[0] or "User"
        return cls(**data)
