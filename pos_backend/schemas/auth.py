from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, EmailStr, Field, model_validator


class RegisterPayload(BaseModel):
    tenant_id: int = Field(..., ge=1)
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8)
    password_confirmation: str
    role: Literal["owner", "staff"] = "staff"

    @model_validator(mode="after")
    def _passwords_match(self) -> "RegisterPayload":
        if self.password != self.password_confirmation:
            raise ValueError("The password confirmation does not match.")
        return self


class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
