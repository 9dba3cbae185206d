"""Admin bootstrap response schema."""

from typing import Optional

from pydantic import BaseModel


class AdminUser(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    role: str


class AdminBootstrapResponse(BaseModel):
    success: bool = True
    message: str
    user: AdminUser
