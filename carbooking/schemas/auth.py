from pydantic import BaseModel
from typing import Optional
import uuid


class LoginRequest(BaseModel):
    identifier: str  # email
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: str
    manager_id: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None
