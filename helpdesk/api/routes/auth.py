from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from helpdesk.dependencies.auth import AuthServiceDep

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class LoginResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token: str
    username: str
    expires_at: datetime


@router.post("/login", response_model=LoginResponse, summary="Exchange staff credentials for a bearer token")
async def login(payload: LoginRequest, auth_service: AuthServiceDep) -> LoginResponse:
    if not payload.username.strip() or not payload.password.strip():
        raise HTTPException(status_code=400, detail="Username and password are required")

    result = auth_service.authenticate(payload.username, payload.password)
    if result is None:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return LoginResponse(token=result.token, username=result.username, expires_at=result.expires_at)
