from __future__ import annotations
import uuid
from dataclasses import dataclass
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from questboard.db import get_session
from questboard.security import ROLES, decode_token
from questboard.models.teen import Teen, StaffUser

security = HTTPBearer()

@dataclass(frozen=True)
class Principal:
    subject: uuid.UUID
    role: str  # teen | staff | admin

async def get_principal(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Principal:
    try:
        data = decode_token(credentials.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if data.get("type") != "access":
        raise HTTPException(status_code=401, detail="Wrong token type")
    if data.get("role") not in ROLES:
        raise HTTPException(status_code=401, detail="Invalid token")
    try:
        subject = uuid.UUID(str(data.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")
    return Principal(subject=subject, role=data["role"])

async def get_current_teen(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> Teen:
    if principal.role != "teen":
        raise HTTPException(status_code=403, detail="Teen account required")
    teen = await session.get(Teen, principal.subject)
    if not teen or not teen.is_active:
        raise HTTPException(status_code=401, detail="Teen not found")
    return teen

async def require_staff(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> StaffUser:
    if principal.role not in ("staff", "admin"):
        raise HTTPException(status_code=403, detail="Staff access required")
    staff = await session.get(StaffUser, principal.subject)
    if not staff:
        raise HTTPException(status_code=401, detail="Staff user not found")
    return staff

async def require_admin(staff: StaffUser = Depends(require_staff)) -> StaffUser:
    if staff.role != "ADMIN":
        raise HTTPException(status_code=403, detail="Admin access required")
    return staff
