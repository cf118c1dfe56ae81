"""
Users API routes - identity records.

Student and faculty accounts are normally created through ``/api/students``
and ``/api/faculty``; this resource registers admins and attaches accounts
to existing profiles.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from sims.database import get_db
from sims.dependencies import get_current_identity
from sims.models.identity import Identity
from sims.routes.serializers import pagination, serialize_identity
from sims.services import profiles

router = APIRouter()

Role = Literal["student", "faculty", "admin"]


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Role
    profile_id: Optional[str] = Field(None, description="Student or faculty id matching the role")
    is_verified: bool = False


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None


@router.get("/api/users")
def list_users(
    role: Optional[Role] = Query(None),
    search: Optional[str] = Query(None, description="Search username or email"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    actor: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    users, total = profiles.list_identities(db, actor, role=role, search=search,
                                            page=page, per_page=per_page)
    return {"data": [serialize_identity(u) for u in users],
            "pagination": pagination(page, per_page, total)}


@router.post("/api/users", status_code=201)
def create_user(request: UserCreate, actor: Identity = Depends(get_current_identity),
                db: Session = Depends(get_db)):
    return serialize_identity(profiles.create_identity(db, actor, request.model_dump()))


@router.get("/api/users/{user_id}")
def get_user(user_id: str, actor: Identity = Depends(get_current_identity),
             db: Session = Depends(get_db)):
    return serialize_identity(profiles.get_identity(db, actor, user_id))


@router.put("/api/users/{user_id}")
def update_user(user_id: str, request: UserUpdate, actor: Identity = Depends(get_current_identity),
                db: Session = Depends(get_db)):
    target = profiles.update_identity(db, actor, user_id, request.model_dump(exclude_unset=True))
    return serialize_identity(target)


@router.delete("/api/users/{user_id}")
def delete_user(user_id: str, actor: Identity = Depends(get_current_identity),
                db: Session = Depends(get_db)):
    profiles.delete_identity(db, actor, user_id)
    return {"msg": "User removed"}
