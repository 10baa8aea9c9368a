import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ledger.auth import allowed_modules, grant_modules, require_admin, role_of, seed_modules
from ledger.db import get_db
from ledger.models import Module, User, UserModuleAccess
from ledger.module_keys import MODULE_DEFINITIONS, ROLE_MODULES, Role, ordered_module_keys

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"], dependencies=[Depends(require_admin)])


class ModuleInfo(BaseModel):
    key: str
    name: str


class ModuleCatalogResponse(BaseModel):
    modules: list[ModuleInfo]
    role_presets: dict[str, list[str]]


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: Role
    is_active: bool
    extra_permissions: list[str]
    allowed_modules: list[str]


class UserCreate(BaseModel):
    email: str = Field(min_length=3)
    full_name: Optional[str] = None
    role: Role = Role.ACCOUNTANT
    extra_permissions: list[str] = Field(default_factory=list)
    is_active: bool = True


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    role: Role
    is_active: bool
    extra_permissions: list[str] = Field(default_factory=list)


def _explicit_grants(db: Session, user: User) -> list[str]:
    rows = (
        db.query(Module.key)
        .join(UserModuleAccess, UserModuleAccess.module_id == Module.id)
        .filter(UserModuleAccess.user_id == user.id)
        .all()
    )
    return ordered_module_keys(key for (key,) in rows)


def _serialize_user(db: Session, user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": role_of(user),
        "is_active": user.is_active,
        "extra_permissions": _explicit_grants(db, user),
        "allowed_modules": allowed_modules(db, user),
    }


def _apply_role(db: Session, user: User, role: Role, extra_permissions: list[str]) -> None:
    user.role = role.value
    user.is_admin = role is Role.ADMIN
    # Grants already covered by the role preset are not stored.
    preset = set(ordered_module_keys(ROLE_MODULES[role]))
    grant_modules(db, user.id, [key for key in extra_permissions if key not in preset])


def _company_user(db: Session, admin: User, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id, User.company_id == admin.company_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/modules", response_model=ModuleCatalogResponse)
def list_modules():
    return {
        "modules": [{"key": module_key.value, "name": name} for module_key, name in MODULE_DEFINITIONS],
        "role_presets": {role.value: ordered_module_keys(keys) for role, keys in ROLE_MODULES.items()},
    }


@router.get("", response_model=list[UserResponse])
def list_users(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    users = db.query(User).filter(User.company_id == admin.company_id).order_by(User.id.asc()).all()
    return [_serialize_user(db, user) for user in users]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=UserResponse)
def create_user(payload: UserCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if db.query(User.id).filter(User.email == payload.email).first():
        raise HTTPException(status_code=409, detail="Email already exists")

    seed_modules(db)
    db.flush()
    user = User(
        company_id=admin.company_id,
        email=payload.email,
        full_name=payload.full_name,
        is_active=payload.is_active,
    )
    db.add(user)
    db.flush()
    _apply_role(db, user, payload.role, payload.extra_permissions)

    db.commit()
    db.refresh(user)
    logger.info("User %s created in company %s with role %s", user.email, user.company_id, user.role)
    return _serialize_user(db, user)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(user_id: int, payload: UserUpdate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    user = _company_user(db, admin, user_id)
    if user.id == admin.id and (payload.role is not Role.ADMIN or not payload.is_active):
        raise HTTPException(status_code=400, detail="Admins cannot demote or deactivate themselves")

    user.full_name = payload.full_name
    user.is_active = payload.is_active
    seed_modules(db)
    db.flush()
    _apply_role(db, user, payload.role, payload.extra_permissions)

    db.commit()
    db.refresh(user)
    return _serialize_user(db, user)


@router.delete("/{user_id}")
def deactivate_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    user = _company_user(db, admin, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="Admins cannot deactivate themselves")
    user.is_active = False
    db.commit()
    logger.info("User %s deactivated", user.email)
    return {"status": "ok"}
