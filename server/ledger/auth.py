"""Token verification and module authorization.

Access tokens are issued by the identity service and pin the user to one
company. A request is served only when the token's company still matches the
user's company, so a user moved to another tenant cannot keep reading the old
ledger with an old token.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Union

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from ledger.config import settings
from ledger.db import get_db
from ledger.models import Module, User, UserModuleAccess
from ledger.module_keys import MODULE_DEFINITIONS, MODULE_KEY_SET, ROLE_MODULES, ModuleKey, Role, ordered_module_keys

ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 12

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=settings.TOKEN_URL)


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    company_id: int


def create_access_token(user_id: int, company_id: int, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {"sub": str(user_id), "company_id": company_id, "exp": expire}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str) -> TokenClaims:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return TokenClaims(user_id=int(payload["sub"]), company_id=int(payload["company_id"]))
    except (JWTError, KeyError, TypeError, ValueError):
        raise _credentials_error()


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    claims = decode_access_token(token)
    user = db.query(User).filter(User.id == claims.user_id).first()
    if not user or not user.is_active or user.company_id != claims.company_id:
        raise _credentials_error()
    return user


def role_of(user: User) -> Role:
    if user.is_admin:
        return Role.ADMIN
    try:
        return Role((user.role or "").upper())
    except ValueError:
        return Role.AUDITOR


def allowed_modules(db: Session, user: User) -> list[str]:
    """Role preset plus explicit grants, in menu order."""
    role = role_of(user)
    if role is Role.ADMIN:
        return ordered_module_keys(ROLE_MODULES[Role.ADMIN])

    granted = (
        db.query(Module.key)
        .join(UserModuleAccess, UserModuleAccess.module_id == Module.id)
        .filter(UserModuleAccess.user_id == user.id)
        .all()
    )
    return ordered_module_keys([*ROLE_MODULES[role], *(key for (key,) in granted)])


def get_allowed_modules(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> list[str]:
    return allowed_modules(db, current_user)


def require_module(module_key: Union[ModuleKey, str]):
    key = ModuleKey(module_key).value

    def dependency(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> User:
        if current_user.is_admin:
            return current_user
        if key not in allowed_modules(db, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Not authorized for module '{key}'",
            )
        return current_user

    return dependency


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user


def seed_modules(db: Session) -> int:
    existing = {key for (key,) in db.query(Module.key).all()}
    missing = [(module_key, name) for module_key, name in MODULE_DEFINITIONS if module_key.value not in existing]
    for module_key, name in missing:
        db.add(Module(key=module_key.value, name=name))
    return len(missing)


def grant_modules(db: Session, user_id: int, module_keys: Iterable[str]) -> list[str]:
    """Replace a user's explicit grants. Role presets are not stored as grants."""
    module_keys = list(dict.fromkeys(module_keys))
    invalid = sorted(key for key in module_keys if key not in MODULE_KEY_SET)
    if invalid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown module keys: {', '.join(invalid)}")

    db.query(UserModuleAccess).filter(UserModuleAccess.user_id == user_id).delete(synchronize_session=False)
    if module_keys:
        for module in db.query(Module).filter(Module.key.in_(module_keys)).all():
            db.add(UserModuleAccess(user_id=user_id, module_id=module.id))
    return ordered_module_keys(module_keys)
