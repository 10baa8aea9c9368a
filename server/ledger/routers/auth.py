from fastapi import APIRouter, Depends

from ledger.auth import get_allowed_modules, get_current_user, role_of
from ledger.models import User

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/me")
def me(current_user: User = Depends(get_current_user), allowed_modules: list[str] = Depends(get_allowed_modules)):
    return {
        "id": current_user.id,
        "company_id": current_user.company_id,
        "email": current_user.email,
        "full_name": current_user.full_name,
        "role": role_of(current_user).value,
        "is_admin": current_user.is_admin,
        "is_active": current_user.is_active,
        "allowed_modules": allowed_modules,
    }
