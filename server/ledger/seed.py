import logging
import os

from sqlalchemy.orm import Session

from .accounting.chart import seed_standard_chart
from .accounting.templates import seed_preset_templates
from .auth import seed_modules
from .db import SessionLocal
from .models import Company, User
from .module_keys import Role

logger = logging.getLogger(__name__)

ADMIN_EMAIL = "admin@ledger.local"


def _get_or_create_company(db: Session) -> Company:
    company = db.query(Company).order_by(Company.id.asc()).first()
    if company:
        return company

    company = Company(name="Demo s.r.o.", base_currency="EUR", fiscal_year_start_month=1)
    db.add(company)
    db.flush()
    return company


def _get_or_create_user(db: Session, company_id: int) -> User:
    user = db.query(User).filter(User.email == ADMIN_EMAIL).first()
    if user:
        if user.company_id != company_id:
            user.company_id = company_id
        user.full_name = user.full_name or "System Admin"
        if not user.is_active:
            user.is_active = True
        user.is_admin = True
        user.role = Role.ADMIN.value
        return user

    user = User(
        company_id=company_id,
        email=ADMIN_EMAIL,
        full_name="System Admin",
        role=Role.ADMIN.value,
        is_admin=True,
    )
    db.add(user)
    db.flush()
    return user


def run_seed():
    db: Session = SessionLocal()
    try:
        company = _get_or_create_company(db)
        added = seed_modules(db)
        if added:
            logger.info("Registered %d application modules", added)
        db.flush()

        if os.getenv("SEED_SKIP_AUTH", "1") not in {"1", "true", "TRUE", "yes", "YES"}:
            try:
                _get_or_create_user(db, company.id)
            except Exception as exc:
                logger.warning("Skipping auth seed user creation due to error: %s", exc)

        seed_standard_chart(db, company.id)
        db.flush()
        seed_preset_templates(db, company.id)
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_seed()
