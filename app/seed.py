import logging
import os
from datetime import date, timedelta

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import ConflictError
from app.core.logging import configure_logging
from app.db.session import SessionLocal
from app.models.enums import UserType
from app.schemas.users import UserCreate
from app.services import auth_service
from app.services.installation_service import InstallationService

logger = logging.getLogger(__name__)

SEED_USERS = [
    ("Admin", "admin@example.com", UserType.Admin),
    ("Client", "client@example.com", UserType.Client),
    ("Field User", "user@example.com", UserType.User),
]

SEED_SITES = [
    ("Pune", "Haveli", "411001", "High"),
    ("Nashik", "Niphad", "422303", "Medium"),
    ("Nagpur", "Kamptee", "441001", "Low"),
    ("Amravati", "Achalpur", "444806", "Medium"),
]


def seed():
    configure_logging(get_settings())
    db: Session = SessionLocal()
    password = os.getenv("SEED_PASSWORD", "password123")

    for name, email, user_type in SEED_USERS:
        try:
            auth_service.create_user(
                db,
                payload=UserCreate(name=name, email=email, password=password, user_type=user_type),
            )
        except ConflictError:
            logger.info("seed user exists", extra={"email": email})

    records = InstallationService()
    today = date.today()
    for i, (district, tahsil, pin, priority) in enumerate(SEED_SITES):
        delivered = i % 2 == 0
        records.create(
            db,
            fields={
                "region_division": district,
                "location_address": f"Zilla Parishad School, {tahsil}",
                "district": district,
                "tahsil": tahsil,
                "pin_code": pin,
                "receiver_name": f"Headmaster {tahsil}",
                "contact_no": f"98{i:08d}",
                "delivery_status": "Delivered" if delivered else "Pending",
                "installation_status": "Pending",
                "priority": priority,
                "delivery_date": today - timedelta(days=10 * (i + 1)) if delivered else None,
                "total_boxes": 3,
            },
            actor="Admin",
        )

    db.close()


if __name__ == "__main__":
    seed()
