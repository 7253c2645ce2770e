# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – creates the first ADMIN user.

Signup only ever creates USER accounts, so the first administrator has to
be seeded.  Run once after the initial migration:
    python bin/seed_admin.py

The script reads FIRST_ADMIN_EMAIL, FIRST_ADMIN_PASSWORD and
FIRST_ADMIN_PHONE from etc/app.conf.  After the row is inserted those values
are no longer used by the application.
"""

import sys
import os

# ---------------------------------------------------------------------------
# Path setup so backend modules are importable
# ---------------------------------------------------------------------------
# bin/seed_admin.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from sqlalchemy.orm import sessionmaker     # noqa: E402

from core.config import Settings            # noqa: E402
from core.security import set_password      # noqa: E402
from database import build_engine, build_session_factory  # noqa: E402
from models.user import Role, User          # noqa: E402


def seed(settings: Settings, session_factory: sessionmaker) -> bool:
    """Insert the admin described by *settings*.  Returns True if created."""
    if not settings.first_admin_email or not settings.first_admin_password or not settings.first_admin_phone:
        print("[seed_admin] FIRST_ADMIN_EMAIL, FIRST_ADMIN_PASSWORD or FIRST_ADMIN_PHONE not set – nothing to do.")
        return False

    email = settings.first_admin_email.strip().lower()
    db = session_factory()
    try:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            print(f"[seed_admin] Admin '{email}' already exists – skipping.")
            return False

        admin = User(
            first_name="Site",
            last_name="Admin",
            email=email,
            phone_number=settings.first_admin_phone,
            role=Role.ADMIN,
        )
        set_password(admin, settings.first_admin_password, settings.password_hash_rounds)
        db.add(admin)
        db.commit()
        print(f"[seed_admin] Admin '{email}' created successfully.")
        return True
    finally:
        db.close()


if __name__ == "__main__":
    _settings = Settings()
    seed(_settings, build_session_factory(build_engine(_settings.database_url)))
