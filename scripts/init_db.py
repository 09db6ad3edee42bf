#!/usr/bin/env python3
"""
Database Setup Script

Checks the database connection, creates all tables and optionally
creates an admin account.

Usage:
    python scripts/init_db.py
    python scripts/init_db.py admin@college.edu "a-strong-password"
"""
import sys

from sqlalchemy import select

from placement_portal.core.auth import hash_password
from placement_portal.core.config import get_settings
from placement_portal.db.database import check_database_connection, get_db_session
from placement_portal.db.schema import create_schema, users
from placement_portal.schemas.schemas import UserRole


def create_admin(email: str, password: str) -> bool:
    """Insert an admin user. Returns False if the email is already taken."""
    with get_db_session() as db:
        if db.execute(select(users.c.user_id).where(users.c.email == email)).first():
            return False
        db.execute(
            users.insert().values(
                email=email,
                password_hash=hash_password(password),
                role=UserRole.admin.value,
                is_active=True,
            )
        )
    return True


def main():
    settings = get_settings()
    print("=" * 50)
    print("PLACEMENT PORTAL - DATABASE SETUP")
    print("=" * 50)

    print("\n[1] Testing database connection...")
    print(f"    Host: {settings.postgres_host}:{settings.postgres_port}/{settings.postgres_db}"
          if not settings.database_url else "    Using DATABASE_URL")
    if not check_database_connection():
        print("    ❌ Database: FAILED")
        sys.exit(1)
    print("    ✅ Database: CONNECTED")

    print("\n[2] Creating tables...")
    create_schema()
    print("    ✅ Tables ready")

    print("\n[3] Checking QR signing secret...")
    if settings.qr_signing_secret:
        print("    ✅ QR_TOKEN_SECRET configured")
    else:
        print("    ⚠️  QR_TOKEN_SECRET / AUTH_SECRET not set - the API will refuse to start")

    if len(sys.argv) == 3:
        email, password = sys.argv[1], sys.argv[2]
        print(f"\n[4] Creating admin {email}...")
        if create_admin(email, password):
            print("    ✅ Admin created")
        else:
            print("    ⚠️  Email already registered, skipped")

    print("\n" + "=" * 50)
    print("Setup complete!")
    print("=" * 50)


if __name__ == "__main__":
    main()
