#!/usr/bin/env python
"""Seed the development database with test users.

Creates the schema if it does not exist, inserts the development users, and
prints a session token for each active user so the API can be exercised with
curl or from the browser client.

Constraints:
- Refuses to run outside TERMSMITH_ENV=local|test
- Idempotent: users are keyed by email and get stable ids
- Never runs automatically (manual invocation only)

Usage:
    cd python && DATABASE_URL=... AUTH_SECRET=... python ../scripts/seed_dev.py
"""

import os
import sys
import uuid
from datetime import UTC, datetime

# Stable ids so tokens printed on one run keep working after a re-seed.
SEED_NAMESPACE = uuid.UUID("7b0c3f4e-2a41-4f55-9d0e-5c1f3b8a6e21")

DEV_USERS = [
    # (email, full_name, active)
    ("test@example.com", "Adam Smith", True),
    ("business@example.com", "John Doe", True),
    ("inactive@example.com", "Jane Doe", False),
    ("admin@example.com", "Admin User", True),
    ("demo@example.com", "Demo User", True),
]


def main():
    # 1. Environment check (hard fail in staging/prod)
    termsmith_env = os.getenv("TERMSMITH_ENV", "local")
    if termsmith_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in TERMSMITH_ENV={termsmith_env}")
        sys.exit(1)

    if not os.getenv("DATABASE_URL"):
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from sqlalchemy import select

    from termsmith.auth.session import mint_session_token
    from termsmith.config import get_settings
    from termsmith.db import Base, User, create_db_engine, create_session_factory, transaction

    settings = get_settings()
    engine = create_db_engine(settings.database_url)

    # 2. Schema (migrations are managed elsewhere for staging/prod)
    Base.metadata.create_all(engine)

    session_factory = create_session_factory(engine)
    report = []

    # 3. Idempotent seeding
    with session_factory() as db, transaction(db):
        for email, full_name, active in DEV_USERS:
            user = db.scalar(select(User).where(User.email == email))
            created = user is None
            if created:
                user = User(
                    id=uuid.uuid5(SEED_NAMESPACE, email),
                    email=email,
                    full_name=full_name,
                    deleted_at=None if active else datetime.now(UTC),
                )
                db.add(user)
            report.append((user, created, active))

    # 4. Report
    db_display = (
        settings.database_url.split("@")[1]
        if "@" in settings.database_url
        else settings.database_url
    )
    print(f"Database: {db_display}")
    print(f"TERMSMITH_ENV: {termsmith_env}")
    print()
    for user, created, active in report:
        status = "✓ Created" if created else "• Exists"
        print(f"{status}: {user.email} ({user.id}){'' if active else ' [inactive]'}")
        if active:
            token = mint_session_token(user.id, email=user.email, name=user.full_name)
            print(f"    session token: {token}")


if __name__ == "__main__":
    main()
