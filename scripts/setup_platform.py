#!/usr/bin/env python3
# scripts/setup_platform.py
"""
Platform setup: ensure the first admin profile exists.
This script is safe to run many times (idempotent).

Identities live in the external identity provider; this only creates the
matching application profile with the admin role (or promotes and
reactivates an existing one).

Examples:
  # From args
  python -m scripts.setup_platform --ensure-admin --subject "auth0|123" --email admin@saude.local

  # Env-driven (BOOTSTRAP_ADMIN_SUBJECT / BOOTSTRAP_ADMIN_EMAIL / BOOTSTRAP_ADMIN_NAME)
  python -m scripts.setup_platform --ensure-admin
"""

from __future__ import annotations

import argparse
import logging
import sys

from sqlalchemy.orm import Session

from medstock.core.config import get_settings
from medstock.core.database import SessionLocal
from medstock.core.logging_config import configure_logging
from medstock.services.user_service import ensure_admin_profile

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Stock platform setup")
    p.add_argument(
        "--ensure-admin",
        action="store_true",
        help="Ensure an active admin profile exists (from args if provided, else from env)",
    )

    # Optional CLI overrides (otherwise env is used)
    p.add_argument("--subject", type=str, help="Identity-provider subject id (or env BOOTSTRAP_ADMIN_SUBJECT)")
    p.add_argument("--email", type=str, help="Admin email (or env BOOTSTRAP_ADMIN_EMAIL)")
    p.add_argument("--name", type=str, default=None, help="Default: env BOOTSTRAP_ADMIN_NAME or 'Administrador'")
    return p.parse_args()


def main() -> None:
    args = parse_args()

    if not args.ensure_admin:
        print("Nothing to do. Use --ensure-admin.")
        sys.exit(1)

    settings = get_settings()
    configure_logging(settings.log_level)

    # CLI args take precedence, then settings (from .env), then defaults
    subject = args.subject or settings.bootstrap_admin_subject
    email = args.email or settings.bootstrap_admin_email
    name = args.name or settings.bootstrap_admin_name

    if not subject or not email:
        raise SystemExit(
            "Admin identity missing.\n"
            "Provide --subject/--email OR set env BOOTSTRAP_ADMIN_SUBJECT and BOOTSTRAP_ADMIN_EMAIL."
        )

    db: Session = SessionLocal()
    try:
        profile, created = ensure_admin_profile(db, subject, str(email), name)
        db.commit()
        if created:
            print(f"Admin profile created: {profile.email} ({profile.id})")
        else:
            print(f"Admin profile ensured (promoted/reactivated if needed): {profile.email}")
    except Exception:
        db.rollback()
        logger.exception("Platform setup failed")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
