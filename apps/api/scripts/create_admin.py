"""
Create a staff account (ops script).

Admin and team accounts cannot self-register; this is how the first admin
is bootstrapped.

SECURITY:
- No hardcoded emails or passwords.
- No password via CLI args (shell history). Read password from an env var.
- DRY_RUN by default; use --commit to persist.

Usage (inside api container):
  export GROWFIT_ADMIN_PASSWORD='...'
  python scripts/create_admin.py --email "$ADMIN_EMAIL" --name "Ops" --commit
"""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main() -> int:
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="staff email")
    parser.add_argument("--name", required=True, help="display name")
    parser.add_argument("--role", choices=["admin", "team"], default="admin")
    parser.add_argument(
        "--password-env",
        default="GROWFIT_ADMIN_PASSWORD",
        help="env var name containing the password (default: GROWFIT_ADMIN_PASSWORD)",
    )
    parser.add_argument(
        "--commit",
        action="store_true",
        help="Persist the account. Default is dry-run.",
    )
    args = parser.parse_args()

    password = os.getenv(args.password_env)
    if not password:
        print(f"ERROR: missing env var {args.password_env} (password)")
        return 2

    from core.database import session_scope
    from core.exceptions import ConflictError
    from core.password_policy import validate_password
    from services import users_service

    is_valid, errors = validate_password(password)
    if not is_valid:
        for error in errors:
            print(f"ERROR: {error}")
        return 2

    if not args.commit:
        print(f"DRY_RUN: would create {args.role} account email={args.email}")
        return 0

    try:
        with session_scope() as db:
            user = users_service.create_user(
                db, email=args.email, password=password, name=args.name, role=args.role
            )
            # Staff never go through kids onboarding.
            user.kids_data_completed = True
    except ConflictError:
        print(f"ERROR: an account with email={args.email} already exists")
        return 1

    print(f"OK: created {args.role} account email={args.email}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
