"""
Reset a user's password (ops script).

Also clears the lockout counters and revokes every refresh token the user
holds, so existing sessions end with the old password.

SECURITY:
- No hardcoded emails or passwords.
- No password via CLI args (shell history). Read password from an env var.
- DRY_RUN by default; use --commit to persist.

Usage (inside api container):
  export GROWFIT_NEW_PASSWORD='...'
  python scripts/reset_password.py --email "$USER_EMAIL" --commit
"""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main() -> int:
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="account email")
    parser.add_argument(
        "--password-env",
        default="GROWFIT_NEW_PASSWORD",
        help="env var name containing the new password (default: GROWFIT_NEW_PASSWORD)",
    )
    parser.add_argument(
        "--commit",
        action="store_true",
        help="Persist the password change. Default is dry-run.",
    )
    args = parser.parse_args()

    new_password = os.getenv(args.password_env)
    if not new_password:
        print(f"ERROR: missing env var {args.password_env} (new password)")
        return 2

    from core.database import session_scope
    from core.security import get_password_hash
    from services import token_ledger, users_service

    with session_scope() as db:
        user = users_service.find_by_email(db, args.email)
        if not user:
            print(f"ERROR: no account with email={args.email}")
            return 1

        if not args.commit:
            print(f"DRY_RUN: would reset password for email={user.email}")
            return 0

        user.password_hash = get_password_hash(new_password)
        user.failed_login_attempts = 0
        user.locked_until = None
        revoked = token_ledger.revoke_all_for_user(db, user.id)

    print(f"OK: reset password for email={args.email} ({revoked} refresh tokens revoked)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
