#!/usr/bin/env python3
"""
Generate or check TOKEN_ENCRYPTION_KEY (Fernet) for stored calendar tokens.

Usage:
  python scripts/generate_encryption_key.py            # print a new key line for .env
  python scripts/generate_encryption_key.py --check    # validate the key in the environment

Rotating the key makes every stored calendar token unreadable; affected users
have to reconnect their calendar.
"""

from __future__ import annotations

import argparse
import os

from cryptography.fernet import Fernet


def check_current_key() -> int:
    key = os.getenv("TOKEN_ENCRYPTION_KEY")
    if not key:
        print("ERROR: TOKEN_ENCRYPTION_KEY is not set")
        return 1
    try:
        Fernet(key.encode())
    except ValueError as e:
        print(f"ERROR: TOKEN_ENCRYPTION_KEY is not a valid Fernet key ({e})")
        return 1
    print("OK: TOKEN_ENCRYPTION_KEY is a valid Fernet key")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--check", action="store_true", help="validate the key currently in the environment")
    args = parser.parse_args()

    if args.check:
        return check_current_key()

    print(f"TOKEN_ENCRYPTION_KEY={Fernet.generate_key().decode()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
