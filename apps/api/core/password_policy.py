"""
Password rules applied at registration, password change and admin bootstrap.

A password needs 8 characters, a letter and a digit, must fit bcrypt's
72-byte input, and must not be on the blocklist (case-insensitive).
"""
import re
from typing import Callable, List, Tuple

MIN_LENGTH = 8
MAX_BYTES = 72

BLOCKLIST = frozenset({
    "password", "password1", "password123", "12345678", "1234567890",
    "qwerty123", "abc12345", "letmein1", "welcome1", "passw0rd", "p@ssw0rd",
    "trustno1", "iloveyou1", "sunshine1", "football1", "baseball1",
    "admin123", "test1234", "fitness1", "fitness123", "workout1", "growfit1",
    "growfit123", "trainer1", "coach123",
})

RULES: List[Tuple[Callable[[str], bool], str]] = [
    (lambda p: len(p) >= MIN_LENGTH, f"Password must be at least {MIN_LENGTH} characters"),
    (lambda p: len(p.encode("utf-8")) <= MAX_BYTES, f"Password must not exceed {MAX_BYTES} bytes (bcrypt limit)"),
    (lambda p: re.search(r"[A-Za-z]", p) is not None, "Password must contain at least one letter"),
    (lambda p: re.search(r"\d", p) is not None, "Password must contain at least one digit"),
    (lambda p: p.lower() not in BLOCKLIST, "Password is too common, please choose a stronger password"),
]


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """Return (is_valid, errors); errors lists every rule the password breaks."""
    errors = [message for check, message in RULES if not check(password)]
    return not errors, errors
