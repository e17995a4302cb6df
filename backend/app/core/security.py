"""
PIN and secret hashing.

PINs and security answers are never stored in clear text.
"""

from passlib.context import CryptContext

pin_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def get_pin_hash(pin: str) -> str:
    return pin_context.hash(pin)


def verify_pin(plain_pin: str, hashed_pin: str) -> bool:
    return pin_context.verify(plain_pin, hashed_pin)


def normalize_answer(answer: str) -> str:
    """Security answers compare case- and whitespace-insensitively."""
    return " ".join(answer.lower().split())
