# dreamlog/security/hashing.py
"""
Password digests.

Stored records hold the hex SHA-256 of the password. Verification
re-digests the candidate and compares in constant time.
"""
import hashlib
import secrets


def get_password_hash(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return secrets.compare_digest(get_password_hash(plain_password), hashed_password or "")
