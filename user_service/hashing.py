"""Password hashing with bcrypt."""

import bcrypt

# bcrypt only consumes the first 72 bytes of a secret
BCRYPT_MAX_BYTES = 72


def _secret_bytes(password: str) -> bytes:
    return password.encode('utf-8')[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a plain text password using bcrypt with a fresh salt for secure storage."""
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(_secret_bytes(password), salt)
    # Return as string for database storage
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain text password against a hashed password."""
    return bcrypt.checkpw(_secret_bytes(plain_password), hashed_password.encode('utf-8'))
