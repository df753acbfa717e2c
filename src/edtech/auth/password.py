"""Password hashing utilities.

Learn: Uses bcrypt for password hashing. bcrypt generates and embeds a
random salt, and its work factor makes every guess expensive. The cost
comes from Settings.bcrypt_rounds (never below 10; 12 takes ~100ms per
hash on modern hardware). checkpw compares in constant time.

bcrypt only reads the first 72 bytes of its input. Longer passwords are
rejected rather than cut, so every byte a user types is checked.
Never replace this with a fast general-purpose hash.
"""

import bcrypt

MIN_ROUNDS = 10
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt.

    Learn: Hashes start with "$2b$". Raises ValueError when the password
    is longer than 72 UTF-8 bytes; request schemas reject those first.
    """
    pw_bytes = password.encode("utf-8")
    if len(pw_bytes) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password exceeds {MAX_PASSWORD_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=max(rounds, MIN_ROUNDS))
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against its stored hash. Fails closed."""
    pw_bytes = password.encode("utf-8")
    if len(pw_bytes) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False
