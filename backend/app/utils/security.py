import bcrypt

# bcrypt only looks at the first 72 bytes and newer builds raise past that.
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    if not password:
        raise ValueError("Password is required")
    pw_bytes = password.encode("utf-8")
    if len(pw_bytes) > _BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be {_BCRYPT_MAX_BYTES} bytes or less")
    return pw_bytes


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        return False
