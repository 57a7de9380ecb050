import bcrypt

MIN_PASSWORD_LENGTH = 6

def validate_password(plain_password):
    errors = []
    if not isinstance(plain_password, str) or not plain_password:
        return False, ["Password is required"]
    if len(plain_password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(plain_password.encode("utf-8")) > 72:
        # bcrypt only looks at the first 72 bytes
        errors.append("Password must be at most 72 bytes")
    return not errors, errors

def hash_password(plain_password: str, rounds: int = 12) -> str:
    if not isinstance(plain_password, str) or len(plain_password) == 0:
        raise ValueError("Password must be a non-empty string")

    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")

def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8")
        )
    except ValueError:
        return False
