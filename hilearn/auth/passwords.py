from passlib.hash import pbkdf2_sha256 as hasher


def hash_password(raw: str) -> str:
    return hasher.hash(raw)


def verify_password(raw: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return hasher.verify(raw, hashed)
    except ValueError:
        # Malformed or foreign hash format.
        return False
