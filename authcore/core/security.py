"""Password hashing and verification (the credential verifier)."""

import hmac

import bcrypt

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes of a password.
BCRYPT_MAX_PASSWORD_BYTES = 72

# Encoded lengths: "$2b$12$" + 22 salt chars, and salt + 31 hash chars.
BCRYPT_SALT_LEN = 29
BCRYPT_HASH_LEN = 60

# Min/max lengths for login and user-creation input validation.
USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 25
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128


def _password_bytes(plain_password: str) -> bytes:
    return plain_password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> tuple[str, str]:
    """
    Hash a plain-text password with a fresh random salt.

    Returns (password_hash, password_salt); both are fixed-length ASCII strings
    and the salt is never shared between users. Do not store plain passwords.
    """
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(_password_bytes(plain_password), salt)
    return hashed.decode("ascii"), salt.decode("ascii")


def verify_password(stored_hash: str, stored_salt: str, presented_password: str) -> bool:
    """
    Check a presented password against the stored hash and salt.

    Fails closed: a malformed hash or salt, or a salt that does not belong to
    the hash, returns False instead of raising.
    """
    try:
        if len(stored_hash) != BCRYPT_HASH_LEN or len(stored_salt) != BCRYPT_SALT_LEN:
            return False
        candidate = bcrypt.hashpw(
            _password_bytes(presented_password),
            stored_salt.encode("ascii"),
        )
        return hmac.compare_digest(candidate, stored_hash.encode("ascii"))
    except (ValueError, TypeError, UnicodeError, AttributeError):
        return False


# Verified when a login names an unknown user so both failure paths do the same bcrypt work.
DUMMY_PASSWORD_HASH, DUMMY_PASSWORD_SALT = hash_password("authcore-timing-equalizer")
