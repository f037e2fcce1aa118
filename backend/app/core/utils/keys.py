import hashlib
import re
import secrets

CERTIFICATE_UID_LENGTH = 12
CERTIFICATE_UID_PATTERN = re.compile(r"^[A-Z0-9]{12}$")
# no 0/O or 1/I so generated ids survive being read aloud
_UID_CHARACTERS = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def normalize_certificate_uid(uid: str) -> str:
    return uid.strip().upper()


def generate_certificate_uid() -> str:
    """Generate a random, user-friendly certificate id."""
    return "".join(
        secrets.choice(_UID_CHARACTERS) for _ in range(CERTIFICATE_UID_LENGTH)
    )


def compute_verification_hash(uid: str) -> str:
    """Hex SHA-256 of the normalised certificate uid."""
    return hashlib.sha256(normalize_certificate_uid(uid).encode("utf-8")).hexdigest()
