# clipshare/utils/codes.py
# Short public codes for clipboard entries

import re
import secrets
import string

# URL-safe alphabet (64 symbols); 6 chars gives ~6.9e10 codes
CODE_ALPHABET = string.ascii_letters + string.digits + "_-"

_CODE_RE = re.compile(r"^[A-Za-z0-9_-]+$")
MAX_CODE_LENGTH = 64


def generate_code(length: int = 6) -> str:
    """Generate a random URL-safe code."""
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def is_valid_code(code: str) -> bool:
    """True if code could have been produced by generate_code."""
    return bool(code) and len(code) <= MAX_CODE_LENGTH and bool(_CODE_RE.match(code))
