"""
Token Generator
Produces candidate QR tokens from the operating system's CSPRNG.

Tokens are printed on physical signage, so nothing about them may be
sequential, time-based or otherwise predictable.
"""

import math
import re
import secrets
from typing import List

from qr_assets.errors import ValidationError

TOKEN_MIN_LENGTH = 8
TOKEN_MAX_LENGTH = 12
# Lookups accept longer tokens than we issue, for legacy stickers
TOKEN_LOOKUP_MAX_LENGTH = 64

URL_SAFE_TOKEN = re.compile(r'[A-Za-z0-9_-]+')


class TokenGenerator:
    """Generates URL-safe tokens of random length in [min_length, max_length]"""

    def __init__(self, min_length: int = TOKEN_MIN_LENGTH, max_length: int = TOKEN_MAX_LENGTH):
        if min_length < 1 or max_length < min_length:
            raise ValueError(f"Invalid token length range [{min_length}, {max_length}]")
        self.min_length = min_length
        self.max_length = max_length

    def generate(self) -> str:
        length = self.min_length + secrets.randbelow(self.max_length - self.min_length + 1)
        # base64 yields 4 characters per 3 bytes
        token = secrets.token_urlsafe(math.ceil(length * 3 / 4))
        return token[:length]

    def generate_many(self, count: int) -> List[str]:
        return [self.generate() for _ in range(count)]


def is_well_formed(token) -> bool:
    """True when token is a non-empty URL-safe string no longer than TOKEN_LOOKUP_MAX_LENGTH"""
    if not isinstance(token, str):
        return False
    return 0 < len(token) <= TOKEN_LOOKUP_MAX_LENGTH and URL_SAFE_TOKEN.fullmatch(token) is not None


def normalize_token(token) -> str:
    """
    Strip surrounding whitespace and check the token shape.

    Raises:
        ValidationError: If the token is empty, too long or not URL-safe
    """
    normalized = token.strip() if isinstance(token, str) else token
    if not is_well_formed(normalized):
        raise ValidationError("Invalid token format", token=token if isinstance(token, str) else None)
    return normalized
