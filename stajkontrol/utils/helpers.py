"""Helper utilities."""

import hashlib
import hmac
import re
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_email(email: Optional[str]) -> str:
    """Lower-case and strip an e-mail address."""
    return (email or "").strip().lower()


def generate_hash(text: str, key: str) -> str:
    """Keyed SHA256 hash of text."""
    return hmac.new(key.encode(), text.encode(), hashlib.sha256).hexdigest()


def sanitize_filename(filename: str) -> str:
    """Sanitize a user supplied filename for display and download headers."""
    # Strip any directory component first
    filename = re.split(r"[\\/]", filename or "")[-1]
    sanitized = re.sub(r"[^\w\s.-]", "", filename)
    sanitized = re.sub(r"\s+", "_", sanitized).strip("._")
    return sanitized[:255] or "belge.pdf"


def paginate(page: int = 1, page_size: int = 20) -> dict:
    """Offset/limit for a page."""
    offset = (page - 1) * page_size
    return {
        "offset": offset,
        "limit": page_size,
        "page": page,
        "page_size": page_size,
    }
