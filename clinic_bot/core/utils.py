import inspect
import logging
import re
import uuid
from typing import Optional, Union

logger = logging.getLogger(__name__)

_PHONE_NOISE = re.compile(r"[\s\-+]")

def normalize_phone(phone: str) -> str:
    """Strip spaces, dashes and '+' (WhatsApp sends bare digits)."""
    return _PHONE_NOISE.sub("", phone or "")

def phone_variants(phone: str) -> list:
    """
    Formats the same number may be stored under: bare digits, with '+',
    and with/without the Indian country code.
    """
    clean = normalize_phone(phone)
    variants = [clean, f"+{clean}"]
    if clean.startswith("91") and len(clean) == 12:
        variants.append(clean[2:])
    elif len(clean) == 10:
        variants.extend([f"91{clean}", f"+91{clean}"])
    return variants

def parse_uuid(value: Union[str, uuid.UUID, None]) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None

def truncate(text: Optional[str], limit: int) -> Optional[str]:
    if text is None:
        return None
    return text[:limit]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email or "") is not None

async def run_best_effort(label: str, func, *args, db=None, **kwargs):
    """
    Run a post-commit side effect (email, notification, reminder). Failures
    are logged and never propagate; the session is rolled back so the
    conversation can keep using it.
    """
    try:
        result = func(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        logger.error(f"❌ {label} failed: {e}", exc_info=True)
        if db is not None:
            db.rollback()
        return None
