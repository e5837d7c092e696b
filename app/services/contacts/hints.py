"""Best-effort name/email extraction from inbound message text.

Only used to pre-fill the "link contact" form. Nothing here writes to the
database or feeds ContactResolver on its own.
"""
import re
from typing import Iterable, Optional

from pydantic import BaseModel

_NAME_WORD = r"[A-Z][a-zA-Z'\-]+"
_NAME_PATTERNS = [
    re.compile(rf"(?i:\bmy name is)\s+({_NAME_WORD}(?:\s+{_NAME_WORD})?)"),
    re.compile(rf"(?i:\bthis is)\s+({_NAME_WORD}(?:\s+{_NAME_WORD})?)"),
]
_EMAIL = re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9\-]+(?:\.[A-Za-z0-9\-]+)*\.[A-Za-z]{2,}")

# Capitalized words that follow "this is" without being a name.
_NOT_NAMES = {"A", "An", "The", "It", "My", "Your", "Our", "Regarding", "About", "Re"}


class ContactHints(BaseModel):
    """Suggested values for the link form."""

    name: Optional[str] = None
    email: Optional[str] = None


def extract_name(text: str) -> Optional[str]:
    for pattern in _NAME_PATTERNS:
        for match in pattern.finditer(text or ""):
            words = match.group(1).split()
            if words[0] in _NOT_NAMES:
                continue
            return " ".join(words)
    return None


def extract_email(text: str) -> Optional[str]:
    match = _EMAIL.search(text or "")
    return match.group(0).rstrip(".").lower() if match else None


def extract_contact_hints(texts: Iterable[str]) -> ContactHints:
    """First name and first email found across the given message bodies."""
    hints = ContactHints()
    for text in texts:
        if hints.name is None:
            hints.name = extract_name(text)
        if hints.email is None:
            hints.email = extract_email(text)
        if hints.name and hints.email:
            break
    return hints
