"""Ticket code generation (LC-YYYYMMDD-XXXX)."""
import re
import secrets
import string
from datetime import date
from typing import Callable, Optional

from app.exceptions import BusinessLogicError

BASE36_ALPHABET = string.digits + string.ascii_uppercase
SUFFIX_LENGTH = 4
MAX_ATTEMPTS = 10

TICKET_CODE_RE = re.compile(r'^[A-Z]+-\d{8}-[A-Z0-9]{4}$')


def generate_ticket_code(prefix: str = 'LC', today: Optional[date] = None) -> str:
    """Return ``<prefix>-YYYYMMDD-XXXX`` with a random base36 suffix."""
    today = today or date.today()
    suffix = ''.join(secrets.choice(BASE36_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}-{today.strftime('%Y%m%d')}-{suffix}"


def unique_ticket_code(exists: Callable[[str], bool], prefix: str = 'LC', today: Optional[date] = None) -> str:
    """
    Generate a ticket code not yet taken.

    Args:
        exists: Returns True when a code is already in use
        prefix: Ticket prefix
        today: Date embedded in the code (defaults to today)

    Raises:
        BusinessLogicError: No free code found after MAX_ATTEMPTS tries
    """
    for _ in range(MAX_ATTEMPTS):
        code = generate_ticket_code(prefix, today)
        if not exists(code):
            return code
    raise BusinessLogicError('No se pudo generar un código de ticket único, intente de nuevo')
