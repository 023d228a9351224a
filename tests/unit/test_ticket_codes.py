"""Unit tests for ticket code generation."""
from datetime import date

import pytest

from app.exceptions import BusinessLogicError
from app.services.ticket_service import TICKET_CODE_RE, generate_ticket_code, unique_ticket_code


def test_format_and_date():
    code = generate_ticket_code(today=date(2026, 3, 9))
    assert TICKET_CODE_RE.match(code)
    assert code.startswith('LC-20260309-')


def test_codes_generated_together_differ():
    codes = {generate_ticket_code() for _ in range(50)}
    assert all(TICKET_CODE_RE.match(c) and c.startswith('LC-') for c in codes)
    assert len(codes) > 45


def test_unique_code_retries_on_collision():
    taken = []

    def exists(code):
        taken.append(code)
        return len(taken) < 3

    code = unique_ticket_code(exists)
    assert code == taken[-1]
    assert len(taken) == 3


def test_unique_code_gives_up():
    with pytest.raises(BusinessLogicError):
        unique_ticket_code(lambda code: True)


def test_custom_prefix_keeps_format():
    code = generate_ticket_code(prefix='LAV', today=date(2026, 3, 9))
    assert TICKET_CODE_RE.match(code)
    assert code.startswith('LAV-20260309-')
    assert not TICKET_CODE_RE.match('lav-20260309-AB12')
