"""
Unit tests for the ticket code generator.
"""

import random
import re

from helpdesk.services.ticket_code import BASE36_ALPHABET, TicketCodeGenerator


CODE_PATTERN = re.compile(r"^RES-\d{6}[0-9A-Z]{4}$")


class TestTicketCodeGenerator:
    def test_format(self):
        code = TicketCodeGenerator(prefix="RES").generate()
        assert CODE_PATTERN.match(code), code

    def test_uses_last_six_digits_of_clock(self):
        generator = TicketCodeGenerator(prefix="RES", clock=lambda: 1718000123456)
        assert generator.generate().startswith("RES-123456")

    def test_short_clock_is_zero_padded(self):
        generator = TicketCodeGenerator(prefix="RES", clock=lambda: 42)
        assert generator.generate().startswith("RES-000042")

    def test_suffix_comes_from_rng(self):
        first = TicketCodeGenerator(prefix="RES", clock=lambda: 1, rng=random.Random(7)).generate()
        second = TicketCodeGenerator(prefix="RES", clock=lambda: 1, rng=random.Random(7)).generate()
        assert first == second
        assert all(char in BASE36_ALPHABET for char in first[-4:])

    def test_custom_prefix(self):
        code = TicketCodeGenerator(prefix="HD", clock=lambda: 999999).generate()
        assert code.startswith("HD-999999")
        assert len(code) == len("HD-") + 10
