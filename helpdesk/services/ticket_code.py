"""
Ticket code generator.

Ticket codes are the human-readable handle customers quote on the phone:
"RES-" followed by the last six digits of the millisecond clock and four
random base36 characters, e.g. RES-482913K7QZ.

Codes are unique-ish, not unique; the ticket service checks the store and
retries, and the unique index on tickets.ticket_code is the final guard.
"""

import random
import string
import time
from typing import Callable, Optional

from helpdesk.core.config import settings


BASE36_ALPHABET = string.digits + string.ascii_uppercase
RANDOM_SUFFIX_LENGTH = 4
CLOCK_DIGITS = 6


def _millis() -> int:
    return time.time_ns() // 1_000_000


class TicketCodeGenerator:
    """
    Args:
        prefix: Code prefix (default TICKET_CODE_PREFIX)
        clock: Millisecond clock
        rng: Source of randomness; not used for anything security related
    """

    def __init__(
        self,
        prefix: Optional[str] = None,
        clock: Callable[[], int] = _millis,
        rng: Optional[random.Random] = None,
    ):
        self.prefix = prefix or settings.TICKET_CODE_PREFIX
        self.clock = clock
        self.rng = rng or random.Random()

    def generate(self) -> str:
        stamp = str(self.clock()).zfill(CLOCK_DIGITS)[-CLOCK_DIGITS:]
        suffix = "".join(self.rng.choice(BASE36_ALPHABET) for _ in range(RANDOM_SUFFIX_LENGTH))
        return f"{self.prefix}-{stamp}{suffix}"
