"""Appointment id generation.

Two strategies:
- random_id: "A" + random 5-digit number, redrawn until unused (new bookings)
- next_sequential: highest existing "A<digits>" + 1, zero-padded (restores)
"""
import random
import re
from typing import Iterable, Optional

from clinic_scheduler import config
from clinic_scheduler.errors import IdSpaceExhausted


class IdGenerator:
    """Produces appointment ids that don't collide with existing ones."""

    def __init__(
        self,
        prefix: str = config.APPOINTMENT_ID_PREFIX,
        rng: Optional[random.Random] = None,
        max_attempts: int = config.MAX_ID_ATTEMPTS,
    ):
        self.prefix = prefix
        self.rng = rng or random.Random()
        self.max_attempts = max_attempts
        self._pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")

    def random_id(self, existing: Iterable[str]) -> str:
        """
        Draw random ids until one is not in use.

        Args:
            existing: Ids currently in the store

        Returns:
            New id, e.g. "A48213"

        Raises:
            IdSpaceExhausted: If max_attempts draws all collided
        """
        taken = set(existing)
        for _ in range(self.max_attempts):
            candidate = f"{self.prefix}{self.rng.randint(config.RANDOM_ID_MIN, config.RANDOM_ID_MAX)}"
            if candidate not in taken:
                return candidate

        raise IdSpaceExhausted(
            f"Could not find a free appointment id after {self.max_attempts} attempts. "
            "Archive old appointments or widen the id range."
        )

    def next_sequential(self, existing: Iterable[str]) -> str:
        """Highest numeric id + 1, zero-padded ("A00001" when there are none)."""
        highest = 0
        for appointment_id in existing:
            match = self._pattern.match(appointment_id or "")
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{self.prefix}{highest + 1:0{config.RESTORED_ID_WIDTH}d}"
