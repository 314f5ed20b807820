"""Double-counting guard scoped to one member's aggregation pass"""

from datetime import date
from typing import Optional, Set, Tuple

from collection_gateway.domain.diagnostics import Diagnostics

GuardKey = Tuple[str, Optional[date], str]


class AttributionGuard:
    """
    Set of (member_id, calendar_date, record_id) keys already credited.

    Create one per member per pass and drop it afterwards; it is never shared
    between members or passes.
    """

    def __init__(self, member_id: str, diagnostics: Optional[Diagnostics] = None):
        self.member_id = member_id
        self.diagnostics = diagnostics
        self._claimed: Set[GuardKey] = set()

    def claim(self, day: Optional[date], record_id: str) -> bool:
        """Check-and-insert; False (and a counted skip) if already claimed"""
        key = (self.member_id, day, record_id)
        if key in self._claimed:
            if self.diagnostics is not None:
                self.diagnostics.guard_skip()
            return False
        self._claimed.add(key)
        return True

    def __contains__(self, key: GuardKey) -> bool:
        return key in self._claimed

    def __len__(self) -> int:
        return len(self._claimed)
