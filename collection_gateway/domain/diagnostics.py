"""Per-pass diagnostic counters for catching systematic misattribution"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from collection_gateway.domain.exceptions import (
    AmbiguousAttribution,
    InvalidAmount,
    InvalidDate,
    OverCollection,
    ReconciliationIssue,
)

logger = logging.getLogger(__name__)

IssueHook = Callable[[ReconciliationIssue], None]


@dataclass
class Diagnostics:
    """
    Counters and issues collected during one member's aggregation pass.

    Nothing here is shown to end users; tests and metrics read the counts.
    """

    member_id: str = ""
    skipped_by_guard: int = 0
    unparseable_records: int = 0
    over_collections: int = 0
    over_collected_amount: float = 0.0
    ambiguous_attributions: int = 0
    issues: List[ReconciliationIssue] = field(default_factory=list)
    on_issue: Optional[IssueHook] = field(default=None, repr=False, compare=False)

    def record(self, issue: ReconciliationIssue) -> None:
        """Count an issue and forward it to the hook, if any"""
        if isinstance(issue, (InvalidDate, InvalidAmount)):
            self.unparseable_records += 1
        elif isinstance(issue, OverCollection):
            self.over_collections += 1
            self.over_collected_amount += issue.excess
        elif isinstance(issue, AmbiguousAttribution):
            self.ambiguous_attributions += 1

        self.issues.append(issue)
        logger.warning(
            "Reconciliation issue: %s",
            issue,
            extra={
                "member_id": self.member_id,
                "issue": type(issue).__name__,
                "record_id": issue.record_id,
            },
        )
        if self.on_issue is not None:
            self.on_issue(issue)

    def guard_skip(self) -> None:
        self.skipped_by_guard += 1

    def as_dict(self) -> dict:
        return {
            "skipped_by_guard": self.skipped_by_guard,
            "unparseable_records": self.unparseable_records,
            "over_collections": self.over_collections,
            "over_collected_amount": self.over_collected_amount,
            "ambiguous_attributions": self.ambiguous_attributions,
        }
