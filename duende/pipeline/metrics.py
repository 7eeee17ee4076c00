from dataclasses import dataclass, field


@dataclass
class QueryMetrics:
    """Track ingestion metrics for one query-item."""
    query: str
    candidates: int = 0
    rejected: int = 0
    stale: int = 0
    written: int = 0
    skipped: int = 0
    errors: int = 0
    rejection_reasons: dict = field(default_factory=dict)
    duration_ms: float = 0.0

    def count_rejection(self, reason):
        self.rejected += 1
        self.rejection_reasons[reason] = self.rejection_reasons.get(reason, 0) + 1
