import threading
import time
import traceback
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from duende.errors import StoreError
from duende.pipeline.metrics import QueryMetrics
from duende.pipeline.normalize import normalize
from duende.pipeline.records import Rejected
from duende.pipeline.temporal import keep
from duende.utils.dates import to_day


class ItemState(Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    FILTERING = "filtering"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class RunState(Enum):
    RUNNING = "running"
    CYCLE_COMPLETE = "cycle_complete"
    ABORTED = "aborted"


# stages an item may fail from
FAILABLE_STATES = {ItemState.FETCHING, ItemState.NORMALIZING, ItemState.PERSISTING}


@dataclass
class QueryItem:
    query: str
    state: ItemState = ItemState.PENDING
    reason: str = None
    metrics: QueryMetrics = None

    def __post_init__(self):
        if self.metrics is None:
            self.metrics = QueryMetrics(query=self.query)

    def advance(self, state):
        self.state = state

    def fail(self, reason):
        if self.state not in FAILABLE_STATES:
            raise ValueError(f"Cannot fail {self.query!r} from {self.state.name}")
        self.state = ItemState.FAILED
        self.reason = reason
        self.metrics.errors += 1


@dataclass
class RunSummary:
    started_at: str
    reference_date: str
    items: list
    state: RunState = RunState.RUNNING
    error: str = None
    expired: int = 0

    def total(self, counter):
        return sum(getattr(item.metrics, counter) for item in self.items)

    def failed_items(self):
        return [item for item in self.items if item.state is ItemState.FAILED]


class IngestionPipeline:
    """
    Fetch, normalize, filter and upsert events for each configured query.

    Items run strictly in order with a pacing delay between them. A failing
    item is logged and skipped; a store failure ends the run early. Only one
    run may be in progress at a time: a run triggered during another is
    skipped and returns None.
    """

    def __init__(self, source, queries, store, pacing_seconds=30, expire_past=False,
                 log=print, sleep=time.sleep, today=date.today):
        self.source = source
        self.queries = list(queries)
        self.store = store
        self.pacing_seconds = pacing_seconds
        self.expire_past = expire_past
        self.log = log
        self.sleep = sleep
        self.today = today
        self._running = threading.Lock()

    def run(self, reference=None):
        if not self._running.acquire(blocking=False):
            self.log("Previous run still in progress, skipping this trigger", "WARNING")
            return None
        try:
            return self._run(to_day(reference) if reference is not None else self.today())
        finally:
            self._running.release()

    def _run(self, reference):
        summary = RunSummary(
            started_at=datetime.utcnow().isoformat() + "Z",
            reference_date=reference.isoformat(),
            items=[QueryItem(query=q) for q in self.queries],
        )
        self.log(f"Starting {self.source.name} ingestion run at {summary.started_at} "
                 f"({len(summary.items)} queries, events from {summary.reference_date})")

        try:
            with self.store:
                for i, item in enumerate(summary.items):
                    if i > 0:
                        self.log(f"  Pausing {self.pacing_seconds:g}s...")
                        self.sleep(self.pacing_seconds)
                    self.process_item(item, reference)

                if self.expire_past:
                    summary.expired = self.store.expire_before(reference)
                    self.log(f"Expired {summary.expired} past events")
        except StoreError as e:
            summary.state = RunState.ABORTED
            summary.error = str(e)
            self.log(f"Store error, ending run early: {e}", "ERROR")
        else:
            summary.state = RunState.CYCLE_COMPLETE

        self.log_summary(summary)
        return summary

    def process_item(self, item, reference):
        """
        Drive one query through its states. Returns the item.
        StoreError is re-raised after marking the item FAILED so the run can stop.
        """
        m = item.metrics
        start_time = time.time()
        self.log(f"Querying {item.query}...")

        try:
            item.advance(ItemState.FETCHING)
            try:
                candidates = self.source.fetch(item.query)
            except Exception as e:
                item.fail(f"fetch failed: {e}")
                self.log(f"  ERROR: {item.query}: {e}", "ERROR")
                self.log(f"  Traceback:\n{traceback.format_exc()}", "ERROR")
                return item
            m.candidates = len(candidates)

            item.advance(ItemState.NORMALIZING)
            records = []
            try:
                for raw in candidates:
                    result = normalize(raw)
                    if isinstance(result, Rejected):
                        m.count_rejection(result.reason)
                        self.log_rejection(result)
                    else:
                        records.append(result)
            except Exception as e:
                item.fail(f"normalize failed: {e}")
                self.log(f"  ERROR: could not normalize {item.query}: {e}", "ERROR")
                return item

            item.advance(ItemState.FILTERING)
            upcoming = [r for r in records if keep(r, reference)]
            m.stale = len(records) - len(upcoming)

            item.advance(ItemState.PERSISTING)
            try:
                counts = self.store.upsert_batch(upcoming)
            except StoreError as e:
                item.fail(f"persist failed: {e}")
                raise
            m.written = counts["written"]
            m.skipped = counts["skipped"]

            item.advance(ItemState.DONE)
            self.log(f"  {m.candidates} candidates: {m.written} written, {m.skipped} unchanged, "
                     f"{m.rejected} rejected, {m.stale} past")
            if m.rejection_reasons:
                reasons = ", ".join(f"{r}: {n}" for r, n in sorted(m.rejection_reasons.items()))
                self.log(f"  Rejected ({reasons})", "WARNING")
            return item
        finally:
            m.duration_ms = (time.time() - start_time) * 1000

    def log_rejection(self, rejected):
        raw = rejected.candidate
        name = raw.get("name") if isinstance(raw, Mapping) else None
        detail = f"{rejected.reason} ({rejected.field})" if rejected.field else rejected.reason
        self.log(f"  Dropped {name or 'unnamed candidate'!r}: {detail}", "WARNING")

    def log_summary(self, summary):
        log = self.log
        log("")
        log("=" * 77)
        log(f"RUN SUMMARY ({summary.state.name})")
        log("=" * 77)
        log(f"{'Query':<28} {'State':>8} {'Found':>6} {'Wrote':>6} {'Same':>5} {'Rej':>5} {'Past':>5} {'Err':>4} {'Time':>9}")
        log("-" * 77)
        for item in summary.items:
            m = item.metrics
            time_str = f"{m.duration_ms:.0f}ms"
            log(f"{item.query[:28]:<28} {item.state.name[:8]:>8} {m.candidates:>6} {m.written:>6} "
                f"{m.skipped:>5} {m.rejected:>5} {m.stale:>5} {m.errors:>4} {time_str:>9}")
        log("-" * 77)
        log(f"{'TOTAL':<28} {'':>8} {summary.total('candidates'):>6} {summary.total('written'):>6} "
            f"{summary.total('skipped'):>5} {summary.total('rejected'):>5} {summary.total('stale'):>5} {summary.total('errors'):>4}")
        log("=" * 77)

        failed = summary.failed_items()
        if failed:
            log(f"WARNING: Failed queries: {', '.join(item.query for item in failed)}", "ERROR")
