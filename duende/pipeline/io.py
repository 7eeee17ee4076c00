import json
import re
from datetime import datetime, timedelta


def trim_log_by_time(log_path, retention_days=14):
    """
    Remove log entries older than retention_days.
    Returns list of lines to keep.
    """
    if not log_path.exists():
        return []

    cutoff = datetime.utcnow() - timedelta(days=retention_days)
    cutoff_str = cutoff.strftime("%Y-%m-%d %H:%M:%S")

    kept_lines = []
    current_entry_recent = False

    with open(log_path, "r", encoding="utf-8") as f:
        for line in f:
            match = re.match(r"\[(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})\]", line)
            if match:
                current_entry_recent = match.group(1) >= cutoff_str

            if current_entry_recent:
                kept_lines.append(line)

    return kept_lines


class RunLog:
    """
    Log to the console and keep a timestamped copy of each line.
    Call it like a function: log("message") or log("message", "ERROR").
    """

    def __init__(self, echo=print):
        self.echo = echo
        self.lines = []

    def __call__(self, message, level="INFO"):
        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
        self.echo(message)
        self.lines.append(f"[{timestamp}] [{level}] {message}")

    def save(self, log_path, retention_days=14):
        """Append buffered lines to log_path, dropping entries past retention, then clear the buffer."""
        existing_log = trim_log_by_time(log_path, retention_days=retention_days)
        log_content = existing_log + ["\n--- New Run ---\n"] + [line + "\n" for line in self.lines]

        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "w", encoding="utf-8") as f:
            f.writelines(log_content)
        self.lines = []


def load_existing_status(status_path):
    """Load the previous run status file if available."""
    try:
        if status_path.exists():
            with open(status_path, "r", encoding="utf-8") as f:
                return json.load(f)
    except (OSError, ValueError):
        pass
    return {"queries": {}}


def build_status(summary, existing_status):
    """
    Build the status document for a finished run.
    Queries that failed this time keep their last successful run info.
    """
    query_statuses = {}
    for item in summary.items:
        m = item.metrics
        success = item.state.name == "DONE"
        status = {
            "last_run": summary.started_at,
            "state": item.state.name,
            "success": success,
            "candidates": m.candidates,
            "written": m.written,
            "skipped": m.skipped,
            "rejected": m.rejected,
            "stale": m.stale,
            "error": item.reason,
        }

        existing = existing_status.get("queries", {}).get(item.query, {})
        if success:
            status["last_success"] = summary.started_at
            status["last_success_count"] = m.written + m.skipped
        elif existing.get("last_success"):
            status["last_success"] = existing["last_success"]
            status["last_success_count"] = existing.get("last_success_count", 0)

        query_statuses[item.query] = status

    return {
        "last_run": summary.started_at,
        "state": summary.state.name,
        "reference_date": summary.reference_date,
        "total_written": summary.total("written"),
        "total_skipped": summary.total("skipped"),
        "failed": len(summary.failed_items()),
        "error": summary.error,
        "queries": query_statuses,
    }


def save_status(status_path, status):
    status_path.parent.mkdir(parents=True, exist_ok=True)
    with open(status_path, "w", encoding="utf-8") as f:
        json.dump(status, f, indent=2, ensure_ascii=False)
