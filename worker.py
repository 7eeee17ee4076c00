#!/usr/bin/env python3
"""
Collect upcoming flamenco events and upsert them into MongoDB.

Runs one ingestion cycle immediately, then once a day at the configured
time. Sources:
- generative: ask Gemini for each artist's upcoming concerts
- scrape: follow the event links on one or more listing pages

Usage:
    python worker.py          # eager run, then daily schedule
    python worker.py --once   # single run, then exit
"""

import argparse
import sys
import time

import schedule

from duende import config
from duende.errors import ConfigError
from duende.pipeline.ingest import IngestionPipeline
from duende.pipeline.io import RunLog, build_status, load_existing_status, save_status
from duende.registry import get_source, get_store


def run_cycle(pipeline, log):
    """Run one ingestion cycle and persist its log and status files."""
    summary = pipeline.run()
    if summary is None:
        return None

    status = build_status(summary, load_existing_status(config.STATUS_PATH))
    try:
        save_status(config.STATUS_PATH, status)
        log(f"Status saved to {config.STATUS_PATH}")
        log.save(config.LOG_PATH, retention_days=config.LOG_RETENTION_DAYS)
    except OSError as e:
        print(f"Could not write run files: {e}")
    return summary


def build_pipeline(log):
    source, queries = get_source(log=log)
    return IngestionPipeline(
        source,
        queries,
        get_store(),
        pacing_seconds=config.PACING_SECONDS,
        expire_past=config.RETENTION_ENABLED,
        log=log,
    )


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--once", action="store_true", help="run a single cycle and exit")
    args = parser.parse_args(argv)

    log = RunLog()
    try:
        config.check_config()
        run_at = config.daily_time_from_cron(config.SCHEDULE_CRON)
        pipeline = build_pipeline(log)
    except ConfigError as e:
        log(f"FATAL: {e}", "ERROR")
        log("Fix the configuration (environment or .env) and restart the worker", "ERROR")
        return 1

    log(f"Worker started with source={config.SOURCE}, running once now")
    run_cycle(pipeline, log)
    if args.once:
        return 0

    schedule.every().day.at(run_at, config.SCHEDULE_TIMEZONE).do(run_cycle, pipeline, log)
    log(f"Next runs daily at {run_at} {config.SCHEDULE_TIMEZONE}")
    while True:
        schedule.run_pending()
        time.sleep(30)


if __name__ == "__main__":
    sys.exit(main())
