"""Command line trigger for cadence workflows.

Every invocation performs one operation and exits; a cron job or another
external scheduler decides when to run it.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

if __package__ is None or __package__ == "":  # pragma: no cover - runtime safety for script execution
    sys.path.append(str(Path(__file__).resolve().parent.parent))

from cadence import CadenceError, CadenceService, ScheduleRequest
from cadence.config import DEFAULT_DATABASE_URL, DEFAULT_TASK_LOG_PATH
from cadence.models import utc_today
from connector.alert_client import client_from_environment
from connector.sql_store import SqlCadenceStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CadenceRunLog:
    """Keeps the most recent cadence command runs in a JSON file.

    Each entry records the command, its outcome, how long it took and the
    command summary (counts and ids) or the failure that stopped it.
    """

    def __init__(self, log_path: Path, *, max_entries: int = 500) -> None:
        self._log_path = log_path
        self._max_entries = max(1, max_entries)
        self._lock = threading.Lock()
        self._log_path.parent.mkdir(parents=True, exist_ok=True)

    def record(
        self,
        command: str,
        started_at: datetime,
        *,
        summary: Optional[Dict[str, object]] = None,
        error: Optional[BaseException] = None,
    ) -> Dict[str, object]:
        elapsed = _utc_now() - started_at
        entry: Dict[str, object] = {
            "command": command,
            "outcome": "error" if error is not None else "ok",
            "started_at": started_at.isoformat(timespec="seconds"),
            "duration_ms": int(elapsed.total_seconds() * 1000),
        }
        if error is not None:
            entry["error_type"] = type(error).__name__
            entry["error"] = str(error)
        if summary is not None:
            entry["summary"] = summary

        with self._lock:
            entries = self.entries()
            entries.append(entry)
            del entries[: -self._max_entries]
            self._log_path.write_text(json.dumps(entries, indent=2) + "\n", encoding="utf-8")
        return entry

    def entries(self) -> List[Dict[str, object]]:
        if not self._log_path.exists():
            return []
        raw_content = self._log_path.read_text(encoding="utf-8").strip()
        if not raw_content:
            return []
        try:
            data = json.loads(raw_content)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Run log {self._log_path} is not valid JSON: {exc.msg}") from exc
        if not isinstance(data, list):
            raise ValueError(f"Run log {self._log_path} must hold a JSON list")
        return data


def run_and_record(
    command: str, action: Callable[[], Dict[str, object]], run_log: CadenceRunLog
) -> Dict[str, object]:
    """Run one cadence command and append its outcome to *run_log*."""

    started_at = _utc_now()
    try:
        summary = action()
    except Exception as exc:
        run_log.record(command, started_at, error=exc)
        raise
    run_log.record(command, started_at, summary=summary)
    return summary


def build_service(database_url: str) -> CadenceService:
    store = SqlCadenceStore.from_url(database_url)
    return CadenceService(store, alert_publisher=client_from_environment())


def run_activation(service: CadenceService) -> Dict[str, object]:
    published = service.activate_and_notify()
    return {"published_count": len(published), "published_ids": [item.id for item in published]}


def run_notify_unpublished(service: CadenceService) -> Dict[str, object]:
    published = service.notify_unpublished()
    return {"published_count": len(published), "published_ids": [item.id for item in published]}


def run_reschedule(service: CadenceService, args: argparse.Namespace) -> Dict[str, object]:
    request = ScheduleRequest(
        patient_id=args.patient_id,
        cadence_days=args.cadence_days,
        start_date=args.start_date,
        blood_collection_method=args.method,
        test_order_id=args.test_order_id,
        practice_id=args.practice_id,
    )
    created = service.schedule(request)
    return {
        "patient_id": args.patient_id,
        "created_count": len(created),
        "cadence_dates": [item.cadence_date.isoformat() for item in created],
    }


def run_list(service: CadenceService, args: argparse.Namespace) -> Dict[str, object]:
    if args.patient_id is not None:
        items = service.items_by_patient(args.patient_id)
    elif args.pending:
        items = service.pending_items_by_practice(args.practice_id)
    else:
        items = service.items_by_practice(args.practice_id)
    return {"items": [item.to_payload() for item in items]}


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected a YYYY-MM-DD date, got {value!r}") from exc


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Blood-collection cadence controller")
    parser.add_argument("--database-url", default=DEFAULT_DATABASE_URL, help="SQLAlchemy database URL")
    parser.add_argument("--task-log", type=Path, default=DEFAULT_TASK_LOG_PATH, help="JSON run log path")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("activate", help="Promote due items and publish mobile collection alerts")
    subparsers.add_parser("notify-unpublished", help="Retry alerts for Pending items never published")

    reschedule = subparsers.add_parser("reschedule", help="Replace a patient's live cadence series")
    reschedule.add_argument("--patient-id", type=int, required=True)
    reschedule.add_argument("--cadence-days", type=int, required=True)
    reschedule.add_argument("--start-date", type=_iso_date, default=utc_today())
    reschedule.add_argument("--method", default="")
    reschedule.add_argument("--practice-id", type=int)
    reschedule.add_argument("--test-order-id", type=int)

    listing = subparsers.add_parser("list", help="Print cadence items as JSON")
    target = listing.add_mutually_exclusive_group(required=True)
    target.add_argument("--patient-id", type=int)
    target.add_argument("--practice-id", type=int)
    listing.add_argument("--pending", action="store_true", help="Only Pending items (with --practice-id)")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None, *, service: Optional[CadenceService] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    run_log = CadenceRunLog(args.task_log)
    service = service or build_service(args.database_url)

    actions: Dict[str, Callable[[], Dict[str, object]]] = {
        "activate": lambda: run_activation(service),
        "notify-unpublished": lambda: run_notify_unpublished(service),
        "reschedule": lambda: run_reschedule(service, args),
        "list": lambda: run_list(service, args),
    }
    try:
        result = run_and_record(args.command, actions[args.command], run_log)
    except CadenceError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1

    print(json.dumps(result, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
