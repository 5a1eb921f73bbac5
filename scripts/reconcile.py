#!/usr/bin/env python3
"""Reconcile every contact in the configured folder until stable.

Run from repo root with .env (KITH_CONTACTS_FOLDER, optional KITH_VCARD_FOLDER,
KITH_MAX_ITERATIONS, KITH_DEFAULT_REGION, KITH_CONFIG). Idempotent: a second run
on an unchanged folder changes nothing.
"""
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT / "src"))

from kith.bootstrap import build_pipeline  # noqa: E402
from kith.config import load_settings  # noqa: E402


def main() -> int:
    settings = load_settings(REPO_ROOT / ".env")
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=settings.log_level,
    )
    if not settings.contacts_folder.is_dir():
        print(f"Contacts folder not found: {settings.contacts_folder}", file=sys.stderr)
        return 1

    pipeline = build_pipeline(settings)
    report = pipeline.driver.reconcile_all(max_iterations=settings.max_iterations)

    for change in report.changes:
        print(f"[{change.phase}] {change.curator}: {change.message}")
    for change in report.write_back_changes:
        print(f"[write-back] {change.message}")
    for error in report.errors:
        print(f"error: {error}", file=sys.stderr)
    status = "converged" if report.converged else "hit iteration cap"
    print(f"{status} after {report.iterations} iteration(s), {len(report.changes)} change(s)")
    return 0 if report.converged and not report.errors else 2


if __name__ == "__main__":
    sys.exit(main())
