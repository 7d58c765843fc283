#!/usr/bin/env python3
"""Publish one stored draft to WordPress as a draft post."""

import sys
from datetime import datetime, timezone
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from draftpress.config import load_settings
from draftpress.orchestrator import PublishOrchestrator
from draftpress.utils.logger import setup_logging


def write_last_run(log_dir: Path, success: bool, message: str = ""):
    """Write a last_run.txt for health check monitoring."""
    last_run_path = log_dir / "last_run.txt"
    last_run_path.parent.mkdir(parents=True, exist_ok=True)
    status = "SUCCESS" if success else "FAILURE"
    timestamp = datetime.now(timezone.utc).isoformat()
    last_run_path.write_text(f"{status}\n{timestamp}\n{message}\n")


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("usage: publish_draft.py <draft_id>", file=sys.stderr)
        return 2

    settings = load_settings("config.yaml")
    setup_logging(settings.logging)
    log_dir = Path(settings.logging.dir)

    orchestrator = PublishOrchestrator.from_settings(settings)
    result = orchestrator.publish(argv[0])

    for warning in result.warnings:
        print(f"  warning: {warning}")

    if not result.success:
        print(f"FAILED [{result.error_kind.value}]: {result.error_detail}", file=sys.stderr)
        write_last_run(log_dir, success=False, message=f"{result.error_kind.value}: {result.error_detail}")
        return 1

    print(f"Draft created via {result.delivery_method.value}: post #{result.cms_post_id}")
    print(f"   Edit: {result.edit_url}")
    if result.preview_url:
        print(f"   Preview: {result.preview_url}")
    if result.local_inconsistency:
        print(f"WARNING: {result.message}", file=sys.stderr)
    write_last_run(log_dir, success=True, message=f"Post #{result.cms_post_id}: {result.edit_url}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
