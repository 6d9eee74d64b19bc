# InlinePatch
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of InlinePatch.
#
# InlinePatch is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""
InlinePatch -- Apply pending edits.

Deferred-apply run for production deployments: loads the edits the API
queued as pending, relocates and patches each one in the checked-out
source tree, and records the outcome.

Usage:
    inlinepatch-apply                          # every pending edit
    inlinepatch-apply --project-id site-a      # one project
    inlinepatch-apply --dry-run                # locate only, no writes

Exit status is 0 when no edit failed, 1 otherwise.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

from inlinepatch.config import ConfigError, load_config
from inlinepatch.core.relocation.discovery import BrowserHintSource
from inlinepatch.core.relocation.engine import TextRelocationEngine
from inlinepatch.core.relocation.models import ProcessResult
from inlinepatch.store.edit_store import EditRecord, EditStore, StoreError, result_status

logger = logging.getLogger("inlinepatch.cli.apply_edits")


@dataclass
class ApplyOutcome:
    record: EditRecord
    result: ProcessResult
    status: str


@dataclass
class ApplySummary:
    outcomes: list[ApplyOutcome] = field(default_factory=list)
    dry_run: bool = False

    def _count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def applied(self) -> int:
        return self._count("applied")

    @property
    def failed(self) -> int:
        return self._count("failed")

    @property
    def conflicts(self) -> int:
        return self._count("conflict")

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.conflicts == 0


def apply_pending(
    engine: TextRelocationEngine,
    store: EditStore,
    project_id: str | None = None,
    dry_run: bool = False,
) -> ApplySummary:
    """Process every open edit for ``project_id``, oldest first."""
    summary = ApplySummary(dry_run=dry_run)
    for record in store.get_pending_edits(project_id):
        request = record.to_request()
        if dry_run:
            result = engine.locate(request).result
        else:
            store.update_edit_status(record.id, "processing")
            result = engine.process_text_edit(request)
        status = result_status(result)
        if not dry_run:
            store.update_edit_status(record.id, status, result)
        summary.outcomes.append(ApplyOutcome(record=record, result=result, status=status))
        logger.info("Edit %s: %s (confidence %.2f)", record.id, status, result.confidence)
    return summary


def _print_summary(summary: ApplySummary) -> None:
    if not summary.outcomes:
        print("No pending edits.")
        return
    for outcome in summary.outcomes:
        result = outcome.result
        label = outcome.status.upper() if not summary.dry_run else f"WOULD {outcome.status.upper()}"
        preview = repr(outcome.record.original_text[:40])
        if result.success:
            print(f"  [{label}] {preview} -> {result.matched_file_path}:{result.line_number}"
                  f" (confidence {result.confidence:.2f})")
        else:
            print(f"  [{label}] {preview}: {result.error_message}")
    verb = "Would apply" if summary.dry_run else "Applied"
    print(
        f"\n{verb} {summary.applied} of {len(summary.outcomes)} edit(s);"
        f" {summary.failed} failed, {summary.conflicts} conflict(s)."
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inlinepatch-apply",
        description="Apply pending in-page text edits to the source tree",
    )
    parser.add_argument("--project-id", default=None, help="Only apply edits for this project")
    parser.add_argument("--dry-run", action="store_true", help="Locate edits without writing files")
    parser.add_argument("--project-root", default=None, help="Source tree to patch (overrides config)")
    parser.add_argument("--store", default=None, help="Edit store path (overrides config)")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: $INLINEPATCH_HOME/config.yaml)",
    )
    parser.add_argument(
        "--discover-url",
        default=None,
        help="Base URL of the running site; enables browser-assisted file hints",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    project_root = Path(args.project_root or config.service.project_root)
    if not project_root.is_dir():
        print(f"Error: project root {project_root} is not a directory", file=sys.stderr)
        return 2
    store = EditStore(args.store or config.service.store_path)

    hint_source = None
    if args.discover_url:
        hint_source = BrowserHintSource(args.discover_url, project_root, config.engine.extensions)
    engine = TextRelocationEngine(project_root, config.engine, hint_source=hint_source)

    try:
        summary = apply_pending(engine, store, project_id=args.project_id, dry_run=args.dry_run)
    except StoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    _print_summary(summary)
    return 0 if summary.ok else 1


if __name__ == "__main__":
    sys.exit(main())
