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
InlinePatch CLI -- Main entry point.

Usage:
    inlinepatch serve                  # API server (uvicorn)
    inlinepatch apply [...]            # same as inlinepatch-apply
    inlinepatch locate "Some text"     # dry-run relocation, JSON report
    inlinepatch --version              # Version info
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from inlinepatch import __version__
from inlinepatch.config import ConfigError, load_config


def _serve(args) -> int:
    import uvicorn

    from inlinepatch.api.server import create_app

    config = load_config(args.config)
    if args.project_root:
        config.service.project_root = args.project_root
    host = args.host or config.service.host
    port = args.port or config.service.port
    uvicorn.run(create_app(config), host=host, port=port, log_level="info")
    return 0


def _locate(args) -> int:
    from inlinepatch.core.relocation.engine import TextRelocationEngine
    from inlinepatch.core.relocation.models import EditRequest

    config = load_config(args.config)
    root = Path(args.project_root or config.service.project_root)
    engine = TextRelocationEngine(root, config.engine)
    request = EditRequest.from_dict(
        {
            "originalText": args.text,
            "newText": args.new_text if args.new_text is not None else args.text,
            "elementContext": {
                "elementTag": args.tag or "",
                "elementId": args.element_id,
                "cssSelector": args.selector or "",
            },
            "surroundingContext": {"parentText": args.parent_text},
            "pageContext": {"pageUrl": args.page_url},
        }
    )
    report = engine.locate(request)
    print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    return 0 if report.result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="inlinepatch", description="In-page text edits for website sources")
    parser.add_argument("--version", action="version", version=f"inlinepatch {__version__}")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--project-root", default=None)

    sub.add_parser("apply", help="Apply pending edits (see inlinepatch-apply --help)", add_help=False)

    locate = sub.add_parser("locate", help="Find the source line of a piece of text without editing")
    locate.add_argument("text")
    locate.add_argument("--new-text", default=None)
    locate.add_argument("--project-root", default=None)
    locate.add_argument("--page-url", default="/")
    locate.add_argument("--tag", default=None)
    locate.add_argument("--element-id", default=None)
    locate.add_argument("--selector", default=None)
    locate.add_argument("--parent-text", default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    argv = list(sys.argv[1:] if argv is None else argv)
    leading: list[str] = []
    if argv[:1] == ["--config"] and len(argv) > 1:
        leading, argv = argv[:2], argv[2:]
    if argv[:1] == ["apply"]:
        # apply has its own parser; forward everything after it
        from inlinepatch.cli.apply_edits import main as apply_main

        return apply_main(leading + argv[1:])
    argv = leading + argv

    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        if args.command == "serve":
            return _serve(args)
        if args.command == "locate":
            return _locate(args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
