"""Entry point for the standalone cluster validator."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from vpp_cni_validator import Report, Validator
from vpp_cni_validator.render import format_text, render_report

from .config import OUTPUT_FORMATS, AgentConfig, load_config
from .snapshot import load_snapshot

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Validate L2 consistency of a VPP CNI cluster snapshot"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the validator configuration file",
    )
    parser.add_argument(
        "--snapshot",
        type=Path,
        default=None,
        help="Path to the cluster snapshot (JSON or YAML)",
    )
    parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Report output format (default: text)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = load_config(args.config) if args.config else AgentConfig()
        snapshot_path = args.snapshot or config.snapshot_path
        if snapshot_path is None:
            parser.error("no snapshot given (use --snapshot or 'snapshot' in the config)")
        snapshot = load_snapshot(
            snapshot_path, bvi_interface_name=config.validator.bvi_interface_name
        )
    except (OSError, ValueError, KeyError) as exc:
        LOG.error("failed to load input: %s", exc)
        return 2

    report = Report()
    Validator(snapshot.vpp, snapshot.k8s, report, config.validator).validate()

    output_format = args.format or config.output_format
    if output_format == "json":
        print(json.dumps(render_report(report), indent=2))
    else:
        print(format_text(report))

    return 1 if report.has_errors() else 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
