#!/usr/bin/env python3
"""CLI for event certificates API management tasks.

Usage:
    python -m cli <command>

Commands:
    migrate        Run database migrations
    render-sample  Render a sample certificate PNG for template alignment
"""

import argparse
import logging
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_DIR = Path(__file__).resolve().parent


def _get_alembic_config():
    from alembic.config import Config

    cfg = Config(str(API_DIR / "alembic.ini"))
    # Make script_location absolute so it works from any working directory.
    cfg.set_main_option("script_location", str(API_DIR / "alembic"))
    return cfg


def cmd_migrate(target: str) -> int:
    """Run database migrations."""
    from alembic import command

    logger.info("Running database migrations to %s...", target)
    command.upgrade(_get_alembic_config(), target)
    logger.info("Migrations complete")
    return 0


def cmd_render_sample(output: Path, template: Path | None) -> int:
    """Render a certificate with placeholder data and write it to ``output``."""
    from core.config import get_settings
    from rendering import (
        DEFAULT_LAYOUT,
        CertificateArtifact,
        build_verification_url,
        render_certificate,
    )

    layout = DEFAULT_LAYOUT.with_template(template or get_settings().template_path)
    certificate_id = "CERT-0000000000000-SAMPLE000"
    start = datetime.now(UTC)

    artifact = CertificateArtifact(
        certificate_id=certificate_id,
        participant_name="Jane Participant",
        event_title="Workshop on Applied Machine Learning",
        event_start_date=start,
        event_end_date=start + timedelta(days=2),
        venue="Main Auditorium",
        issued_at=start,
        signer_name="Dr. Department Head",
        verification_url=build_verification_url(
            get_settings().frontend_url, certificate_id
        ),
        event_duration="3 Days",
    )

    result = render_certificate(artifact, layout)
    if not result.ok:
        logger.error("Rendering failed: %s", result.error)
        return 1

    output.write_bytes(result.image_data)
    logger.info(
        "Wrote %s (%dx%d, %d bytes, %d ms)",
        output,
        result.width,
        result.height,
        len(result.image_data),
        result.duration_ms,
    )
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Event certificates API CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    migrate = subparsers.add_parser(
        "migrate",
        help="Run database migrations",
    )
    migrate.add_argument(
        "target",
        nargs="?",
        default="head",
        help="Target revision (default: head)",
    )

    render = subparsers.add_parser(
        "render-sample",
        help="Render a sample certificate PNG for template alignment",
    )
    render.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("sample_certificate.png"),
        help="Where to write the PNG (default: sample_certificate.png)",
    )
    render.add_argument(
        "-t",
        "--template",
        type=Path,
        default=None,
        help="Template image to render onto (default: configured template)",
    )

    args = parser.parse_args()

    if args.command == "migrate":
        return cmd_migrate(args.target)
    elif args.command == "render-sample":
        return cmd_render_sample(args.output, args.template)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
