"""Verify the deployment ``.env`` before (re)starting the registration backend.

Three things are checked:

1. ``AppSettings`` loads from the file, so malformed values (bad URLs, a
   non-numeric safety margin, an unknown storage backend) fail here instead of
   at the first request.
2. Each OAuth integration named with ``--require`` has its client settings.
   Integrations that are merely absent only produce a notice, since the service
   runs without them.
3. Optionally, a checksum of the file is recorded or verified to catch
   unexpected edits.

Example usages::

    python -m scripts.check_env check --env-file /opt/registration/.env --require crm

    python -m scripts.check_env record --env-file /opt/registration/.env \
        --hash-file /opt/registration/.env.sha256

    python -m scripts.check_env verify --env-file /opt/registration/.env \
        --hash-file /opt/registration/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from registration.core.config import AppSettings, _load_env_file
from registration.dependencies.config import integration_settings

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5

INTEGRATIONS = ("crm", "calendar")


def _compute_hash(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Load settings with ``env_file`` taking effect for unset variables."""
    _load_env_file(str(env_file))
    return AppSettings(_env_file=env_file)  # type: ignore[call-arg]


def _report_integrations(settings: AppSettings, required: list[str]) -> list[str]:
    """Print integration status and return the required ones that are incomplete."""
    failures = []
    for system, integration in integration_settings(settings).items():
        missing = integration.missing_keys()
        if not missing:
            print(f"{system}: configured")
            continue
        print(f"{system}: not configured (missing {', '.join(missing)})")
        if system in required:
            failures.append(system)
    return failures


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    """Compare the current checksum to the recorded baseline."""
    if not hash_file.exists():
        print(
            f"Checksum baseline {hash_file} is missing; run 'record' first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        "Environment checksum mismatch!\n"
        f"  expected: {expected}\n"
        f"  actual:   {actual}",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _parse_required(value: str) -> list[str]:
    systems = [item.strip() for item in value.split(",") if item.strip()]
    unknown = sorted(set(systems) - set(INTEGRATIONS))
    if unknown:
        raise argparse.ArgumentTypeError(
            f"Unknown integration(s): {', '.join(unknown)}; choose from {', '.join(INTEGRATIONS)}."
        )
    return systems


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate registration backend settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument("--env-file", default=".env", type=Path)
        subparser.add_argument(
            "--require",
            default=[],
            type=_parse_required,
            help="Comma-separated integrations that must be configured (crm,calendar).",
        )

    record_parser = subparsers.add_parser("record", help="Validate and store the checksum.")
    add_common_arguments(record_parser)
    record_parser.add_argument("--hash-file", required=True, type=Path)

    verify_parser = subparsers.add_parser("verify", help="Validate and compare the checksum.")
    add_common_arguments(verify_parser)
    verify_parser.add_argument("--hash-file", required=True, type=Path)

    check_parser = subparsers.add_parser("check", help="Validate settings only.")
    add_common_arguments(check_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    failures = _report_integrations(settings, args.require)
    if failures:
        print(f"Required integration(s) not configured: {', '.join(failures)}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: EXIT_OK,
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
