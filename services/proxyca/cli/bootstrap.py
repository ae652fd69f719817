"""
Create or load the interception root CA and report where it lives.

Idempotent: an existing root is loaded, never replaced.
Run via: python -m proxyca.cli.bootstrap [--base-dir DIR]

Install the printed certificate in client trust stores so intercepted
connections validate.
"""

import argparse
import sys
from pathlib import Path

from proxyca.ca import RootAuthority
from proxyca.config import settings
from proxyca.exceptions import CorruptRootStore, RootPersistenceFailed
from proxyca.logging_config import configure_logging, get_logger

logger = get_logger("proxyca.bootstrap")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or load the proxy root CA")
    parser.add_argument(
        "--base-dir",
        type=Path,
        default=settings.base_dir,
        help=f"Directory holding certs/ and keys/ (default: {settings.base_dir})",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)

    try:
        authority = RootAuthority.open(args.base_dir)
    except (CorruptRootStore, RootPersistenceFailed) as e:
        logger.error("Root CA unavailable", base_dir=str(args.base_dir), error=str(e))
        return 1

    print(authority.certificate_path)
    print(f"SHA256 fingerprint: {authority.fingerprint}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
