#!/usr/bin/env python3
"""
VPN Portal Command Line Interface

Usage:
    vpnportal-genkey --output <file> [--force]
    vpnportal-genkey --check <file>
"""

import argparse
import sys
from pathlib import Path

from .errors import ConfigurationError
from .tls_crypt import StaticKey


def cmd_generate(args) -> int:
    """Generate a tls-crypt key, same as `openvpn --genkey --secret <file>`."""
    path = Path(args.output)
    if path.exists() and not args.force:
        print(f"Refusing to overwrite existing key: {path} (use --force)", file=sys.stderr)
        return 1
    StaticKey.generate().save(path)
    print(f"Static key written to: {path}")
    return 0


def cmd_check(args) -> int:
    """Check that a file holds an OpenVPN static key."""
    try:
        StaticKey.from_file(args.check)
    except ConfigurationError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    print(f"✓ {args.check} is an OpenVPN static key")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="vpnportal-genkey",
        description="Generate or check the OpenVPN tls-crypt static key"
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--output", "-o", help="Write a new key to this file")
    group.add_argument("--check", help="Validate an existing key file")
    parser.add_argument("--force", action="store_true", help="Overwrite an existing key")

    args = parser.parse_args(argv)
    if args.check:
        return cmd_check(args)
    return cmd_generate(args)


if __name__ == "__main__":
    sys.exit(main())
