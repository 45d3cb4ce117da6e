# src/pow_shield/scripts/config.py
"""
Check PoW Shield settings from the environment for one role.

Prints the effective configuration (secret redacted) as JSON, or the reason
the settings cannot drive the role. Deployment tooling can template its
artifacts from this output.
"""

import argparse
import json
import sys

from pow_shield.core.errors import ConfigurationError
from pow_shield.core.settings import load_settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Validate PoW Shield configuration")
    p.add_argument("--role", default="edge", choices=["client", "edge", "origin"],
                   help="Hop the settings must support (default: %(default)s)")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings().require(args.role)
    except ConfigurationError as exc:
        print(f"[pow-shield][ERROR] {exc}", file=sys.stderr)
        return 1
    print(json.dumps(settings.redacted(), indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
