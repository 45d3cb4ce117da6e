# src/pow_shield/scripts/solve.py
"""
Solve a proof-of-work puzzle from the command line.

Prints the four proof headers as JSON so they can be pasted into curl or any
other HTTP tool:

    pow-shield-solve --endpoint /api/data --difficulty 8
"""

import argparse
import json
import sys

from pow_shield.core.errors import ExhaustedPuzzle
from pow_shield.utils.hash import Hasher
from pow_shield.utils.pow_client import (
    DEFAULT_MAX_RETRIES,
    UNKNOWN_USER_AGENT,
    PuzzleSolver,
    generate_context,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Solve a PoW Shield puzzle and print its headers")
    p.add_argument("--endpoint", required=True, help="Protected request path, e.g. /api/data")
    p.add_argument("--difficulty", type=int, default=4,
                   help="Leading zero bits required (default: %(default)s)")
    p.add_argument("--max-retries", type=int, default=DEFAULT_MAX_RETRIES,
                   help="Attempt budget in units of 100 (default: %(default)s)")
    p.add_argument("--user-agent", default=UNKNOWN_USER_AGENT,
                   help="User agent hashed into the context (default: %(default)s)")
    p.add_argument("--ip", default=None, help="Caller IP for the ip+userAgent context method")
    p.add_argument("--context-generator", default="userAgent",
                   choices=["userAgent", "ip+userAgent", "custom"],
                   help="Context derivation method (default: %(default)s)")
    p.add_argument("--hash-algorithm", default="sha256", choices=["sha256", "sha512", "blake3"],
                   help="Stamp digest algorithm (default: %(default)s)")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    solver = PuzzleSolver(
        args.endpoint,
        generate_context(args.user_agent, args.ip, args.context_generator),
        difficulty=args.difficulty,
        max_retries=args.max_retries,
        hasher=Hasher(args.hash_algorithm),
    )
    try:
        proof = solver.solve()
    except ExhaustedPuzzle as exc:
        print(f"[pow-shield] {exc}", file=sys.stderr)
        return 1
    print(json.dumps(proof.as_headers(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
