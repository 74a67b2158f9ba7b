"""Entry point: load a manifest → resolve grants → report."""

from __future__ import annotations

import argparse
import logging
import os
import sys

from mintable.authorization import AuthorizationContext
from mintable.config import load_settings
from mintable.errors import MintableError
from mintable.identity import IdentityResolver
from policies.modes import MODES, SECONDMENT

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check a mintable capability policy")
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="resolve the manifest and print the grant table")
    check.add_argument(
        "--manifest",
        help="manifest file or directory (default: $MINTABLE_MANIFEST or the current directory)",
    )

    identity = sub.add_parser("identity", help="print the module identity of each path")
    identity.add_argument("paths", nargs="+")
    identity.add_argument("--project-root", default=os.getcwd())

    sub.add_parser("modes", help="describe the policy modes")
    return parser.parse_args(argv)


def _check(args: argparse.Namespace) -> int:
    context = AuthorizationContext()
    context.authorize_from_manifest(args.manifest)
    summary = context.describe()
    logger.info("project root: %s", summary["project_root"])
    logger.info("mode:         %s", summary["mode"])
    if not summary["grants"]:
        logger.info("no contract keys granted")
    for key, identities in summary["grants"].items():
        logger.info("  %s → %s", key, ", ".join(identities) or "(nobody)")
    return 0


def _identity(args: argparse.Namespace) -> int:
    settings = load_settings()
    resolver = IdentityResolver(
        args.project_root,
        boundary_markers=settings.boundary_markers,
        namespace_packages=settings.namespace_packages,
    )
    for path in args.paths:
        print(f"{path}\t{resolver.identity_of(path)}")
    return 0


def _modes(args: argparse.Namespace) -> int:
    for name, spec in [*MODES.items(), ("secondment", SECONDMENT)]:
        print(f"{name}: {spec['description']}")
        for rule in spec["rules"]:
            print(f"  - {rule}")
    return 0


_COMMANDS = {"check": _check, "identity": _identity, "modes": _modes}


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        code = _COMMANDS[args.command](args)
    except MintableError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
