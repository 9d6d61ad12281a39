from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="image-build", add_help=True)
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run targets of an image module")
    run.add_argument("module", help="Module directory (or its build.py)")
    run.add_argument("args", nargs=argparse.REMAINDER, help="Targets, -Pkey=value parameters and --flags")

    sub.add_parser("list-extensions", help="List available build and test extensions")

    return parser


def list_extensions() -> None:
    from targetkit.extensions import ExtensionLoader

    from image_build.framework.runtime import EXTENSION_PACKAGE
    from image_build.testing.runner import TEST_EXTENSION_PACKAGE

    build = ExtensionLoader(None, packages=(EXTENSION_PACKAGE,)).available()
    test = ExtensionLoader(None, packages=(TEST_EXTENSION_PACKAGE,)).available()
    print("Build extensions:")
    for name in build:
        print(f"  {name}")
    print("Test extensions:")
    for name in test:
        print(f"  {name}")


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    if args.command == "run":
        from image_build.app.invoke import invoke

        return int(invoke(args.module, args.args))

    if args.command == "list-extensions":
        list_extensions()
        return 0

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
