#!/usr/bin/env python3
"""
CLI entry point for cgo bindings generator
Generates Go packages wrapping C libraries through cgo
"""

import argparse
import os
import sys

import clang.cindex

# Add parent directory to sys.path for direct execution
if __name__ == '__main__' and __package__ is None:
    sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cgo_binding_generator.config import parse_config_file
from cgo_binding_generator.errors import BindingError
from cgo_binding_generator.generator import CgoBindingsGenerator


def main():
    parser = argparse.ArgumentParser(
        description="Generate Go cgo bindings from C header files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --config bindings.xml --output $GOPATH/src
  %(prog)s -C config.xml -o generated --goarch arm64 --no-gofmt
  %(prog)s -C config.xml -o generated --include-depth 1
        """
    )

    parser.add_argument(
        "-C", "--config",
        metavar="CONFIG_FILE",
        required=True,
        help="XML configuration file describing the packages to generate"
    )

    parser.add_argument(
        "-o", "--output",
        metavar="DIRECTORY",
        default=".",
        help="Root directory; each package is written under its import path (default: .)"
    )

    parser.add_argument(
        "--include-depth",
        type=int,
        default=None,
        metavar="N",
        help="Bind declarations from included files up to depth N (0=only the package header, 1=direct includes, etc.; default: infinite)"
    )

    parser.add_argument(
        "--clang-path",
        metavar="PATH",
        help="Path to libclang library (if not in default location)"
    )

    parser.add_argument(
        "--goarch",
        metavar="ARCH",
        help="Architecture suffix of the generated files (default: host architecture)"
    )

    parser.add_argument(
        "--no-gofmt",
        action="store_true",
        help="Do not run gofmt on the generated Go files"
    )

    args = parser.parse_args()

    try:
        config = parse_config_file(args.config)
    except (ValueError, FileNotFoundError) as e:
        print(f"Error reading config file: {e}", file=sys.stderr)
        sys.exit(1)

    # Set clang library path if provided
    if args.clang_path:
        clang.cindex.Config.set_library_path(args.clang_path)

    try:
        generator = CgoBindingsGenerator(goarch=args.goarch, run_gofmt=not args.no_gofmt,
                                         include_depth=args.include_depth)
        generator.generate(config, output=args.output)
    except (BindingError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
