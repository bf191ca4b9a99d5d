"""
CLI entry point for protorules (proto_compile rule generator).

Usage:
    python3 -m tools.protorules pkg/api --plugins plugins.yaml --prefix go
    python3 -m tools.protorules pkg/api --plugins plugins.yaml --out pkg/api/BUILD.bazel
"""

import argparse
import logging
import os
import sys

from .emitter import emit_build_file
from .generate import generate_rules
from .plugins import ValidationError, parse_plugins_yaml
from .proto_file import ProtoFileParser


def main(argv=None):
    parser = argparse.ArgumentParser(description="proto_compile rule generator")
    parser.add_argument("dir", help="Package directory containing .proto files")
    parser.add_argument("--plugins", required=True, help="Plugin configuration .yaml file")
    parser.add_argument("--prefix", default="proto",
                        help="Rule name prefix, as in <file>_<prefix>_compile")
    parser.add_argument("--visibility", action="append", default=[],
                        help="Visibility label (repeatable)")
    parser.add_argument("--out", default=None, help="Write to this file instead of stdout")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    with open(args.plugins) as f:
        yaml_str = f.read()

    try:
        plugins = parse_plugins_yaml(yaml_str)
    except ValidationError as e:
        print(f"Error: {args.plugins}: {e}", file=sys.stderr)
        return 1

    proto_parser = ProtoFileParser()
    pkg_dir = os.path.join(proto_parser.working_directory(), args.dir)
    if not os.path.isdir(pkg_dir):
        print(f"Error: {pkg_dir}: not a directory", file=sys.stderr)
        return 1

    result = generate_rules(args.dir, plugins, args.prefix,
                            parser=proto_parser,
                            visibility=args.visibility)
    content = emit_build_file(result.rules, result.loads)

    if args.out:
        with open(args.out, "w") as f:
            f.write(content)
        print(f"  wrote {args.out}")
    else:
        sys.stdout.write(content)

    if result.errors:
        print(f"\n{len(result.errors)} file(s) in '{args.dir}' failed to load",
              file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
