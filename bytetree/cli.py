"""
Command line entry point.

    bytetree decompile SOURCE OUTPUT [--modified DIR] [--no-counting]
    bytetree compile SOURCE OUTPUT
    bytetree supported
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger

from .decompiler import supported_opcode_names
from .errors import IllegalAgentError
from .selective import SelectiveCompiler, SelectiveDecompiler
from .storage import DirectoryStorage


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bytetree",
        description="Decompile JVM method bodies into a tree IR and compile them back",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Decompile every eligible method of the documents below classes/
  bytetree decompile classes/ decompiled/ --modified changed/

  # Turn the decompiled methods back into instructions
  bytetree compile decompiled/ compiled/
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every decompiler step")
    commands = parser.add_subparsers(dest="command", required=True)

    decompile = commands.add_parser("decompile", help="Decompile class documents")
    decompile.add_argument("source", type=Path, help="Directory with JSON class documents")
    decompile.add_argument("output", type=Path, help="Directory for the decompiled documents")
    decompile.add_argument("--modified", type=Path, metavar="DIRECTORY",
                           help="Also save documents with decompiled methods here")
    decompile.add_argument("--no-counting", action="store_true",
                           help="Don't add sequence numbers to passthrough opcode names")

    compile_ = commands.add_parser("compile", help="Compile decompiled class documents")
    compile_.add_argument("source", type=Path, help="Directory with decompiled documents")
    compile_.add_argument("output", type=Path, help="Directory for the compiled documents")

    commands.add_parser("supported", help="List the opcodes the decompiler recognizes")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, format="[{level}] {message}", level="DEBUG" if args.verbose else "INFO")

    try:
        match args.command:
            case "decompile":
                storage = DirectoryStorage(args.source, args.output)
                SelectiveDecompiler(
                    storage, modified=args.modified, counting=not args.no_counting
                ).decompile()
            case "compile":
                SelectiveCompiler(DirectoryStorage(args.source, args.output)).compile()
            case "supported":
                for name in sorted(supported_opcode_names()):
                    print(name)
    except (ValueError, IllegalAgentError, OSError) as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
