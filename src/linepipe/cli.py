"""Command-line interface for linepipe."""

import argparse
import asyncio
import logging
import re
import shlex
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .config import ConfigLoader, LinePipeConfig
from .errors import ConfigurationError
from .logging_config import LogContext, setup_logging
from .pipeline.base import PipelineContext
from .sinks import BinaryIODestination
from .textpipe import TextPipe

APP_NAME = "linepipe"

logger = logging.getLogger(__name__)


class _FilterAction(argparse.Action):
    """Collect filter options in command-line order."""

    def __call__(self, parser, namespace, values, option_string=None):
        ops = list(getattr(namespace, "ops", None) or [])
        ops.append((self.dest, values))
        namespace.ops = ops


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Filter a text file line by line, optionally splitting it into sections.",
    )
    parser.add_argument("input", help="Input file path, or '-' for stdin")
    parser.set_defaults(ops=[])

    filters = parser.add_argument_group("filters (applied in the order given)")
    filters.add_argument("--grep", action=_FilterAction, metavar="PATTERN",
                         help="Keep lines matching the regular expression")
    filters.add_argument("--sed", action=_FilterAction, nargs=2, metavar=("PATTERN", "REPLACEMENT"),
                         help="Replace the first regex match in each line")
    filters.add_argument("--head", action=_FilterAction, type=int, metavar="N",
                         help="Keep the first N lines")
    filters.add_argument("--tail", action=_FilterAction, type=int, metavar="N",
                         help="Keep the last N lines")
    filters.add_argument("--sort", action=_FilterAction, nargs=0, help="Sort lines bytewise")
    filters.add_argument("--uniq", action=_FilterAction, nargs=0, help="Drop adjacent duplicate lines")
    filters.add_argument("--exec", action=_FilterAction, metavar="COMMAND",
                         help="Pipe lines through an external command (shell-style quoting)")

    output = parser.add_argument_group("output")
    output.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")
    output.add_argument("--pre", help="Text written before the content")
    output.add_argument("--post", help="Text written after the content")

    sections = output.add_mutually_exclusive_group()
    sections.add_argument("--divide", type=int, metavar="N", help="Split into sections of N lines")
    sections.add_argument("--divide-from", metavar="PATTERN",
                          help="Start a new section at each line matching PATTERN")
    sections.add_argument("--divide-to", metavar="PATTERN",
                          help="End the current section at each line matching PATTERN")
    output.add_argument("--section-output", metavar="TEMPLATE",
                        help="Path template for sections, formatted with {index}")

    parser.add_argument("--config", type=Path, help="Path to config file (defaults.toml)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (overrides config)",
    )
    return parser


def apply_filters(
    pipe: TextPipe, ops: Sequence[Tuple[str, object]], config: LinePipeConfig
) -> TextPipe:
    """Chain the collected filter options onto ``pipe``."""
    for name, value in ops:
        if name == "grep":
            pipe = pipe.grep(value)
        elif name == "sed":
            pattern, replacement = value
            pipe = pipe.sed(re.compile(pattern), replacement)
        elif name == "head":
            pipe = pipe.head(value)
        elif name == "tail":
            pipe = pipe.tail(value)
        elif name == "sort":
            pipe = pipe.sort()
        elif name == "uniq":
            pipe = pipe.uniq()
        elif name == "exec":
            command, *args = shlex.split(value)
            pipe = pipe.spawn(command, args, check=config.process.check_returncode)
        else:
            raise ValueError(f"Unknown filter: {name}")
    return pipe


async def run(args: argparse.Namespace, config: LinePipeConfig) -> None:
    """Build and run the pipeline described by ``args``."""
    source = 0 if args.input == "-" else args.input
    context = PipelineContext(name=str(args.input), stream=config.stream)
    pipe = apply_filters(TextPipe.cat(source, context), args.ops, config)

    if args.divide is not None or args.divide_from or args.divide_to:
        template = args.section_output

        def write_section(section: TextPipe, index: int):
            path = template.format(index=index)
            logger.info(f"Writing section {index} to {path}")
            return section.out(path, pre=args.pre, post=args.post)

        if args.divide is not None:
            await pipe.divide(args.divide, write_section)
        elif args.divide_from:
            await pipe.divide_from(args.divide_from, write_section)
        else:
            await pipe.divide_to(args.divide_to, write_section)
        return

    destination = args.output if args.output else BinaryIODestination(sys.stdout.buffer)
    await pipe.out(destination, pre=args.pre, post=args.post)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    divides = args.divide is not None or args.divide_from or args.divide_to
    if divides and not args.section_output:
        parser.error("--section-output is required with --divide, --divide-from or --divide-to")
    if args.section_output and not divides:
        parser.error("--section-output only applies with --divide, --divide-from or --divide-to")
    if divides and args.output:
        parser.error("--output cannot be combined with section output")

    try:
        config = ConfigLoader(app_name=APP_NAME).load(defaults_path=args.config)
    except ConfigurationError as e:
        setup_logging()
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(
        level=args.log_level or config.logging.level,
        format=config.logging.format,
        log_file=Path(config.logging.file) if config.logging.file else None,
    )

    try:
        with LogContext(logger, input=str(args.input)):
            asyncio.run(run(args, config))
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    except Exception as e:
        logger.error(f"Pipeline failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
