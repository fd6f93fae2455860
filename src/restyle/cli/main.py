"""Command-line interface for generating and managing designs.

Usage:
    python -m restyle.cli <command> [OPTIONS]

Examples:
    # Restyle a photo with a catalog style and wait for the result
    python -m restyle.cli generate room.jpg --style modern

    # Custom prompt, save the result next to the photo
    python -m restyle.cli generate room.jpg --style industrial --prompt "..." -o out.jpg

    # Browse and clean up saved designs
    python -m restyle.cli list
    python -m restyle.cli show 6f1c... --output-dir ./exports
    python -m restyle.cli delete 6f1c...

    # Available styles
    python -m restyle.cli styles
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Optional, Sequence
from uuid import UUID

import structlog

from restyle.app import build_store, open_design_service
from restyle.core.config import Settings, configure_logging
from restyle.models.design import DesignRecord, DesignStatus
from restyle.models.style import STYLES
from restyle.workers.design_jobs import JobFailure

logger = structlog.get_logger()


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="restyle",
        description="Generate interior design variations of room photos",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate", help="Submit a photo and wait for the design")
    generate.add_argument("image", type=Path, help="Room photo (JPEG, PNG, ...)")
    generate.add_argument(
        "--style",
        default="modern",
        choices=[style.id for style in STYLES],
        help="Catalog style id (default: modern)",
    )
    generate.add_argument("--prompt", help="Override the style's default prompt")
    generate.add_argument("-o", "--output", type=Path, help="Write the generated image here")

    commands.add_parser("list", help="List saved designs, newest first")

    show = commands.add_parser("show", help="Show one design and optionally export its images")
    show.add_argument("design_id", type=UUID)
    show.add_argument("--output-dir", type=Path, help="Export original/generated images here")

    delete = commands.add_parser("delete", help="Delete a design and its images")
    delete.add_argument("design_id", type=UUID)

    commands.add_parser("styles", help="List catalog styles")

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def format_design(design: DesignRecord) -> str:
    created = design.created_at.strftime("%Y-%m-%d %H:%M:%S")
    line = f"{design.id}  {created}  {design.status.value:<10}  {design.style_name}"
    if design.status == DesignStatus.FAILED:
        line += f"  ({design.error_message})"
    return line


async def run_generate(args: Namespace, settings: Settings) -> int:
    image = args.image.read_bytes()
    failures: list[JobFailure] = []

    async with open_design_service(settings, on_failure=failures.append) as service:
        design_id = service.submit_style(image, args.style, args.prompt)
        print(f"Submitted design {design_id} ({args.style})")

        await service.wait_for_jobs()
        design = service.get(design_id)

    if failures:
        print(f"Generation failed: {failures[0].alert_message}", file=sys.stderr)
        print(f"  Reason: {failures[0].error_message}", file=sys.stderr)
        return 1

    if design is None or design.generated_image is None:
        print("Generation did not produce an image", file=sys.stderr)
        return 1

    output = args.output or args.image.with_name(f"{args.image.stem}_{args.style}.jpg")
    output.write_bytes(design.generated_image)
    print(f"Design completed: {output}")
    return 0


def run_list(settings: Settings) -> int:
    designs = build_store(settings).list()
    if not designs:
        print("No saved designs")
        return 0
    for design in designs:
        print(format_design(design))
    return 0


def run_show(args: Namespace, settings: Settings) -> int:
    design = build_store(settings).get(args.design_id)
    if design is None:
        print(f"Design {args.design_id} not found", file=sys.stderr)
        return 1

    print(format_design(design))
    print(f"Prompt: {design.prompt}")

    if args.output_dir:
        args.output_dir.mkdir(parents=True, exist_ok=True)
        (args.output_dir / f"original_{design.id}.jpg").write_bytes(design.original_image)
        if design.generated_image:
            (args.output_dir / f"generated_{design.id}.jpg").write_bytes(design.generated_image)
        print(f"Images exported to {args.output_dir}")
    return 0


def run_delete(args: Namespace, settings: Settings) -> int:
    if build_store(settings).delete(args.design_id):
        print(f"Deleted design {args.design_id}")
        return 0
    print(f"Design {args.design_id} not found", file=sys.stderr)
    return 1


def run_styles() -> int:
    for style in STYLES:
        print(f"{style.id:<14} {style.name}  {style.prompt}")
    return 0


async def async_main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error), 130 (interrupted)
    """
    args = parse_args(argv)

    if args.command == "styles":
        return run_styles()

    try:
        settings = Settings()  # type: ignore[call-arg]
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        settings.log_level = "DEBUG"

    configure_logging(settings)
    logger.info("cli.started", command=args.command)

    try:
        if args.command == "generate":
            return await run_generate(args, settings)
        if args.command == "list":
            return run_list(settings)
        if args.command == "show":
            return run_show(args, settings)
        if args.command == "delete":
            return run_delete(args, settings)

    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nInterrupted by user", file=sys.stderr)
        return 130

    except OSError as e:
        logger.error("cli.io_error", error=str(e), error_type=type(e).__name__)
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    return 1


def main() -> None:
    """Synchronous entry point for CLI."""
    sys.exit(asyncio.run(async_main()))
