"""Command-line entry point for resizing animated GIFs."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from . import config
from .core.dispatch import open_editor
from .core.errors import ImageEditorError, ValidationError
from .core.storage import DerivativeStorage, FileChannel
from .utils import validators

logger = logging.getLogger(__name__)

STDIN_ARG = "-"


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.LOG_LEVEL,
        format="[%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gifresize",
        description="Resize or crop an animated GIF frame by frame, keeping its timing.",
    )
    parser.add_argument("input", type=Path, help="Path to the source image, or - to read it from stdin")
    parser.add_argument("-o", "--output", type=Path, help="Destination file (default: <name>-<w>x<h>.gif)")
    parser.add_argument("--output-dir", type=Path, help="Directory for generated derivatives")
    parser.add_argument("--width", type=int, help="Maximum width in pixels")
    parser.add_argument("--height", type=int, help="Maximum height in pixels")
    parser.add_argument(
        "--crop",
        action="store_true",
        help="Crop to exactly --width x --height instead of fitting inside it",
    )
    parser.add_argument(
        "--crop-box",
        type=int,
        nargs=4,
        metavar=("X", "Y", "WIDTH", "HEIGHT"),
        help="Crop this source rectangle before any resize",
    )
    parser.add_argument(
        "--size",
        dest="sizes",
        action="append",
        default=[],
        metavar="NAME=WxH[c]",
        help="Generate a named derivative; repeatable. A trailing 'c' crops, e.g. thumb=150x150c",
    )
    parser.add_argument(
        "--default-sizes",
        action="store_true",
        help="Generate the thumbnail, medium, medium_large and large derivatives",
    )
    parser.add_argument(
        "--resample",
        choices=sorted(config.RESAMPLE_FILTERS),
        help="Resampling filter (default: lanczos or GIFRESIZE_RESAMPLE)",
    )
    parser.add_argument("--stream", action="store_true", help="Write the result to stdout instead of a file")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse arguments and show plan without rendering outputs",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.dry_run:
        parser.print_help()
        return 0

    configure_logging(args.verbose)
    try:
        return _run(args)
    except (ValidationError, ImageEditorError) as exc:
        logger.error("%s", exc)
        print(f"gifresize: error: {exc}", file=sys.stderr)
        return 1


def _run(args: argparse.Namespace) -> int:
    source = sys.stdin.buffer if str(args.input) == STDIN_ARG else validators.validate_image_path(args.input)
    specs = [validators.parse_size_spec(value) for value in args.sizes]
    if args.default_sizes:
        specs.extend(config.DEFAULT_SIZES)

    storage = DerivativeStorage(args.output_dir)
    editor = open_editor(source, storage=storage, resample=config.resample_filter(args.resample))

    if specs:
        metadata = editor.multi_resize(specs)
        print(json.dumps({name: result.as_metadata() for name, result in metadata.items()}, indent=2))
        return 0

    if args.crop_box:
        x, y, width, height = args.crop_box
        validators.validate_crop_rectangle(x, y, width, height)
        editor.crop(x, y, width, height)

    if args.width is not None or args.height is not None:
        editor.resize(args.width, args.height, args.crop)

    if args.stream:
        editor.stream(channel=FileChannel(sys.stdout.buffer))
        return 0

    result = editor.save(args.output)
    print(json.dumps({**result.as_metadata(), "path": str(result.path)}, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
