"""Command-line interface for document scanning."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from docscan.config import DOWNLOAD_FILENAME, PRESETS, ScanConfig


def _list_presets():
    """Print available threshold presets and exit."""
    print("Available presets (use with --preset):\n")
    print(f"  {'Preset':<10} {'Block':<7} {'C':<5} Blur")
    print(f"  {'------':<10} {'-----':<7} {'-':<5} ----")
    for name, preset in PRESETS.items():
        blur = "x".join(map(str, preset.blur_kernel)) if preset.blur_kernel else "-"
        print(f"  {name:<10} {preset.block_size:<7} {preset.c:<5} {blur}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="docscan",
        description="Turn a document photo into a scanned-looking page",
    )
    parser.add_argument(
        "image",
        nargs="?",
        help="Path to the document image (JPEG, PNG, WebP)",
    )
    parser.add_argument(
        "--output",
        "-o",
        default=None,
        help=f"Where to write the PNG result (default: ./{DOWNLOAD_FILENAME})",
    )
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default=None,
        help="Threshold preset (default: scanner)",
    )
    parser.add_argument(
        "--list-presets",
        action="store_true",
        help="List threshold presets and exit",
    )
    parser.add_argument(
        "--config",
        help="Path to a JSON configuration file",
    )
    parser.add_argument(
        "--engine-timeout",
        type=float,
        default=None,
        help="Seconds to wait for the vision engine to load (default: 30)",
    )
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )

    args = parser.parse_args(argv)

    if args.list_presets:
        _list_presets()
        sys.exit(0)

    if not args.image:
        parser.error("the following arguments are required: image")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)-28s - %(levelname)-8s - %(message)s",
        datefmt="%H:%M:%S",
    )

    image_path = Path(args.image)
    if not image_path.exists():
        print(f"Error: Image not found: {image_path}", file=sys.stderr)
        sys.exit(1)

    from docscan.models import ImageFile

    try:
        config = ScanConfig.load(args.config) if args.config else ScanConfig()
        if args.preset or args.engine_timeout is not None:
            config = ScanConfig(
                preset=args.preset or config.preset,
                morph_kernel_size=config.morph_kernel_size,
                engine_timeout=(
                    args.engine_timeout
                    if args.engine_timeout is not None
                    else config.engine_timeout
                ),
                download_filename=config.download_filename,
            )
    except (TypeError, ValueError) as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    result, download = asyncio.run(_scan(ImageFile.from_path(image_path), config))
    if download is None:
        sys.exit(1)

    output = Path(args.output) if args.output else Path(download.filename)
    if output.is_dir():
        output = output / download.filename
    output.write_bytes(download.data)

    _print_result(result, output, config, args.format)


async def _scan(file, config):
    from docscan.engines.handle import EngineHandle
    from docscan.engines.opencv_engine import OpenCVEngine
    from docscan.presenter import ConsolePresenter
    from docscan.session import ScanSession

    session = ScanSession(
        EngineHandle(OpenCVEngine, timeout=config.engine_timeout),
        config=config,
        presenter=ConsolePresenter(),
    )
    session.start_engine()
    try:
        await session.select(file)
        result = await session.wait()
        return result, session.download()
    finally:
        session.close()


def _print_result(result, output, config, fmt):
    if fmt == "json":
        payload = result.to_dict()
        payload["output"] = str(output)
        payload["config"] = config.to_dict()
        print(json.dumps(payload, indent=2))
    else:
        print(f"Source:        {result.source_name}")
        print(f"Size:          {result.width}x{result.height}")
        print(f"Deskew Angle:  {result.deskew_angle:.2f} deg")
        print(f"Steps:         {', '.join(result.applied_steps)}")
        print(f"Preset:        {config.preset}")
        print(f"Saved To:      {output}")


if __name__ == "__main__":
    main()
