"""Command line interface for packaging a picture into a ``.8xg`` bundle."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .identifier import VarPrefixError, validate_var_prefix
from .image import DEFAULT_QUANTIZER, QUANTIZERS
from .pipeline import OUTPUT_EXTENSION, PackageOptions, PipelineError, package_image


def var_prefix_arg(text: str) -> str:
    try:
        return validate_var_prefix(text)
    except VarPrefixError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hdpicpack",
        description=(
            "Convert an image into HD Picture Viewer appvars (.8xv) and bundle them "
            f"into a single gzipped tar file (.{OUTPUT_EXTENSION})."
        ),
    )
    parser.add_argument("image_file", type=Path, help="Source image")
    parser.add_argument(
        "var_prefix",
        type=var_prefix_arg,
        help="Two ASCII letters used to name every generated appvar",
    )
    parser.add_argument(
        "-o",
        "--outdir",
        dest="out_dir",
        type=Path,
        default=Path("."),
        help=f"Write the .{OUTPUT_EXTENSION} file to this directory",
    )
    parser.add_argument(
        "--quantizer",
        choices=sorted(QUANTIZERS),
        default=DEFAULT_QUANTIZER,
        help="Palette quantization method",
    )
    parser.add_argument(
        "-n",
        "--no-clobber",
        dest="no_clobber",
        action="store_true",
        help="Fail instead of overwriting an existing output file",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Re-read the written bundle and check its entries",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Do not print progress",
    )
    return parser


def _stderr_progress(message: str) -> None:
    print(message, file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    options = PackageOptions(
        out_dir=args.out_dir,
        quantizer=args.quantizer,
        no_clobber=args.no_clobber,
        verify=args.verify,
    )
    progress = None if args.quiet else _stderr_progress

    try:
        out_path = package_image(args.image_file, args.var_prefix, options, progress=progress)
    except PipelineError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(f"wrote {out_path}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
