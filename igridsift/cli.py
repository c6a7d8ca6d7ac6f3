from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .config import DescriptorParams, LogConfig, NormMode, TileShape
from .extrema import load_extrema
from .octave import build_octave_levels, read_gray_bt709
from .pipeline import DescriptorExtractor

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="igridsift",
        description="Compute SIFT descriptors for precomputed extrema on the GPU.",
    )
    p.add_argument("image", type=Path, help="input image")
    p.add_argument(
        "keypoints",
        type=Path,
        help="extrema file, one 'octave level x y sigma theta...' per line (octave pixel units)",
    )
    p.add_argument("-o", "--output", type=Path, help="output .txt or .npz (default: <image>.desc)")
    p.add_argument("--tile", default="16x16", help="threads per block, e.g. 16x16 or 32x4x4")
    p.add_argument("--norm", default="l2", choices=["l2", "rootsift"])
    p.add_argument("--clip", type=float, default=0.2)
    p.add_argument("--magnify", type=float, default=3.0)
    p.add_argument("--octaves", type=int, default=-1)
    p.add_argument("--levels", type=int, default=3, help="scales per octave (each octave holds levels + 3 images)")
    p.add_argument("--sigma", type=float, default=0.8, help="blur of level 0 of octave 0, in input pixels")
    p.add_argument("--upscale", action="store_true", help="double the image before octave 0")
    p.add_argument("--uint8", action="store_true", help="write descriptors as 0..255 integers")
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    LogConfig(level=logging.DEBUG if args.verbose else logging.INFO).apply()

    params = DescriptorParams(
        tile=TileShape.parse(args.tile),
        clip=args.clip,
        magnify=args.magnify,
        norm_mode=NormMode.parse(args.norm),
        delta_min=0.5 if args.upscale else 1.0,
    )
    table = load_extrema(args.keypoints, max_orientations=params.max_orientations)
    img = read_gray_bt709(str(args.image))
    levels = build_octave_levels(
        img, n_oct=args.octaves, n_spo=args.levels, sigma_min=args.sigma, delta_min=params.delta_min
    )
    logger.info(
        "%s: %dx%d, %d octaves, %d extrema",
        args.image.name,
        img.shape[1],
        img.shape[0],
        len(levels),
        len(table),
    )

    writer = DescriptorExtractor(params).compute_from_levels(levels, table)

    out = args.output or args.image.with_suffix(".desc")
    if out.suffix == ".npz":
        writer.save_npz(out, table, params)
    else:
        writer.write_text(out, table, params, as_uint8=args.uint8)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
