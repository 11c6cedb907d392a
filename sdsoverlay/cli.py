# cli.py: argparse entrypoint (`sds-overlay interpolate|join ...`).

import argparse
import logging
import os
import sys
import warnings

from . import config
from .errors import AGRWarning, OverlayError
from .io import read_collection, write_collection
from .overlay.interpolate import interpolate
from .overlay.join import spatial_join


def _parse_agr(pairs):
    tags = {}
    for item in pairs or []:
        name, sep, tag = item.partition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"--agr expects NAME=TAG, got '{item}'")
        tags[name] = tag
    return tags


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="sds-overlay",
        description="Area-weighted interpolation and spatial joins between vector layers",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Log progress from the library")
    sub = ap.add_subparsers(dest="command", required=True)

    ip = sub.add_parser("interpolate", help="Transfer attributes from source polygons onto target polygons")
    ip.add_argument("source", help="Source polygons carrying the attributes")
    ip.add_argument("target", help="Target polygons")
    ip.add_argument("out", help="Output file (.parquet, .gpkg, .geojson, .shp)")
    ip.add_argument("--extensive", action="append", default=[], help="Extensive attribute (counts, totals); can repeat")
    ip.add_argument("--intensive", action="append", default=[], help="Intensive attribute (densities, rates); can repeat")
    ip.add_argument("--agr", action="append", default=[], help="AGR tag for a source attribute as NAME=TAG; can repeat")
    ip.add_argument("--source-layer", default=None, help="Layer name inside the source file")
    ip.add_argument("--target-layer", default=None, help="Layer name inside the target file")
    ip.add_argument("--strict", action="store_true", default=config.STRICT_DEFAULT, help="Fail on the first geometry error")
    ip.add_argument("--na-rm", action="store_true", help="Ignore sources with missing values")
    ip.add_argument("--no-index", action="store_true", help="Compare every source with every target")
    ip.add_argument("--workers", type=int, default=config.MAX_WORKERS_DEFAULT, help="Threads for the per-target loop")

    jp = sub.add_parser("join", help="Attach attributes of right features to left features")
    jp.add_argument("left", help="Features whose geometries are kept")
    jp.add_argument("right", help="Features whose attributes are attached")
    jp.add_argument("out", help="Output file (.parquet, .gpkg, .geojson, .shp)")
    jp.add_argument("--predicate", default="intersects", help="Spatial predicate evaluated as predicate(left, right)")
    jp.add_argument("--distance", type=float, default=None, help="Distance for the dwithin predicate")
    jp.add_argument("--largest", action="store_true", help="Keep only the right feature with the largest overlap")
    jp.add_argument("--inner", action="store_true", help="Drop left features without a match")
    jp.add_argument("--agr", action="append", default=[], help="AGR tag for a right attribute as NAME=TAG; can repeat")
    return ap


def run_interpolate(args) -> int:
    attrs = {a: True for a in args.extensive}
    attrs.update({a: False for a in args.intensive})
    if not attrs:
        print("ERROR: give at least one --extensive or --intensive attribute")
        return 2

    source = read_collection(args.source, agr=_parse_agr(args.agr), layer=args.source_layer)
    target = read_collection(args.target, layer=args.target_layer)
    print(f"[info] Interpolating {sorted(attrs)} from {len(source)} sources onto {len(target)} targets")

    result = interpolate(
        source,
        target,
        list(attrs),
        attrs,
        strict=args.strict,
        na_rm=args.na_rm,
        use_index=not args.no_index,
        max_workers=args.workers,
    )
    for err in result.errors:
        print(f"[warn] {err}")
    if result.failed_targets:
        print(f"[warn] {len(result.failed_targets)} targets affected by errors")

    write_collection(result.collection, args.out)
    print(f"[ok] Wrote {len(result.collection)} features to {args.out}")
    return 0


def run_join(args) -> int:
    left = read_collection(args.left)
    right = read_collection(args.right, agr=_parse_agr(args.agr))
    joined = spatial_join(
        left,
        right,
        args.predicate,
        distance=args.distance,
        largest=args.largest,
        inner=args.inner,
    )
    write_collection(joined, args.out)
    print(f"[ok] Wrote {len(joined)} features to {args.out}")
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")

    inputs = [args.source, args.target] if args.command == "interpolate" else [args.left, args.right]
    for path in inputs:
        if not os.path.exists(path):
            print(f"ERROR: input not found: {path}")
            return 1

    caught = []
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", AGRWarning)
            if args.command == "interpolate":
                code = run_interpolate(args)
            else:
                code = run_join(args)
    except KeyboardInterrupt:
        print("\n[cli] Interrupted.")
        return 130  # 128 + SIGINT
    except (OverlayError, ValueError, argparse.ArgumentTypeError) as e:
        print(f"[cli] Fatal error: {e}")
        return 2
    finally:
        for w in caught:
            print(f"[warn] {w.message}")

    return code


if __name__ == "__main__":
    sys.exit(main())
