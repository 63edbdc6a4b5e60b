#!/usr/bin/env python3
"""
PixelDrift -- Image Particle Animator
CLI entry point. Also importable as a library.

Usage:
    python pixeldrift.py render photo.png --out frames/ --frames 90
    python pixeldrift.py render photo.png --gif drift.gif --flow vortex --param flow_strength=2
    python pixeldrift.py render photo.png --gif mix.gif --composite perlin:0.6 vortex:0.4 --overlay field
    python pixeldrift.py regions photo.png --threshold 40 --overlay regions.png --json regions.json
    python pixeldrift.py list-fields
    python pixeldrift.py info black_hole
"""

import sys
import os
import json
import logging
import argparse

# Add project root to path so imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import numpy as np
from PIL import Image

from core.engine import PixelDriftEngine
from core.params import SimulationParams, make_params
from core.safety import preflight
from core.segmentation import segment_image, region_overlay
from fields import FIELDS, CATEGORIES, list_fields

__version__ = "0.1.0"

MAX_FRAMES = 3000


def _parse_param_value(val: str):
    """Parse a CLI parameter value (number or string)."""
    if val.lower().strip() in ('nan', 'inf', '-inf', '+inf', 'infinity', '-infinity'):
        raise ValueError(f"NaN/Inf not allowed: {val}")

    if '.' in val or 'e' in val.lower():
        try:
            return float(val)
        except ValueError:
            return val

    try:
        return int(val)
    except (ValueError, TypeError):
        return val


def _parse_params(pairs) -> dict:
    """['movement_speed=0.8', 'flowFieldType=vortex'] -> dict."""
    out = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise ValueError(f"Expected key=value, got: {pair}")
        key, val = pair.split("=", 1)
        out[key.strip()] = _parse_param_value(val.strip())
    return out


def _parse_layers(items) -> list:
    """['perlin:0.6', 'vortex'] -> [('perlin', 0.6), ('vortex', 1.0)]."""
    layers = []
    for item in items or []:
        name, _, weight = item.partition(":")
        layers.append((name.strip(), _parse_param_value(weight.strip()) if weight else 1.0))
    return layers


def load_rgba(path: str) -> np.ndarray:
    """Decode an image file into a (h, w, 4) uint8 array."""
    preflight(path)
    with Image.open(path) as img:
        return np.asarray(img.convert("RGBA"), dtype=np.uint8).copy()


def save_gif(frames, path: str, fps: float):
    images = [Image.fromarray(np.asarray(f)).convert("RGB") for f in frames]
    if not images:
        raise ValueError("No frames to write")
    images[0].save(
        path, save_all=True, append_images=images[1:],
        duration=max(1, int(round(1000 / fps))), loop=0,
    )


def cmd_render(args):
    """Animate an image and write PNG frames and/or a GIF."""
    if not args.out and not args.gif:
        raise ValueError("Nothing to write: pass --out DIR and/or --gif FILE")
    if not 1 <= args.frames <= MAX_FRAMES:
        raise ValueError(f"--frames must be between 1 and {MAX_FRAMES}")

    values = _parse_params(args.param)
    if args.flow:
        values["flow_field_type"] = args.flow
    if args.splat:
        values["render_mode"] = "splat"
    if args.threshold is not None:
        values["region_threshold"] = args.threshold
    params = make_params(values)

    rgba = load_rgba(args.image)
    h, w = rgba.shape[:2]
    engine = PixelDriftEngine(params=params, seed=args.seed)
    engine.load_image(rgba, w, h)
    if args.composite:
        engine.set_composite(_parse_layers(args.composite))

    if args.out:
        os.makedirs(args.out, exist_ok=True)
    frames = []
    for i, frame in enumerate(engine.run(args.frames, fps=args.fps)):
        if args.overlay:
            frame = engine.debug_frame(args.overlay)
        if args.out:
            Image.fromarray(np.asarray(frame)).save(os.path.join(args.out, f"frame_{i:05d}.png"))
        if args.gif:
            frames.append(frame)
    if args.gif:
        save_gif(frames, args.gif, args.fps)

    stats = engine.stats()
    flow = "+".join(stats["composite"]) if stats["composite"] else stats["flow_field_type"]
    print(f"  Rendered {stats['frame_count']} frames "
          f"({stats['particle_count']} particles, {stats['region_count']} regions, "
          f"flow={flow})")
    if args.out:
        print(f"  Frames: {args.out}")
    if args.gif:
        print(f"  GIF:    {args.gif}")


def cmd_regions(args):
    """Segment an image and report its regions."""
    rgba = load_rgba(args.image)
    h, w = rgba.shape[:2]
    threshold = args.threshold if args.threshold is not None else SimulationParams().region_threshold
    regions = segment_image(rgba, w, h, threshold, rng=np.random.default_rng(args.seed))

    print(f"\n  {len(regions)} regions (threshold {threshold}, {w}x{h})")
    print(f"  {'—' * 50}")
    for r in regions[:args.limit]:
        rgb = "#%02x%02x%02x" % r.mean_color
        print(f"    #{r.id:<3d} size={r.size:<8d} color={rgb}  brightness={r.brightness:.2f}  "
              f"center=({r.center[0]:.1f}, {r.center[1]:.1f})")
    if len(regions) > args.limit:
        print(f"    ... {len(regions) - args.limit} more")

    if args.overlay:
        Image.fromarray(region_overlay(rgba, regions)).save(args.overlay)
        print(f"\n  Overlay: {args.overlay}")
    if args.json:
        with open(args.json, "w") as f:
            json.dump([r.to_dict() for r in regions], f, indent=2)
        print(f"  JSON:    {args.json}")
    print()


def cmd_list_fields(args):
    """List all flow fields, grouped by category."""
    category_filter = getattr(args, "category", None)
    compact = getattr(args, "compact", False)

    total = 0
    for cat_key, cat_label in CATEGORIES.items():
        if category_filter and cat_key != category_filter:
            continue
        fields = list_fields(category=cat_key)
        if not fields:
            continue
        total += len(fields)
        print(f"\n  {cat_label} ({len(fields)})")
        print(f"  {'—' * 50}")
        for f in fields:
            print(f"    {f['name']:18s} — {f['description']}")
            if not compact and f["params"]:
                params_str = ", ".join(f"{k}={v}" for k, v in f["params"].items())
                print(f"    {'':18s}   Params: {params_str}")

    print(f"\n  Total: {total} flow fields")
    print(f"  Use 'pixeldrift info <field>' for details.\n")


def cmd_info(args):
    """Show detailed info about a single flow field."""
    name = args.field_name
    if name not in FIELDS:
        matches = [n for n in FIELDS if name in n]
        if matches:
            print(f"Unknown flow field: {name}. Did you mean: {', '.join(matches)}?")
        else:
            print(f"Unknown flow field: {name}. Use 'pixeldrift list-fields' to see all.")
        return

    entry = FIELDS[name]
    cat = entry.get("category", "other")
    print(f"\n  {name}")
    print(f"  {'—' * 40}")
    print(f"  Category:    {CATEGORIES.get(cat, cat)}")
    print(f"  Description: {entry['description']}")
    print(f"  Weight:      {entry['weight']}")
    print(f"  Cadence:     every {entry['cadence']} ticks")
    print(f"  Resolution:  {entry['resolution']}")
    if entry["params"]:
        print(f"\n  Parameters:")
        for k, v in entry["params"].items():
            print(f"    {k:20s} = {v}")
    print(f"\n  Example:")
    print(f"    pixeldrift render photo.png --gif out.gif --flow {name}")
    print()


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="pixeldrift",
        description="PixelDrift: turn a still image into drifting particles",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    sub = parser.add_subparsers(dest="command")

    # render
    p = sub.add_parser("render", help="Animate an image into PNG frames and/or a GIF")
    p.add_argument("image", help="Input image")
    p.add_argument("--out", help="Directory for PNG frames")
    p.add_argument("--gif", help="Write an animated GIF here")
    p.add_argument("--flow", choices=sorted(FIELDS), help="Flow field (default perlin)")
    p.add_argument("--frames", type=int, default=60, help="Number of frames")
    p.add_argument("--fps", type=float, default=30.0, help="Frame rate of the synthetic clock")
    p.add_argument("--seed", type=int, help="Random seed")
    p.add_argument("--threshold", type=int, help="Region threshold (5-100)")
    p.add_argument("--param", nargs="*", help="Simulation params as key=value pairs")
    p.add_argument("--splat", action="store_true", help="Bilinear splat rendering")
    p.add_argument("--composite", nargs="+", metavar="FIELD[:WEIGHT]",
                   help="Drive the flow with a weighted sum of fields, e.g. perlin:0.6 vortex:0.4")
    p.add_argument("--overlay", action="append", choices=["field", "displacement"],
                   help="Draw a debug overlay on written frames (repeatable)")

    # regions
    p = sub.add_parser("regions", help="Segment an image into colour regions")
    p.add_argument("image", help="Input image")
    p.add_argument("--threshold", type=int, help="Region threshold (5-100)")
    p.add_argument("--overlay", help="Write a region overlay PNG here")
    p.add_argument("--json", help="Write region summaries as JSON here")
    p.add_argument("--limit", type=int, default=20, help="Regions to print")
    p.add_argument("--seed", type=int, help="Random seed")

    # list-fields
    p = sub.add_parser("list-fields", help="List all flow fields")
    p.add_argument("--category", choices=list(CATEGORIES), help="Filter by category")
    p.add_argument("--compact", action="store_true", help="Compact view (names only)")

    # info
    p = sub.add_parser("info", help="Show detailed info about a flow field")
    p.add_argument("field_name", help="Flow field name")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    commands = {
        "render": cmd_render,
        "regions": cmd_regions,
        "list-fields": cmd_list_fields,
        "info": cmd_info,
    }

    if args.command in commands:
        try:
            commands[args.command](args)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
