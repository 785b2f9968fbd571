#!/usr/bin/env python3
"""
ReliefForge - normal maps and relit previews from flat images

Main entry point for relighting an image from the command line.
"""

import argparse
import logging
import sys
import time
from dataclasses import replace

from reliefforge.config import RelightSettings, load_settings
from reliefforge.errors import ReliefForgeError
from reliefforge.imaging import load_buffer, save_buffer
from reliefforge.preview import Lighting, RelightPreview
from reliefforge.vec3 import Vec3


def build_settings(args: argparse.Namespace) -> RelightSettings:
    """Merge the optional settings file with command-line overrides."""
    settings = load_settings(args.config) if args.config else RelightSettings()

    overrides = {}
    if args.strength is not None:
        overrides['strength'] = args.strength
    if args.light is not None:
        overrides['light'] = Vec3(*args.light)
    if args.eye is not None:
        overrides['eye'] = Vec3(*args.eye)
    if args.threads is not None:
        overrides['num_threads'] = args.threads
    if args.no_smooth:
        overrides['smooth'] = False

    return replace(settings, **overrides)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='ReliefForge - normal maps and relit previews from flat images',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  python main.py --input brick.png --output lit.png --light 0.5 -0.5 1
  python main.py --input brick.png --normal-output normals.png --strength 2
  python main.py --input brick.png --output lit.png --config relight.yaml
        '''
    )

    parser.add_argument('--input', type=str, required=True, help='Source image')
    parser.add_argument('--output', type=str, default='output/relit.png', help='Relit image filename')
    parser.add_argument('--normal-output', type=str, default=None, help='Also save the normal map here')
    parser.add_argument('--config', type=str, default=None, help='YAML or JSON settings file')
    parser.add_argument('--strength', type=float, default=None, help='Normal map strength (> 0)')
    parser.add_argument('--light', type=float, nargs=3, metavar=('X', 'Y', 'Z'), help='Light vector')
    parser.add_argument('--eye', type=float, nargs=3, metavar=('X', 'Y', 'Z'), help='Eye vector')
    parser.add_argument('--threads', type=int, default=None, help='Number of threads (0=auto)')
    parser.add_argument('--no-smooth', action='store_true', help='Skip smoothing before extraction')
    parser.add_argument('--log-level', type=str, default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help='Logging level')

    args = parser.parse_args()
    logging.basicConfig(level=args.log_level, format='%(levelname)s %(name)s: %(message)s')

    try:
        settings = build_settings(args)
        source = load_buffer(args.input)
    except (ReliefForgeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("=" * 60)
    print("ReliefForge Relighter")
    print("=" * 60)
    print(f"  Image: {source.width}x{source.height}")
    print(f"  Strength: {settings.strength}")
    print(f"  Smooth: {settings.smooth}")
    print(f"  Light: {tuple(settings.light)}")
    print(f"  Eye: {tuple(settings.eye)}")
    print(f"  Threads: {settings.num_threads}")

    start_time = time.time()
    try:
        preview = RelightPreview(source, settings)
        result = preview.render(Lighting(settings.light, settings.eye))
    except ReliefForgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    elapsed = time.time() - start_time
    print(f"\nRelit in {elapsed:.2f} seconds")

    try:
        print(f"\nSaving to: {args.output}")
        save_buffer(result, args.output)
        if args.normal_output:
            print(f"Saving normal map to: {args.normal_output}")
            save_buffer(preview.normal_map, args.normal_output)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("\nDone!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
