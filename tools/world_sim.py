#!/usr/bin/env python
"""
Command-line driver for the world runtime.

Generates terrain previews, runs the bundled regions for a number of ticks,
and lists the registered areas.

Usage:
  python world_sim.py generate [--seed N] [--resolution N] [--world-size S] [-o map.png]
  python world_sim.py simulate [--ticks N] [--dt S] [--seed N] [--kill-every N]
  python world_sim.py areas [--seed N]

Every command accepts --settings <file.json> and --verbose.
"""

import argparse
import logging
import os
import random
import sys

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from world_runtime import (INSTANCE_DESPAWNED, INSTANCE_SPAWNED, BiomeBand,
                           EventBus, HeightField, SpawnKind, TerrainSurface,
                           build_world, load_settings, render_biome_map,
                           render_spawn_overlay)
from world_runtime.terrain_surface import band_for_index, classify_grid

log = logging.getLogger('world_sim')


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _settings_from_args(args, **defaults):
    overrides = dict(defaults)
    for name in ('seed', 'resolution', 'world_size'):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    return load_settings(args.settings, **overrides)


def _band_histogram(heights):
    bands = classify_grid(heights)
    total = float(bands.size)
    histogram = []
    for index in range(len(BiomeBand)):
        count = int((bands == index).sum())
        histogram.append((band_for_index(index), count / total * 100.0))
    return histogram


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_generate(args):
    settings = _settings_from_args(args)
    field = HeightField(settings.world_size, settings.resolution,
                        seed=settings.seed, frequency=settings.noise_frequency)
    surface = TerrainSurface.build(field)

    heights = field.heights
    print("Height field {0}x{0} (seed {1}, world size {2:g})".format(
        settings.resolution + 1, settings.seed, settings.world_size))
    print("  min {:.2f}  max {:.2f}  mean {:.2f}".format(
        float(heights.min()), float(heights.max()), float(heights.mean())))
    for band, percent in _band_histogram(heights):
        print("  {:<14} {:6.2f}%".format(band.value, percent))

    if args.output:
        render_biome_map(surface, args.output, size=args.size)
        print("Preview written to {}".format(args.output))
    return 0


def cmd_simulate(args):
    settings = _settings_from_args(args, resolution=64)
    events = EventBus()
    counters = {'spawned': 0, 'despawned': 0}

    def on_spawned(payload):
        counters['spawned'] += 1

    def on_despawned(payload):
        counters['despawned'] += 1

    events.subscribe(INSTANCE_SPAWNED, on_spawned)
    events.subscribe(INSTANCE_DESPAWNED, on_despawned)

    rng = random.Random(settings.seed)
    with build_world(settings, events=events) as world:
        for tick in range(1, args.ticks + 1):
            world.update(args.dt)
            if args.kill_every and tick % args.kill_every == 0:
                _kill_random_enemy(world, rng)

        print("Simulated {} ticks of {:g}s ({:g}s total)".format(
            args.ticks, args.dt, world.elapsed))
        for area_id, counts in world.population().items():
            print("  {:<16} ".format(area_id) + "  ".join(
                "{}={}".format(kind, counts[kind]) for kind in sorted(counts)))
        print("Spawned {spawned}, despawned {despawned}".format(**counters))

        if args.output:
            image = render_biome_map(world.surface, size=args.size)
            render_spawn_overlay(image, world.surface, world.registry, args.output)
            print("Overlay written to {}".format(args.output))
    return 0


def _kill_random_enemy(world, rng):
    live = []
    for area in world.registry:
        for pool in area.pools[SpawnKind.ENEMY]:
            live.extend(pool.instance_ids)
    if live:
        instance_id = rng.choice(live)
        world.notify_instance_removed(instance_id, 'killed')
        log.debug("Killed %s", instance_id)


def cmd_areas(args):
    settings = _settings_from_args(args, resolution=64)
    with build_world(settings) as world:
        for area in world.registry:
            info = area.to_dict()
            bounds = info['bounds']
            if bounds['shape'] == 'circle':
                shape = "circle ({:g}, {:g}) r={:g}".format(
                    bounds['center'][0], bounds['center'][1], bounds['radius'])
            else:
                shape = bounds['shape']
            print("{} - {} [{}-{}] {}".format(
                area.id, area.name, area.level_range[0], area.level_range[1], shape))
            print("    faction={} biome={} type={}/{} chunks={}".format(
                area.faction, area.biome, area.type, area.sub_type,
                len(world.chunks_for_area(area.id))))
            print("    definitions: " + ", ".join(
                "{}={}".format(k, v) for k, v in sorted(info['definitions'].items())))
            if area.rejected:
                print("    skipped: {}".format(len(area.rejected)))
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser():
    parser = argparse.ArgumentParser(
        description='Terrain and area spawn simulator')
    parser.add_argument('--settings', help='JSON settings file')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command')

    # -- generate -------------------------------------------------------
    p_gen = subparsers.add_parser('generate', help='Generate terrain and print statistics')
    p_gen.add_argument('--seed', type=int)
    p_gen.add_argument('--resolution', type=int)
    p_gen.add_argument('--world-size', dest='world_size', type=float)
    p_gen.add_argument('-o', '--output', help='Write a biome map PNG')
    p_gen.add_argument('--size', type=int, default=256, help='Preview size in pixels')

    # -- simulate -------------------------------------------------------
    p_sim = subparsers.add_parser('simulate', help='Run the bundled regions')
    p_sim.add_argument('--seed', type=int)
    p_sim.add_argument('--resolution', type=int)
    p_sim.add_argument('--ticks', type=int, default=100)
    p_sim.add_argument('--dt', type=float, default=1.0)
    p_sim.add_argument('--kill-every', dest='kill_every', type=int, default=0,
                       help='Remove one random enemy every N ticks')
    p_sim.add_argument('-o', '--output', help='Write a spawn overlay PNG')
    p_sim.add_argument('--size', type=int, default=512, help='Preview size in pixels')

    # -- areas ----------------------------------------------------------
    p_areas = subparsers.add_parser('areas', help='List the bundled regions')
    p_areas.add_argument('--seed', type=int)
    p_areas.add_argument('--resolution', type=int)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s')

    if args.command == 'generate':
        return cmd_generate(args)
    elif args.command == 'simulate':
        return cmd_simulate(args)
    elif args.command == 'areas':
        return cmd_areas(args)

    parser.print_help()
    return 1


if __name__ == '__main__':
    sys.exit(main())
