"""
Tests for world_runtime.preview and the tools/world_sim.py command line.

Tests:
  preview:  biome map size, orientation and tint, spawn overlay markers
  cli:      generate / simulate / areas commands, settings file, help

Runs standalone (python tests/test_preview_cli.py) or under pytest.
"""

import contextlib
import importlib.util
import io
import json
import os
import shutil
import sys
import tempfile
import traceback

# Ensure the project root is on the path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

import numpy as np
from PIL import Image

from world_runtime import Area, render_biome_map, render_spawn_overlay
from world_runtime.content import default_tables
from world_runtime.entity_factory import DefinitionEntityFactory
from world_runtime.heightfield import HeightField, TerrainModifier
from world_runtime.preview import KIND_COLORS, OUTLINE_COLOR
from world_runtime.definitions import SpawnKind
from world_runtime.terrain_surface import (BAND_COLORS, GRASS_BIOME_COLORS, BiomeBand,
                                           TerrainSurface)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PASSED = 0
_FAILED = 0
_ERRORS = []


def _test(name, fn):
    """Run a test function, track pass/fail."""
    global _PASSED, _FAILED
    try:
        fn()
        _PASSED += 1
        print("  PASS  {}".format(name))
    except Exception as e:
        _FAILED += 1
        _ERRORS.append((name, e))
        print("  FAIL  {} -- {}".format(name, e))
        traceback.print_exc()


def _load_cli():
    path = os.path.join(PROJECT_ROOT, 'tools', 'world_sim.py')
    spec = importlib.util.spec_from_file_location('world_sim', path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _run_cli(*argv):
    """Run world_sim.main(argv); returns (exit code, stdout text)."""
    cli = _load_cli()
    out = io.StringIO()
    with contextlib.redirect_stdout(out):
        code = cli.main(list(argv))
    return code, out.getvalue()


def _grass_surface():
    flatten = TerrainModifier('flatten', (0, 0), 50000, target_height=10.0)
    field = HeightField(256, 4, seed=2, modifiers=[flatten])
    return TerrainSurface.build(field)


def _pixel(color):
    return tuple(int(v) for v in np.clip(np.array(color) * 255.0, 0, 255).astype(np.uint8))


def _camp(builder):
    builder.add_enemy_spawn('wolf', (0.0, 10.0, 0.0))


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------

def test_biome_map_size_and_mode():
    surface = _grass_surface()
    image = render_biome_map(surface, size=64)
    assert image.mode == 'RGB'
    assert image.size == (64, 64)
    assert image.getcolors() == [(64 * 64, _pixel(BAND_COLORS[BiomeBand.GRASS]))]

    native = render_biome_map(surface, size=5)
    assert native.size == (5, 5)


def test_biome_map_orientation():
    surface = _grass_surface()
    # Sample i=3, j=1 sits at x=64, z=-64
    surface.set_biome_at(64.0, -64.0, 'desert')
    image = render_biome_map(surface, size=5)
    assert image.getpixel((3, 1)) == _pixel(GRASS_BIOME_COLORS['desert'])
    assert image.getpixel((1, 3)) == _pixel(BAND_COLORS[BiomeBand.GRASS])


def test_spawn_overlay_markers():
    surface = _grass_surface()
    tables = default_tables()
    circle = Area('camp', 'Camp', position=(0.0, 0.0), radius=100.0, content=_camp)
    square = Area('yard', 'Yard', bounds={'min_x': -120, 'min_z': -120,
                                          'max_x': -60, 'max_z': -60})
    tri = Area('field', 'Field', bounds=[(60, 60), (120, 60), (90, 120)])
    for area in (circle, square, tri):
        area.initialize_content(tables, DefinitionEntityFactory(tables),
                                height_query=surface.height_at)

    base = render_biome_map(surface, size=128)
    before = base.getpixel((63, 63))
    tmp = tempfile.mkdtemp(prefix='world_preview_')
    try:
        path = os.path.join(tmp, 'out', 'overlay.png')
        overlay = render_spawn_overlay(base, surface, [circle, square, tri], path)
        assert os.path.exists(path)
        with Image.open(path) as written:
            assert written.size == (128, 128)

        # Wolf at the origin
        assert overlay.getpixel((63, 63)) == KIND_COLORS[SpawnKind.ENEMY]
        # Left edge of the circle outline
        row = [overlay.getpixel((x, 63)) for x in range(10, 17)]
        assert OUTLINE_COLOR in row
        assert base.getpixel((63, 63)) == before
    finally:
        shutil.rmtree(tmp)


def test_biome_map_writes_file():
    tmp = tempfile.mkdtemp(prefix='world_preview_')
    try:
        path = os.path.join(tmp, 'map.png')
        render_biome_map(_grass_surface(), path, size=16)
        with Image.open(path) as written:
            assert written.size == (16, 16)
    finally:
        shutil.rmtree(tmp)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def test_cli_without_command():
    code, out = _run_cli()
    assert code == 1
    assert 'generate' in out


def test_cli_generate():
    tmp = tempfile.mkdtemp(prefix='world_cli_')
    try:
        path = os.path.join(tmp, 'map.png')
        code, out = _run_cli('generate', '--seed', '3', '--resolution', '8',
                             '--world-size', '400', '-o', path, '--size', '32')
        assert code == 0
        assert 'Height field 9x9 (seed 3, world size 400)' in out
        assert 'grass' in out
        with Image.open(path) as written:
            assert written.size == (32, 32)
    finally:
        shutil.rmtree(tmp)


def test_cli_settings_file():
    tmp = tempfile.mkdtemp(prefix='world_cli_')
    try:
        path = os.path.join(tmp, 'settings.json')
        with open(path, 'w') as f:
            json.dump({'seed': 4, 'resolution': 8}, f)
        code, out = _run_cli('--settings', path, 'generate')
        assert code == 0
        assert 'Height field 9x9 (seed 4' in out
    finally:
        shutil.rmtree(tmp)


def test_cli_areas():
    code, out = _run_cli('areas', '--resolution', '16')
    assert code == 0
    lines = out.splitlines()
    assert lines[0].startswith('goldshire - Goldshire [1-5] circle (50, 50) r=40')
    assert any(line.startswith('elwynn_forest - Elwynn Forest') for line in lines)
    assert any(line.startswith('westfall - Westfall [10-20]') for line in lines)
    assert 'structure=7' in out


def test_cli_simulate():
    tmp = tempfile.mkdtemp(prefix='world_cli_')
    try:
        path = os.path.join(tmp, 'overlay.png')
        code, out = _run_cli('simulate', '--resolution', '16', '--ticks', '5',
                             '--dt', '2', '--kill-every', '2', '-o', path,
                             '--size', '64')
        assert code == 0
        assert 'Simulated 5 ticks of 2s (10s total)' in out
        assert 'goldshire' in out and 'westfall' in out
        assert os.path.exists(path)
    finally:
        shutil.rmtree(tmp)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    print("=" * 70)
    print("Preview and CLI tests")
    print("=" * 70)

    print("\n--- Preview ---")
    _test("biome_map_size_and_mode", test_biome_map_size_and_mode)
    _test("biome_map_orientation", test_biome_map_orientation)
    _test("spawn_overlay_markers", test_spawn_overlay_markers)
    _test("biome_map_writes_file", test_biome_map_writes_file)

    print("\n--- CLI ---")
    _test("cli_without_command", test_cli_without_command)
    _test("cli_generate", test_cli_generate)
    _test("cli_settings_file", test_cli_settings_file)
    _test("cli_areas", test_cli_areas)
    _test("cli_simulate", test_cli_simulate)

    print("\n" + "=" * 70)
    print("Results: {} passed, {} failed".format(_PASSED, _FAILED))
    if _ERRORS:
        print("\nFailures:")
        for name, err in _ERRORS:
            print("  {} -- {}".format(name, err))
    print("=" * 70)
    return 0 if _FAILED == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
