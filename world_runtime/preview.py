"""
Preview images of the terrain and the area layout.

    render_biome_map      - elevation band colours, one pixel per sample,
                            resampled to the requested size
    render_spawn_overlay  - area outlines and spawn markers on top

Image axes: X grows to the right, Z grows downwards.
"""

import logging
import os

log = logging.getLogger(__name__)

try:
    from PIL import Image, ImageDraw
except ImportError:
    raise ImportError(
        "Pillow is required for preview rendering.  Install with: pip install Pillow"
    )

try:
    import numpy as np
except ImportError:
    raise ImportError(
        "NumPy is required for preview rendering.  Install with: pip install numpy"
    )

from .definitions import SpawnKind


# Marker colours per spawn kind
KIND_COLORS = {
    SpawnKind.ENEMY: (255, 68, 68),
    SpawnKind.NPC: (68, 255, 68),
    SpawnKind.RESOURCE: (68, 68, 255),
    SpawnKind.STRUCTURE: (136, 136, 136),
}

OUTLINE_COLOR = (255, 255, 255)


def _world_to_pixel(x, z, world_size, image_size):
    half = world_size / 2.0
    px = int((x + half) / world_size * (image_size[0] - 1))
    py = int((z + half) / world_size * (image_size[1] - 1))
    return px, py


def _save(image, output_path):
    parent = os.path.dirname(output_path)
    if parent and not os.path.exists(parent):
        os.makedirs(parent)
    image.save(output_path)
    log.info("Wrote preview %s", output_path)


def render_biome_map(surface, output_path=None, size=256):
    """
    Render the surface's band colours as an RGB image.

    Args:
        surface:     TerrainSurface to render.
        output_path: Optional PNG path to write.
        size:        Output width and height in pixels.

    Returns:
        Pillow RGB Image.
    """
    res = surface.height_field.resolution
    colors = surface.vertex_colors().reshape(res + 1, res + 1, 3)
    # [i, j] is [x, z]; images are [row, col] = [z, x]
    pixels = np.clip(colors.transpose(1, 0, 2) * 255.0, 0, 255).astype(np.uint8)
    image = Image.fromarray(pixels)
    if image.size != (size, size):
        image = image.resize((size, size), Image.NEAREST)
    if output_path:
        _save(image, output_path)
    return image


def render_spawn_overlay(image, surface, areas, output_path=None, marker_radius=2):
    """
    Draw area outlines and spawn definition markers on a copy of *image*.

    Args:
        image:         Base image, usually from render_biome_map.
        surface:       TerrainSurface the image was made from.
        areas:         Iterable of Area.
        output_path:   Optional PNG path to write.
        marker_radius: Marker radius in pixels.

    Returns:
        New Pillow RGB Image.
    """
    image = image.convert('RGB').copy()
    draw = ImageDraw.Draw(image)
    world_size = surface.height_field.world_size
    size = image.size

    def to_px(x, z):
        return _world_to_pixel(x, z, world_size, size)

    for area in areas:
        bounds = area.bounds.to_dict()
        if bounds['shape'] == 'circle':
            cx, cz = bounds['center']
            r = bounds['radius']
            x0, y0 = to_px(cx - r, cz - r)
            x1, y1 = to_px(cx + r, cz + r)
            draw.ellipse([x0, y0, x1, y1], outline=OUTLINE_COLOR)
        elif bounds['shape'] == 'rect':
            x0, y0 = to_px(bounds['min_x'], bounds['min_z'])
            x1, y1 = to_px(bounds['max_x'], bounds['max_z'])
            draw.rectangle([x0, y0, x1, y1], outline=OUTLINE_COLOR)
        else:
            draw.polygon([to_px(x, z) for x, z in bounds['points']],
                         outline=OUTLINE_COLOR)

        for definition in area.definitions():
            x, _, z = definition.position
            px, py = to_px(x, z)
            draw.ellipse([px - marker_radius, py - marker_radius,
                          px + marker_radius, py + marker_radius],
                         fill=KIND_COLORS[definition.kind])

    if output_path:
        _save(image, output_path)
    return image
