"""
Build 2.5D collision footprints from .cmf collision meshes.

Usage:
    python -m mvsim_core.mesh_processor meshes/chassis --cells 100 -o chassis_shape.npz
"""

import argparse
import os
import sys

import numpy as np

from .constants import DEFAULT_GRID_CELLS, MAX_POLYGON_VERTICES
from .cmf_loader import load_all_meshes, combine_meshes
from .shape import shape_from_mesh


def build_footprint(base_path, num_cells=DEFAULT_GRID_CELLS, scale=1.0,
                    max_vertices=MAX_POLYGON_VERTICES, output=None):
    if not os.path.isdir(base_path):
        print(f"Path {base_path} not found.")
        return None

    meshes = load_all_meshes(base_path, verbose=True)
    if not meshes:
        print(f"No .cmf files in {base_path}.")
        return None

    for i, m in enumerate(meshes):
        if len(m.vertices) > 0:
            verts = np.asarray(m.vertices) * scale
            print(f"Mesh {i}: {len(m.tris)} tris. Bounds: {verts.min(axis=0)} to {verts.max(axis=0)}")

    vertices, triangles = combine_meshes(meshes, scale=scale)
    print(f"Total: {len(triangles)} tris, {len(vertices)} verts")

    shape = shape_from_mesh(vertices, triangles, num_cells=num_cells, max_vertices=max_vertices)
    contour = shape.get_contour()

    raw = shape.raw_contour
    if raw is not None:
        print(f"Raw grid contour: {len(raw)} cells")
    print(f"Footprint: {len(contour)} vertices, z in [{shape.z_min:.4f}, {shape.z_max:.4f}]")
    for x, y in contour:
        print(f"  ({x:.4f}, {y:.4f})")
    print(f"Volume: {shape.volume():.6f}")

    if output:
        np.savez(output, contour=contour, z_min=shape.z_min, z_max=shape.z_max)
        print(f"Saved {output}")

    return shape


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Reduce .cmf collision meshes to a 2.5D convex footprint.',
    )
    parser.add_argument('path', help='Directory containing .cmf files')
    parser.add_argument(
        '--cells',
        type=int,
        default=DEFAULT_GRID_CELLS,
        help=f'Grid cells along the footprint diagonal (default: {DEFAULT_GRID_CELLS})'
    )
    parser.add_argument(
        '--max-vertices',
        type=int,
        default=MAX_POLYGON_VERTICES,
        help=f'Polygon vertex limit (default: {MAX_POLYGON_VERTICES})'
    )
    parser.add_argument(
        '--scale',
        type=float,
        default=1.0,
        help='Scale applied to mesh vertices (default: 1.0)'
    )
    parser.add_argument('-o', '--output', help='Save contour and z-extent to this .npz file')

    args = parser.parse_args(argv)

    shape = build_footprint(args.path, args.cells, args.scale, args.max_vertices, args.output)
    return 0 if shape is not None else 1


if __name__ == "__main__":
    sys.exit(main())
