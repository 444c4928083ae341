"""
Collision Mesh File (.cmf) reader.

Layout (little endian):
    int32 num_tris, int32 num_vertices
    num_tris     x (int32, int32, int32)   vertex indices
    num_vertices x (float32, float32, float32)   positions
"""

import glob
import os
import struct

import numpy as np


class CollisionMeshFile:
    def __init__(self, vertices=None, tris=None):
        self.vertices = np.zeros((0, 3), dtype=np.float32) if vertices is None else \
            np.asarray(vertices, dtype=np.float32).reshape(-1, 3)
        self.tris = np.zeros((0, 3), dtype=np.int32) if tris is None else \
            np.asarray(tris, dtype=np.int32).reshape(-1, 3)

    def read_from_file(self, file_path, verbose=False):
        with open(file_path, 'rb') as f:
            header = f.read(8)
            if len(header) != 8:
                raise ValueError(f"{file_path}: truncated header")
            num_tris, num_vertices = struct.unpack('<ii', header)

            if verbose:
                print(f"Loading {file_path}: {num_tris} tris, {num_vertices} verts")

            tri_data = f.read(num_tris * 3 * 4)
            vert_data = f.read(num_vertices * 3 * 4)
            if len(tri_data) != num_tris * 12 or len(vert_data) != num_vertices * 12:
                raise ValueError(f"{file_path}: truncated mesh data")

            self.tris = np.frombuffer(tri_data, dtype='<i4').reshape(-1, 3).astype(np.int32)
            self.vertices = np.frombuffer(vert_data, dtype='<f4').reshape(-1, 3).astype(np.float32)

        if len(self.tris) and (self.tris.min() < 0 or self.tris.max() >= len(self.vertices)):
            raise ValueError(f"{file_path}: triangle index out of range")

        return self

    def write_to_file(self, file_path):
        with open(file_path, 'wb') as f:
            f.write(struct.pack('<ii', len(self.tris), len(self.vertices)))
            f.write(self.tris.astype('<i4').tobytes())
            f.write(self.vertices.astype('<f4').tobytes())


def load_all_meshes(base_path, verbose=False):
    """Load every .cmf file in a directory, sorted by name."""
    meshes = []
    for file_path in sorted(glob.glob(os.path.join(base_path, "*.cmf"))):
        meshes.append(CollisionMeshFile().read_from_file(file_path, verbose=verbose))
    return meshes


def combine_meshes(meshes, scale=1.0):
    """Concatenate meshes into one (vertices, triangles) pair."""
    all_verts = []
    all_tris = []
    vert_offset = 0
    for m in meshes:
        all_verts.append(np.asarray(m.vertices, dtype=np.float64) * scale)
        all_tris.append(np.asarray(m.tris, dtype=np.int64) + vert_offset)
        vert_offset += len(m.vertices)

    if not all_verts:
        return np.zeros((0, 3)), np.zeros((0, 3), dtype=np.int64)
    return np.concatenate(all_verts, axis=0), np.concatenate(all_tris, axis=0)
