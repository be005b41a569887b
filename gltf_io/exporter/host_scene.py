"""Generic in-memory scene model exchanged with the host application.

The exporter reads this model and the importer produces it. Transforms are
mathutils 4x4 matrices (row-major, translation in the last column) and
per-vertex data are numpy arrays, so a host can fill it straight from its own
mesh API.
"""

import numpy as np
from mathutils import Matrix


class HostBone:
    """One bone influencing a mesh.

    Attributes:
        name: name of the scene node acting as the joint
        weights: list of (vertex_index, weight) pairs, in contribution order
        offset_matrix: mesh space -> bone space (inverse bind) Matrix
    """

    def __init__(self, name, weights=None, offset_matrix=None):
        self.name = name
        self.weights = list(weights or [])
        self.offset_matrix = offset_matrix.copy() if offset_matrix is not None else Matrix.Identity(4)

    def __repr__(self):
        return f"HostBone({self.name!r}, weights={len(self.weights)})"


class HostMesh:
    """Triangle (or point/line) geometry with optional skinning.

    Attributes:
        name: mesh name
        positions: (n, 3) float32
        normals: (n, 3) float32 or None
        texcoords: list of (n, 2) float32 arrays, one per UV set
        colors: list of (n, 4) float32 arrays, one per color set
        faces: (m, k) uint32 vertex indices, k = 3 for triangles
        bones: list of HostBone
        material_index: index into HostScene.materials (-1 = none)
    """

    def __init__(self, name="", positions=None, faces=None):
        self.name = name
        self.positions = _as_array(positions, np.float32, 3)
        self.normals = None
        self.texcoords = []
        self.colors = []
        self.faces = _as_array(faces, np.uint32, 3)
        self.bones = []
        self.material_index = -1

    @property
    def num_vertices(self):
        return len(self.positions)

    def has_bones(self):
        return bool(self.bones)

    def __repr__(self):
        return (
            f"HostMesh({self.name!r}, verts={self.num_vertices}, "
            f"faces={len(self.faces)}, bones={len(self.bones)})"
        )


def _as_array(values, dtype, width):
    if values is None:
        return np.zeros((0, width), dtype=dtype)
    arr = np.asarray(values, dtype=dtype)
    if arr.ndim == 1:
        arr = arr.reshape(-1, width)
    return arr


class HostMaterial:
    """Fixed-function material colors and an optional diffuse texture."""

    def __init__(self, name=""):
        self.name = name
        self.ambient = (0.0, 0.0, 0.0, 1.0)
        self.diffuse = (0.8, 0.8, 0.8, 1.0)
        self.specular = (0.0, 0.0, 0.0, 1.0)
        self.emission = (0.0, 0.0, 0.0, 1.0)
        self.shininess = 0.0
        self.transparency = 1.0
        self.diffuse_texture = ""  # image path or uri, empty = none


class HostNode:
    """A transform node; meshes are indices into HostScene.meshes."""

    def __init__(self, name="", transform=None, parent=None):
        self.name = name
        self.transform = transform.copy() if transform is not None else Matrix.Identity(4)
        self.parent = parent
        self.children = []
        self.meshes = []
        if parent is not None:
            parent.children.append(self)

    def walk(self):
        """Depth-first iteration over this node and its descendants."""
        yield self
        for child in self.children:
            yield from child.walk()

    def __repr__(self):
        return f"HostNode({self.name!r}, children={len(self.children)}, meshes={self.meshes})"


class HostScene:
    def __init__(self, root=None):
        self.root = root or HostNode("root")
        self.meshes = []
        self.materials = []

    def find_node(self, name):
        for node in self.root.walk():
            if node.name == name:
                return node
        return None

    def has_bones(self):
        return any(mesh.has_bones() for mesh in self.meshes)


# ---------------------------------------------------------------------------
# Matrix conversion (manifest matrices are 16 floats, column-major)
# ---------------------------------------------------------------------------

def matrix_to_list(matrix):
    return [float(matrix[row][col]) for col in range(4) for row in range(4)]


def list_to_matrix(values):
    return Matrix([[values[col * 4 + row] for col in range(4)] for row in range(4)])
