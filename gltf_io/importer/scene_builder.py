"""Convert a loaded AssetDocument into the host scene model.

This is the inverse of export_gltf.py. Each mesh primitive becomes one
HostMesh; skin joints and weights are turned back into per-bone weight lists.
"""

import logging

import numpy as np
from mathutils import Matrix, Quaternion, Vector

from ..exporter.host_scene import (
    HostBone, HostMaterial, HostMesh, HostNode, HostScene, list_to_matrix,
)
from ..gltf_format.gltf_constants import (
    MODE_LINES, MODE_POINTS, MODE_TRIANGLES, MAX_JOINTS_PER_VERTEX,
)
from ..settings import debug_enabled

_debug = debug_enabled()
_log = logging.getLogger("gltf_import")

_MODE_WIDTHS = {MODE_POINTS: 1, MODE_LINES: 2, MODE_TRIANGLES: 3}


def build_host_scene(document):
    """Build a HostScene from the materialized objects of document.

    Args:
        document: a loaded AssetDocument

    Returns:
        HostScene. When the root scene has a single node it becomes the
        scene root, otherwise a "root" node groups the scene's nodes.
    """
    scene = HostScene()

    material_index = {}
    for mat in document.materials:
        material_index[mat.id] = len(scene.materials)
        scene.materials.append(_build_material(mat))

    skins_by_mesh = {}
    for node in document.nodes:
        if node.skin is None:
            continue
        for mesh in node.meshes:
            skins_by_mesh.setdefault(mesh.id, node.skin)

    mesh_index = {}
    for mesh in document.meshes:
        indices = []
        for i, prim in enumerate(mesh.primitives):
            name = mesh.name or mesh.id
            if len(mesh.primitives) > 1:
                name = f"{name}_{i}"
            host_mesh = _build_mesh(name, prim, skins_by_mesh.get(mesh.id))
            if prim.material is not None:
                host_mesh.material_index = material_index.get(prim.material.id, -1)
            indices.append(len(scene.meshes))
            scene.meshes.append(host_mesh)
        mesh_index[mesh.id] = indices

    roots = document.scene.nodes if document.scene is not None else []
    if len(roots) == 1:
        scene.root = _build_node(roots[0], None, mesh_index)
    else:
        for node in roots:
            _build_node(node, scene.root, mesh_index)

    _log.info("Imported %d meshes, %d materials", len(scene.meshes), len(scene.materials))
    return scene


def _build_material(mat):
    host_mat = HostMaterial(mat.name or mat.id)
    host_mat.ambient = tuple(mat.ambient.color)
    host_mat.diffuse = tuple(mat.diffuse.color)
    host_mat.specular = tuple(mat.specular.color)
    host_mat.emission = tuple(mat.emission.color)
    host_mat.shininess = mat.shininess
    if mat.transparent:
        host_mat.transparency = mat.transparency

    texture = mat.diffuse.texture
    if texture is not None and texture.source is not None:
        host_mat.diffuse_texture = texture.source.uri
    return host_mat


def _node_transform(node):
    if node.matrix is not None:
        return list_to_matrix(node.matrix)

    mat = Matrix.Identity(4)
    if node.translation is not None:
        mat = Matrix.Translation(Vector(node.translation))
    if node.rotation is not None:
        x, y, z, w = node.rotation
        mat = mat @ Quaternion((w, x, y, z)).to_matrix().to_4x4()
    if node.scale is not None:
        mat = mat @ Matrix.Diagonal(Vector((*node.scale, 1.0)))
    return mat


def _build_node(node, parent, mesh_index):
    host_node = HostNode(node.name or node.id, _node_transform(node), parent)
    for mesh in node.meshes:
        host_node.meshes.extend(mesh_index.get(mesh.id, ()))
    for child in node.children:
        _build_node(child, host_node, mesh_index)
    return host_node


def _first(slots):
    for accessor in slots:
        if accessor is not None:
            return accessor
    return None


def _build_mesh(name, prim, skin):
    attrs = prim.attributes
    position = _first(attrs.position)
    positions = position.extract_data() if position is not None else None
    host_mesh = HostMesh(name, positions)
    num_verts = host_mesh.num_vertices

    normal = _first(attrs.normal)
    if normal is not None:
        host_mesh.normals = normal.extract_data().astype(np.float32)

    for accessor in attrs.texcoord:
        if accessor is not None:
            host_mesh.texcoords.append(accessor.extract_data().astype(np.float32))

    for accessor in attrs.color:
        if accessor is None:
            continue
        colors = accessor.extract_data().astype(np.float32)
        if colors.ndim == 2 and colors.shape[1] == 3:
            colors = np.hstack([colors, np.ones((len(colors), 1), dtype=np.float32)])
        host_mesh.colors.append(colors)

    width = _MODE_WIDTHS.get(prim.mode)
    if width is None:
        _log.warning("Mesh %r: draw mode %d is kept as a flat index list", name, prim.mode)
        width = 1
    if prim.indices is not None:
        indices = prim.indices.extract_data().astype(np.uint32).reshape(-1)
    else:
        indices = np.arange(num_verts, dtype=np.uint32)
    usable = len(indices) - len(indices) % width
    host_mesh.faces = indices[:usable].reshape(-1, width)

    if skin is not None:
        host_mesh.bones = _build_bones(attrs, skin, num_verts)

    if _debug:
        _log.debug("Built %r", host_mesh)
    return host_mesh


def _build_bones(attrs, skin, num_verts):
    joint_acc = _first(attrs.joint)
    weight_acc = _first(attrs.weight)
    if joint_acc is None or weight_acc is None:
        return []
    if joint_acc.count != num_verts or weight_acc.count != num_verts:
        _log.warning("Skin %r: %d joint and %d weight entries for %d vertices, bones skipped",
                     skin.id, joint_acc.count, weight_acc.count, num_verts)
        return []

    joints = joint_acc.extract_data().reshape(joint_acc.count, -1)
    weights = weight_acc.extract_data().reshape(weight_acc.count, -1)

    offsets = []
    if skin.inverse_bind_matrices is not None:
        offsets = [list_to_matrix(m.tolist())
                   for m in skin.inverse_bind_matrices.extract_data().reshape(-1, 16)]

    bones = {}
    cols = min(joints.shape[1], weights.shape[1], MAX_JOINTS_PER_VERTEX)
    for vertex_id in range(num_verts):
        for k in range(cols):
            weight = float(weights[vertex_id, k])
            if weight == 0.0:
                continue
            joint_index = int(joints[vertex_id, k])
            if joint_index >= len(skin.joint_names):
                _log.warning("Vertex %d references joint %d, skin %r has %d",
                             vertex_id, joint_index, skin.id, len(skin.joint_names))
                continue
            bone = bones.get(joint_index)
            if bone is None:
                node = skin.joint_names[joint_index]
                offset = offsets[joint_index] if joint_index < len(offsets) else None
                bone = HostBone(node.name or node.id, offset_matrix=offset)
                bones[joint_index] = bone
            bone.weights.append((vertex_id, weight))

    return [bones[i] for i in sorted(bones)]
