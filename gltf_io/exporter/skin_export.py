"""Bone-weight packing for skinned meshes.

Pipeline (one shared skin for the whole scene):
    1. export_skin() per skinned mesh: map bones to joint nodes, pack up to
       four (joint, weight) influences per vertex, write JOINT/WEIGHT
       accessors onto the mesh's last primitive
    2. finish_skin() once: write the inverse-bind matrices, set an identity
       bind shape matrix, attach skin + skeleton root to the mesh's node
"""

import logging

import numpy as np

from ..gltf_format.gltf_constants import (
    ATTRIB_MAT4, ATTRIB_VEC4, COMPONENT_FLOAT, IDENTITY_MATRIX,
    MAX_JOINTS_PER_VERTEX,
)
from ..gltf_format.gltf_errors import MissingObjectError
from .export_data import export_data
from .host_scene import matrix_to_list

_log = logging.getLogger("gltf_skin_export")


def _joint_node(document, bone_name, nodes_by_name):
    node = nodes_by_name.get(bone_name) if nodes_by_name else None
    if node is None and bone_name in document.nodes:
        node = document.nodes.get(bone_name)
    if node is None:
        raise MissingObjectError(f"No node for bone \"{bone_name}\"")
    return node


def export_skin(document, host_mesh, mesh, buffer, skin, inverse_bind_matrices,
                nodes_by_name=None):
    """Pack the bone influences of host_mesh into JOINT/WEIGHT accessors.

    Joints are shared across meshes: a bone whose node is already in
    skin.joint_names reuses that index, a new one is appended together
    with its offset matrix. A vertex keeps its first four influences in
    contribution order; later ones are dropped.

    Args:
        document: AssetDocument being built
        host_mesh: HostMesh with bones
        mesh: Mesh whose last primitive receives the attributes
        buffer: Buffer the accessors are written to
        skin: the shared Skin
        inverse_bind_matrices: list of mathutils.Matrix, extended in place
            (parallel to skin.joint_names)
        nodes_by_name: optional dict of bone name -> Node; otherwise nodes
            are looked up by id

    Returns:
        number of influences dropped because a vertex already had four

    Raises:
        MissingObjectError: a bone has no matching node
        ValueError: the mesh has no primitive, or a weight refers to a
            vertex that doesn't exist
    """
    if not host_mesh.bones:
        return 0
    if not mesh.primitives:
        raise ValueError(f"Mesh \"{mesh.id}\" has no primitive to attach skin data to")

    num_verts = host_mesh.num_vertices
    joints = np.zeros((num_verts, MAX_JOINTS_PER_VERTEX), dtype=np.float32)
    weights = np.zeros((num_verts, MAX_JOINTS_PER_VERTEX), dtype=np.float32)
    used = np.zeros(num_verts, dtype=np.int32)
    dropped = 0

    for bone in host_mesh.bones:
        node = _joint_node(document, bone.name, nodes_by_name)
        node.joint_name = node.id

        joint_index = None
        for i, joint in enumerate(skin.joint_names):
            if joint.joint_name == node.joint_name:
                joint_index = i
                break
        if joint_index is None:
            skin.joint_names.append(node)
            inverse_bind_matrices.append(bone.offset_matrix.copy())
            joint_index = len(inverse_bind_matrices) - 1

        for vertex_id, weight in bone.weights:
            if vertex_id < 0 or vertex_id >= num_verts:
                raise ValueError(
                    f"Bone \"{bone.name}\" weights vertex {vertex_id}, "
                    f"mesh \"{host_mesh.name}\" has {num_verts}"
                )
            slot = used[vertex_id]
            if slot >= MAX_JOINTS_PER_VERTEX:
                dropped += 1
                continue
            joints[vertex_id, slot] = joint_index
            weights[vertex_id, slot] = weight
            used[vertex_id] = slot + 1

    if dropped:
        _log.debug("Mesh %r: dropped %d influences beyond %d per vertex",
                   host_mesh.name, dropped, MAX_JOINTS_PER_VERTEX)

    prim = mesh.primitives[-1]
    joint_acc = export_data(document, skin.id, buffer, joints, ATTRIB_VEC4, COMPONENT_FLOAT)
    if joint_acc is not None:
        prim.attributes.joint.append(joint_acc)
    weight_acc = export_data(document, skin.id, buffer, weights, ATTRIB_VEC4, COMPONENT_FLOAT)
    if weight_acc is not None:
        prim.attributes.weight.append(weight_acc)

    return dropped


def find_mesh_node(node, mesh_id):
    """Depth-first search for the node that instances mesh_id."""
    if any(mesh.id == mesh_id for mesh in node.meshes):
        return node
    for child in node.children:
        found = find_mesh_node(child, mesh_id)
        if found is not None:
            return found
    return None


def find_skeleton_root_joint(skin):
    """Walk up from the first joint to the first ancestor without a jointName.

    When every ancestor is a joint, the topmost joint is returned.
    """
    if not skin.joint_names:
        return None
    node = skin.joint_names[0]
    while node.parent is not None:
        node = node.parent
        if not node.joint_name:
            return node
    return node


def finish_skin(document, skin, buffer, inverse_bind_matrices, mesh_node):
    """Write the inverse-bind matrices and hook the skin up to mesh_node.

    Args:
        document: AssetDocument being built
        skin: the Skin filled by export_skin()
        buffer: Buffer the MAT4 accessor is written to
        inverse_bind_matrices: list of mathutils.Matrix, one per joint
        mesh_node: Node owning the first mesh (may be None)
    """
    if inverse_bind_matrices:
        data = np.array([matrix_to_list(m) for m in inverse_bind_matrices], dtype=np.float32)
        acc = export_data(document, skin.id, buffer, data, ATTRIB_MAT4, COMPONENT_FLOAT,
                          compute_bounds=False)
        if acc is not None:
            skin.inverse_bind_matrices = acc

    skin.bind_shape_matrix = list(IDENTITY_MATRIX)

    if mesh_node is None:
        _log.warning("Skin %r: no node instances the first mesh, skin left unattached", skin.id)
        return

    root_joint = find_skeleton_root_joint(skin)
    if root_joint is not None:
        mesh_node.skeletons.append(root_joint)
    mesh_node.skin = skin
