import sys
import unittest
from pathlib import Path

import numpy as np
from mathutils import Matrix


# Allow `import gltf_io.*` from repo root.
_ROOT_DIR = Path(__file__).resolve().parents[1]
if str(_ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(_ROOT_DIR))

from gltf_io.exporter.export_data import export_data  # noqa: E402
from gltf_io.exporter.host_scene import HostBone, HostMesh  # noqa: E402
from gltf_io.exporter.skin_export import (  # noqa: E402
    export_skin, finish_skin, find_mesh_node, find_skeleton_root_joint,
)
from gltf_io.gltf_format.gltf_constants import (  # noqa: E402
    ATTRIB_MAT4, ATTRIB_SCALAR, ATTRIB_VEC4, COMPONENT_FLOAT,
    COMPONENT_UNSIGNED_SHORT, IDENTITY_MATRIX,
)
from gltf_io.gltf_format.gltf_document import AssetDocument  # noqa: E402
from gltf_io.gltf_format.gltf_errors import MissingObjectError  # noqa: E402
from gltf_io.gltf_format.gltf_objects import Primitive  # noqa: E402


def _skin_setup(bone_names):
    doc = AssetDocument()
    buf = doc.buffers.create("data")
    for name in bone_names:
        doc.nodes.create(name)
    mesh = doc.meshes.create("body")
    mesh.primitives.append(Primitive())
    skin = doc.skins.create("skin")
    return doc, buf, mesh, skin


def _triangle(bones):
    host_mesh = HostMesh("body", [[0, 0, 0], [1, 0, 0], [0, 1, 0]], [[0, 1, 2]])
    host_mesh.bones = bones
    return host_mesh


class TestExportData(unittest.TestCase):
    def test_offsets_are_component_aligned(self) -> None:
        doc = AssetDocument()
        buf = doc.buffers.create("data")
        buf.append_data(b"\x01\x02\x03")

        acc = export_data(doc, "m", buf, [[1, 2, 3, 4]], ATTRIB_VEC4, COMPONENT_FLOAT)
        self.assertEqual(acc.buffer_view.byte_offset, 4)
        self.assertEqual(acc.buffer_view.byte_length, 16)
        self.assertEqual(buf.byte_length, 20)
        np.testing.assert_array_equal(acc.extract_data(), [[1, 2, 3, 4]])

    def test_bounds_and_ids(self) -> None:
        doc = AssetDocument()
        buf = doc.buffers.create("data")
        doc.meshes.create("m")

        acc = export_data(doc, "m", buf, [5, 1, 9], ATTRIB_SCALAR, COMPONENT_UNSIGNED_SHORT)
        self.assertEqual(acc.id, "m_accessor")
        self.assertEqual(acc.buffer_view.id, "m_view")
        self.assertEqual(acc.count, 3)
        self.assertEqual(acc.min, [1])
        self.assertEqual(acc.max, [9])

        second = export_data(doc, "m", buf, [7], ATTRIB_SCALAR, COMPONENT_UNSIGNED_SHORT)
        self.assertEqual(second.buffer_view.id, "m_view_0")
        self.assertEqual(second.id, "m_accessor_0")
        self.assertEqual(second.buffer_view.byte_offset, 6)

    def test_empty_data(self) -> None:
        doc = AssetDocument()
        buf = doc.buffers.create("data")
        self.assertIsNone(export_data(doc, "m", buf, [], ATTRIB_SCALAR, COMPONENT_FLOAT))
        self.assertEqual(buf.byte_length, 0)


class TestExportSkin(unittest.TestCase):
    def test_fifth_influence_is_dropped(self) -> None:
        names = ["b0", "b1", "b2", "b3", "b4"]
        doc, buf, mesh, skin = _skin_setup(names)
        weights = [0.1, 0.2, 0.3, 0.2, 0.2]
        bones = [HostBone(name, [(0, w)]) for name, w in zip(names, weights)]
        ibms = []

        dropped = export_skin(doc, _triangle(bones), mesh, buf, skin, ibms)

        self.assertEqual(dropped, 1)
        attrs = mesh.primitives[0].attributes
        weight_data = attrs.weight[0].extract_data()
        joint_data = attrs.joint[0].extract_data()
        self.assertEqual(attrs.weight[0].type, ATTRIB_VEC4)
        self.assertEqual(attrs.joint[0].component_type, COMPONENT_FLOAT)
        np.testing.assert_allclose(weight_data[0], [0.1, 0.2, 0.3, 0.2], rtol=1e-6)
        np.testing.assert_array_equal(joint_data[0], [0, 1, 2, 3])
        # Untouched vertices stay zero
        np.testing.assert_array_equal(weight_data[1], [0, 0, 0, 0])

        # The fifth bone is still a joint of the skin
        self.assertEqual(len(skin.joint_names), 5)
        self.assertEqual(len(ibms), 5)

    def test_joints_are_shared_between_meshes(self) -> None:
        doc, buf, mesh, skin = _skin_setup(["hip", "knee"])
        other = doc.meshes.create("legs")
        other.primitives.append(Primitive())
        ibms = []
        offset = Matrix.Translation((0, 0, -1))

        export_skin(doc, _triangle([HostBone("hip", [(0, 1.0)], offset)]), mesh, buf, skin, ibms)
        export_skin(doc, _triangle([HostBone("knee", [(1, 0.5)]),
                                    HostBone("hip", [(1, 0.5)], Matrix.Identity(4))]),
                    other, buf, skin, ibms)

        self.assertEqual([n.id for n in skin.joint_names], ["hip", "knee"])
        self.assertEqual(skin.joint_names[0].joint_name, "hip")
        # Offset recorded the first time the joint is seen
        self.assertEqual(ibms[0], offset)

        joints = other.primitives[0].attributes.joint[0].extract_data()
        np.testing.assert_array_equal(joints[1], [1, 0, 0, 0])

    def test_bone_without_node(self) -> None:
        doc, buf, mesh, skin = _skin_setup([])
        with self.assertRaises(MissingObjectError):
            export_skin(doc, _triangle([HostBone("ghost", [(0, 1.0)])]), mesh, buf, skin, [])

    def test_weight_for_missing_vertex(self) -> None:
        doc, buf, mesh, skin = _skin_setup(["b"])
        with self.assertRaises(ValueError):
            export_skin(doc, _triangle([HostBone("b", [(3, 1.0)])]), mesh, buf, skin, [])

    def test_mesh_without_bones(self) -> None:
        doc, buf, mesh, skin = _skin_setup([])
        self.assertEqual(export_skin(doc, _triangle([]), mesh, buf, skin, []), 0)
        self.assertEqual(mesh.primitives[0].attributes.joint, [])


class TestFinishSkin(unittest.TestCase):
    def _hierarchy(self):
        doc, buf, mesh, skin = _skin_setup(["root", "hip", "spine"])
        root, hip, spine = (doc.nodes.get(n) for n in ("root", "hip", "spine"))
        root.children = [hip]
        hip.parent = root
        hip.children = [spine]
        spine.parent = hip
        root.meshes.append(mesh)
        return doc, buf, mesh, skin, root

    def test_inverse_bind_matrices_and_attachment(self) -> None:
        doc, buf, mesh, skin, root = self._hierarchy()
        ibms = []
        bones = [HostBone("hip", [(0, 1.0)], Matrix.Translation((0, 0, -2))),
                 HostBone("spine", [(1, 1.0)])]
        export_skin(doc, _triangle(bones), mesh, buf, skin, ibms)

        mesh_node = find_mesh_node(root, mesh.id)
        self.assertIs(mesh_node, root)
        finish_skin(doc, skin, buf, ibms, mesh_node)

        acc = skin.inverse_bind_matrices
        self.assertEqual(acc.type, ATTRIB_MAT4)
        self.assertEqual(acc.count, 2)
        matrices = acc.extract_data()
        # Column-major: translation lands in elements 12..14
        np.testing.assert_array_equal(matrices[0][12:15], [0, 0, -2])
        self.assertEqual(skin.bind_shape_matrix, list(IDENTITY_MATRIX))

        self.assertIs(root.skin, skin)
        self.assertEqual(root.skeletons, [root])

    def test_root_joint_is_first_ancestor_without_joint_name(self) -> None:
        doc, buf, mesh, skin, root = self._hierarchy()
        export_skin(doc, _triangle([HostBone("spine", [(0, 1.0)]), HostBone("hip", [(1, 1.0)])]),
                    mesh, buf, skin, [])

        self.assertIs(find_skeleton_root_joint(skin), root)

    def test_topmost_joint_when_all_ancestors_are_joints(self) -> None:
        doc, buf, mesh, skin, root = self._hierarchy()
        root.joint_name = "root"
        export_skin(doc, _triangle([HostBone("spine", [(0, 1.0)]), HostBone("hip", [(1, 1.0)])]),
                    mesh, buf, skin, [])

        self.assertIs(find_skeleton_root_joint(skin), root)


if __name__ == "__main__":
    unittest.main()
