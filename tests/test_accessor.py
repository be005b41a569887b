import sys
import unittest
from pathlib import Path

import numpy as np


# Allow `import gltf_io.*` from repo root.
_ROOT_DIR = Path(__file__).resolve().parents[1]
if str(_ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(_ROOT_DIR))

from gltf_io.gltf_format.gltf_accessor import Accessor  # noqa: E402
from gltf_io.gltf_format.gltf_buffer import Buffer, BufferView  # noqa: E402
from gltf_io.gltf_format.gltf_constants import (  # noqa: E402
    ATTRIB_SCALAR, ATTRIB_VEC2, ATTRIB_VEC3, ATTRIB_MAT4,
    COMPONENT_FLOAT, COMPONENT_UNSIGNED_INT, COMPONENT_UNSIGNED_SHORT,
)
from gltf_io.gltf_format.gltf_errors import InvalidDocumentError  # noqa: E402


def _make_accessor(data, component_type, attrib_type, count,
                   byte_offset=0, byte_stride=0, view_offset=0):
    buf = Buffer()
    buf.id = "buf"
    buf.append_data(data)

    view = BufferView()
    view.id = "view"
    view.buffer = buf
    view.byte_offset = view_offset
    view.byte_length = len(data) - view_offset

    acc = Accessor()
    acc.id = "acc"
    acc.buffer_view = view
    acc.byte_offset = byte_offset
    acc.byte_stride = byte_stride
    acc.component_type = component_type
    acc.type = attrib_type
    acc.count = count
    return acc


class TestAccessorLayout(unittest.TestCase):
    def test_element_sizes(self) -> None:
        acc = Accessor()
        acc.component_type = COMPONENT_FLOAT
        acc.type = ATTRIB_MAT4
        self.assertEqual(acc.num_components, 16)
        self.assertEqual(acc.bytes_per_component, 4)
        self.assertEqual(acc.element_size, 64)
        self.assertEqual(acc.effective_stride, 64)

        acc.type = ATTRIB_VEC3
        acc.component_type = COMPONENT_UNSIGNED_SHORT
        acc.byte_stride = 8
        self.assertEqual(acc.element_size, 6)
        self.assertEqual(acc.effective_stride, 8)

    def test_unbound_accessor_has_no_data(self) -> None:
        acc = Accessor()
        self.assertIsNone(acc.get_pointer())
        self.assertIsNone(acc.extract_data())
        self.assertFalse(acc.get_indexer().is_valid())


class TestExtractData(unittest.TestCase):
    def test_tightly_packed_vec3(self) -> None:
        positions = np.arange(12, dtype=np.float32).reshape(4, 3)
        acc = _make_accessor(positions.tobytes(), COMPONENT_FLOAT, ATTRIB_VEC3, 4)

        out = acc.extract_data()
        self.assertEqual(out.shape, (4, 3))
        self.assertEqual(out.dtype, np.float32)
        np.testing.assert_array_equal(out, positions)

    def test_scalar_is_one_dimensional(self) -> None:
        indices = np.array([0, 1, 2, 2, 1, 3], dtype=np.uint16)
        acc = _make_accessor(indices.tobytes(), COMPONENT_UNSIGNED_SHORT, ATTRIB_SCALAR, 6)

        out = acc.extract_data()
        self.assertEqual(out.shape, (6,))
        np.testing.assert_array_equal(out, indices)

    def test_strided_elements(self) -> None:
        interleaved = np.arange(12, dtype=np.float32).reshape(3, 4)
        acc = _make_accessor(interleaved.tobytes(), COMPONENT_FLOAT, ATTRIB_VEC3, 3,
                             byte_stride=16)

        np.testing.assert_array_equal(acc.extract_data(), interleaved[:, :3])

    def test_offsets_add_up(self) -> None:
        data = b"\xFF" * 8 + np.array([7, 8, 9], dtype=np.uint16).tobytes()
        acc = _make_accessor(data, COMPONENT_UNSIGNED_SHORT, ATTRIB_SCALAR, 3,
                             byte_offset=4, view_offset=4)

        np.testing.assert_array_equal(acc.extract_data(), [7, 8, 9])

    def test_extract_into_wider_target(self) -> None:
        indices = np.array([1, 65535, 3], dtype=np.uint16)
        acc = _make_accessor(indices.tobytes(), COMPONENT_UNSIGNED_SHORT, ATTRIB_SCALAR, 3)

        out = acc.extract_data(np.uint32)
        self.assertEqual(out.dtype, np.uint32)
        np.testing.assert_array_equal(out, [1, 65535, 3])

    def test_extract_into_same_size_target(self) -> None:
        uvs = np.array([[0.0, 1.0], [0.5, 0.25]], dtype=np.float32)
        acc = _make_accessor(uvs.tobytes(), COMPONENT_FLOAT, ATTRIB_VEC2, 2)

        out = acc.extract_data(np.dtype((np.float32, 2)))
        np.testing.assert_array_equal(out, uvs)

    def test_target_smaller_than_element(self) -> None:
        acc = _make_accessor(bytes(24), COMPONENT_FLOAT, ATTRIB_VEC3, 2)
        with self.assertRaises(ValueError):
            acc.extract_data(np.float32)

    def test_count_past_end_of_data(self) -> None:
        acc = _make_accessor(bytes(24), COMPONENT_FLOAT, ATTRIB_VEC3, 3)
        with self.assertRaises(InvalidDocumentError):
            acc.extract_data()

    def test_empty_accessor(self) -> None:
        acc = _make_accessor(bytes(4), COMPONENT_FLOAT, ATTRIB_VEC3, 0)
        self.assertEqual(acc.extract_data().shape, (0, 3))

    def test_reads_through_active_region(self) -> None:
        acc = _make_accessor(bytes(16), COMPONENT_FLOAT, ATTRIB_VEC2, 1)
        decoded = np.array([3.0, 4.0], dtype=np.float32).tobytes()
        buf = acc.buffer_view.buffer
        buf.encoded_region_mark(0, 4, decoded, region_id="m")
        buf.encoded_region_set_current("m")

        np.testing.assert_array_equal(acc.extract_data(), [[3.0, 4.0]])


class TestWriteData(unittest.TestCase):
    def test_append_then_extract_round_trips(self) -> None:
        buf = Buffer()
        buf.id = "buf"
        buf.append_data(b"\x00" * 6)
        payload = np.array([[1.5, -2.0, 3.25]], dtype=np.float32).tobytes()
        offset = buf.append_data(payload)
        self.assertEqual(offset, 6)

        view = BufferView()
        view.buffer = buf
        view.byte_offset = offset
        view.byte_length = len(payload)
        acc = Accessor()
        acc.buffer_view = view
        acc.component_type = COMPONENT_FLOAT
        acc.type = ATTRIB_VEC3
        acc.count = 1

        self.assertEqual(acc.extract_data().tobytes(), payload)

    def test_write_with_same_stride(self) -> None:
        acc = _make_accessor(bytes(24), COMPONENT_FLOAT, ATTRIB_VEC3, 2)
        src = np.array([[1, 2, 3], [4, 5, 6]], dtype=np.float32)
        acc.write_data(2, src)

        np.testing.assert_array_equal(acc.extract_data(), src)

    def test_write_wider_source_copies_prefix(self) -> None:
        acc = _make_accessor(bytes(24), COMPONENT_FLOAT, ATTRIB_VEC3, 2)
        src = np.array([[1, 2, 3, 99], [4, 5, 6, 99]], dtype=np.float32)
        acc.write_data(2, src, 16)

        np.testing.assert_array_equal(acc.extract_data(), src[:, :3])

    def test_write_narrower_source_zero_fills(self) -> None:
        acc = _make_accessor(b"\xFF" * 24, COMPONENT_FLOAT, ATTRIB_VEC3, 2)
        src = np.array([[1, 2], [3, 4]], dtype=np.float32)
        acc.write_data(2, src, 8)

        np.testing.assert_array_equal(acc.extract_data(), [[1, 2, 0], [3, 4, 0]])

    def test_write_past_end(self) -> None:
        acc = _make_accessor(bytes(12), COMPONENT_FLOAT, ATTRIB_VEC3, 2)
        with self.assertRaises(InvalidDocumentError):
            acc.write_data(2, np.zeros((2, 3), dtype=np.float32))

    def test_write_short_source(self) -> None:
        acc = _make_accessor(bytes(24), COMPONENT_FLOAT, ATTRIB_VEC3, 2)
        with self.assertRaises(ValueError):
            acc.write_data(2, np.zeros(3, dtype=np.float32))


class TestIndexer(unittest.TestCase):
    def test_get_uint(self) -> None:
        indices = np.array([5, 400, 65000], dtype=np.uint16)
        acc = _make_accessor(indices.tobytes(), COMPONENT_UNSIGNED_SHORT, ATTRIB_SCALAR, 3)
        indexer = acc.get_indexer()

        self.assertTrue(indexer.is_valid())
        self.assertEqual([indexer.get_uint(i) for i in range(3)], [5, 400, 65000])

    def test_small_target_truncates(self) -> None:
        values = np.array([0x01020304], dtype=np.uint32)
        acc = _make_accessor(values.tobytes(), COMPONENT_UNSIGNED_INT, ATTRIB_SCALAR, 1)

        self.assertEqual(int(acc.get_indexer().get_value(0, np.uint16)), 0x0304)

    def test_strided_access(self) -> None:
        data = np.array([1, 111, 2, 222], dtype=np.uint32).tobytes()
        acc = _make_accessor(data, COMPONENT_UNSIGNED_INT, ATTRIB_SCALAR, 2, byte_stride=8)
        indexer = acc.get_indexer()

        self.assertEqual(indexer.get_uint(0), 1)
        self.assertEqual(indexer.get_uint(1), 2)

    def test_out_of_range(self) -> None:
        acc = _make_accessor(bytes(4), COMPONENT_UNSIGNED_SHORT, ATTRIB_SCALAR, 2)
        with self.assertRaises(IndexError):
            acc.get_indexer().get_uint(2)

    def test_index_past_count_inside_view(self) -> None:
        indices = np.array([4, 5, 6, 7], dtype=np.uint16)
        acc = _make_accessor(indices.tobytes(), COMPONENT_UNSIGNED_SHORT, ATTRIB_SCALAR, 2)
        indexer = acc.get_indexer()

        self.assertEqual(indexer.get_uint(1), 5)
        with self.assertRaises(IndexError):
            indexer.get_uint(2)


class TestAccessorJson(unittest.TestCase):
    def test_bounds_written_only_when_present(self) -> None:
        acc = _make_accessor(bytes(12), COMPONENT_FLOAT, ATTRIB_VEC3, 1)
        out = acc.to_json()
        self.assertNotIn("min", out)
        self.assertNotIn("max", out)
        self.assertEqual(out["bufferView"], "view")
        self.assertEqual(out["type"], "VEC3")

        acc.min = [0, 0, 0]
        acc.max = [1, 2, 3]
        out = acc.to_json()
        self.assertEqual(out["max"], [1.0, 2.0, 3.0])
        self.assertIsInstance(out["max"][0], float)

    def test_integer_bounds(self) -> None:
        acc = _make_accessor(bytes(4), COMPONENT_UNSIGNED_SHORT, ATTRIB_SCALAR, 2)
        acc.min = [0.0]
        acc.max = [7.0]
        self.assertEqual(acc.to_json()["max"], [7])
        self.assertIsInstance(acc.to_json()["max"][0], int)


if __name__ == "__main__":
    unittest.main()
