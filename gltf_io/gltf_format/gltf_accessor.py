"""Typed, strided views into buffer views.

An Accessor describes how the bytes of a BufferView are laid out as elements
(scalar, vector or matrix) of one component type, much like WebGL's
vertexAttribPointer(). Data is moved in and out as numpy arrays.
"""

import numpy as np

from .gltf_constants import (
    COMPONENT_BYTE, COMPONENT_FLOAT, COMPONENT_DTYPES, COMPONENT_SIZES,
    ATTRIB_SCALAR, ATTRIB_COMPONENTS,
)
from .gltf_errors import InvalidDocumentError
from .gltf_json import find_string, member_or_default, read_number_list
from .gltf_objects import GltfObject


def _as_byte_array(src):
    """Flat uint8 array over any bytes-like object or numpy array."""
    if isinstance(src, np.ndarray):
        return np.ascontiguousarray(src).reshape(-1).view(np.uint8)
    return np.frombuffer(src, dtype=np.uint8)


class Accessor(GltfObject):
    """A typed view into a BufferView.

    Attributes:
        buffer_view: BufferView the data lives in (None for placeholders)
        byte_offset: offset relative to the start of the buffer view
        byte_stride: bytes between elements, 0 = tightly packed
        component_type: one of the COMPONENT_* enums
        count: number of elements
        type: element shape, one of the ATTRIB_* strings
        min, max: per-component bounds (empty lists when absent)
    """

    def __init__(self):
        super().__init__()
        self.buffer_view = None
        self.byte_offset = 0
        self.byte_stride = 0
        self.component_type = COMPONENT_BYTE
        self.count = 0
        self.type = ATTRIB_SCALAR
        self.min = []
        self.max = []

    def read(self, obj, document):
        view_id = find_string(obj, "bufferView")
        if view_id:
            self.buffer_view = document.buffer_views.get(view_id)

        self.byte_offset = member_or_default(obj, "byteOffset", 0)
        self.byte_stride = member_or_default(obj, "byteStride", 0)
        self.component_type = member_or_default(obj, "componentType", COMPONENT_BYTE)
        if self.component_type not in COMPONENT_SIZES:
            raise InvalidDocumentError(
                f"Accessor \"{self.id}\" has unsupported component type {self.component_type}"
            )
        self.count = member_or_default(obj, "count", 0)

        type_str = find_string(obj, "type")
        self.type = type_str if type_str in ATTRIB_COMPONENTS else ATTRIB_SCALAR

        self.max = read_number_list(obj, "max") or []
        self.min = read_number_list(obj, "min") or []

    def to_json(self, writer=None):
        out = {}
        if self.buffer_view is not None:
            out["bufferView"] = self.buffer_view.id
        out["byteOffset"] = self.byte_offset
        out["byteStride"] = self.byte_stride
        out["componentType"] = self.component_type
        out["count"] = self.count
        out["type"] = self.type

        if self.max and self.min:
            if self.component_type == COMPONENT_FLOAT:
                out["max"] = [float(v) for v in self.max]
                out["min"] = [float(v) for v in self.min]
            else:
                out["max"] = [int(v) for v in self.max]
                out["min"] = [int(v) for v in self.min]
        return out

    # ---- Layout ----

    @property
    def num_components(self):
        return ATTRIB_COMPONENTS[self.type]

    @property
    def bytes_per_component(self):
        return COMPONENT_SIZES[self.component_type]

    @property
    def element_size(self):
        return self.num_components * self.bytes_per_component

    @property
    def effective_stride(self):
        return self.byte_stride or self.element_size

    @property
    def dtype(self):
        return np.dtype(COMPONENT_DTYPES[self.component_type])

    def get_pointer(self):
        """View of the bytes at this accessor's start, or None if unbound.

        Goes through Buffer.get_pointer, so the active decoded region of the
        buffer is honoured.
        """
        if self.buffer_view is None or self.buffer_view.buffer is None:
            return None
        offset = self.byte_offset + self.buffer_view.byte_offset
        return self.buffer_view.buffer.get_pointer(offset)

    def _check_range(self, data, stride, elem_size):
        if self.count == 0:
            return
        needed = (self.count - 1) * stride + elem_size
        if needed > len(data):
            raise InvalidDocumentError(
                f"Accessor \"{self.id}\" reads {needed} bytes but only "
                f"{len(data)} are available"
            )

    def _element_bytes(self, data):
        """(count, element_size) uint8 array of the source elements."""
        elem_size = self.element_size
        stride = self.effective_stride
        if self.count == 0:
            return np.zeros((0, elem_size), dtype=np.uint8)
        raw = np.frombuffer(data, dtype=np.uint8,
                            count=(self.count - 1) * stride + elem_size)
        if stride == elem_size:
            return raw.reshape(self.count, elem_size)
        return np.lib.stride_tricks.as_strided(
            raw, shape=(self.count, elem_size), strides=(stride, 1), writeable=False
        )

    # ---- Bulk access ----

    def extract_data(self, target=None):
        """Copy all elements out into a new numpy array.

        Args:
            target: optional dtype for one whole element. Each element's bytes
                are copied into a zero-initialized value of this dtype, so it
                must be at least element_size bytes. When None, the array uses
                the component dtype with shape (count,) for SCALAR and
                (count, num_components) otherwise.

        Returns:
            numpy.ndarray, or None if the accessor is not bound to data

        Raises:
            ValueError: target is smaller than one element
            InvalidDocumentError: the elements run past the available data
        """
        data = self.get_pointer()
        if data is None:
            return None

        elem_size = self.element_size
        stride = self.effective_stride
        self._check_range(data, stride, elem_size)

        if target is None:
            dtype = self.dtype
            n = self.num_components
            shape = (self.count,) if n == 1 else (self.count, n)
            if self.count == 0:
                return np.zeros(shape, dtype=dtype)
            if stride == elem_size:
                out = np.frombuffer(data, dtype=dtype, count=self.count * n)
                return out.reshape(shape).copy()
            src = np.ascontiguousarray(self._element_bytes(data))
            return src.view(dtype).reshape(shape)

        target = np.dtype(target)
        if elem_size > target.itemsize:
            raise ValueError(
                f"Target dtype {target} ({target.itemsize} bytes) is smaller than "
                f"the {elem_size}-byte elements of accessor \"{self.id}\""
            )

        if self.count and stride == elem_size and target.itemsize == elem_size:
            return np.frombuffer(data, dtype=target, count=self.count).copy()

        out = np.zeros(self.count, dtype=target)
        out.view(np.uint8).reshape(self.count, target.itemsize)[:, :elem_size] = \
            self._element_bytes(data)
        return out

    def write_data(self, count, src, src_stride=None):
        """Copy count elements from src into the buffer at this accessor.

        Destination elements are tightly packed (element_size apart). When
        src_stride differs, the overlapping prefix of each element is copied
        and any remaining destination bytes are zeroed.

        Args:
            count: number of elements to write
            src: bytes-like object or numpy array
            src_stride: bytes between source elements (default: element_size)

        Raises:
            InvalidDocumentError: the accessor is unbound or the write would
                run past the end of the buffer
            ValueError: src is too short for count elements
        """
        if self.buffer_view is None or self.buffer_view.buffer is None:
            raise InvalidDocumentError(f"Accessor \"{self.id}\" has no buffer to write to")
        if count <= 0:
            return

        buffer = self.buffer_view.buffer
        dst = buffer.raw_view(self.byte_offset + self.buffer_view.byte_offset)
        dst_stride = self.element_size
        if src_stride is None:
            src_stride = dst_stride

        if dst is None or count * dst_stride > len(dst):
            raise InvalidDocumentError(
                f"Accessor \"{self.id}\": writing {count} elements runs past the "
                f"end of buffer \"{buffer.id}\""
            )

        src_bytes = _as_byte_array(src)
        if count * src_stride > len(src_bytes):
            raise ValueError(
                f"Source holds {len(src_bytes)} bytes, {count * src_stride} needed"
            )

        dst_arr = np.frombuffer(dst, dtype=np.uint8, count=count * dst_stride)
        if src_stride == dst_stride:
            dst_arr[:] = src_bytes[:count * dst_stride]
            return

        size = min(src_stride, dst_stride)
        dst_2d = dst_arr.reshape(count, dst_stride)
        src_2d = src_bytes[:count * src_stride].reshape(count, src_stride)
        dst_2d[:, :size] = src_2d[:, :size]
        if size < dst_stride:
            dst_2d[:, size:] = 0

    # ---- Element access ----

    def get_indexer(self):
        return Accessor.Indexer(self)

    class Indexer:
        """Random access to single elements of an accessor."""

        def __init__(self, accessor):
            self.accessor = accessor
            self._data = accessor.get_pointer()
            self.elem_size = accessor.element_size
            self.stride = accessor.effective_stride

        def is_valid(self):
            return self._data is not None

        def get_value(self, i, dtype=np.uint32):
            """Read the i-th element into a zero-initialized value of dtype.

            Copies element_size bytes, truncated to dtype's size when it is
            smaller. Choosing a large enough dtype is up to the caller.
            """
            if self._data is None:
                raise ValueError(f"Accessor \"{self.accessor.id}\" has no data")

            dtype = np.dtype(dtype)
            start = i * self.stride
            if (i < 0 or i >= self.accessor.count
                    or start >= self.accessor.buffer_view.byte_length):
                raise IndexError(f"Element {i} is out of range for accessor \"{self.accessor.id}\"")

            size = min(self.elem_size, dtype.itemsize)
            if start + size > len(self._data):
                raise IndexError(f"Element {i} is out of range for accessor \"{self.accessor.id}\"")

            value = np.zeros(1, dtype=dtype)
            value.view(np.uint8)[:size] = np.frombuffer(
                self._data, dtype=np.uint8, count=size, offset=start
            )
            return value[0]

        def get_uint(self, i):
            return int(self.get_value(i, np.uint32))

    def __repr__(self):
        return (
            f"Accessor({self.id!r}, type={self.type}, componentType={self.component_type}, "
            f"count={self.count})"
        )
