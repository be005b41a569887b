"""Binary buffers and the views that window into them.

A Buffer owns one contiguous growable byte arena. Parts of the arena may be
overlaid by decoded regions: an encoded byte range that, while its region is
the active one, reads as a separately-owned decoded byte string. Only one
region is active at a time, which lets a reader decode the data of the mesh
it is currently processing while the rest of the buffer stays encoded.

Example: two meshes of 4 bytes each, each compressed to 2 bytes, give a
buffer M1_E0 M1_E1 M2_E0 M2_E1. After marking both regions, accessors of
mesh 1 address 0..4 (decoded) and accessors of mesh 2 start at 2 + 4 - 2,
i.e. every offset computed after a region is marked is in decoded
coordinates for that region and encoded coordinates for the others.
"""

import logging
import os

from .gltf_constants import TARGET_NONE, BODY_BUFFER_URI
from .gltf_errors import InvalidDocumentError, RegionNotFoundError, GltfIOError
from .gltf_json import (
    find_string, member_or_default, parse_data_uri, decode_data_uri,
)
from .gltf_objects import GltfObject

_log = logging.getLogger("gltf_buffer")


class EncodedRegion:
    """A range of a buffer that is logically replaced by decoded bytes."""

    __slots__ = ('offset', 'encoded_length', 'decoded_data', 'decoded_length', 'region_id')

    def __init__(self, offset, encoded_length, decoded_data, decoded_length, region_id):
        self.offset = offset
        self.encoded_length = encoded_length
        self.decoded_data = decoded_data  # owned bytearray
        self.decoded_length = decoded_length
        self.region_id = region_id

    @property
    def end(self):
        return self.offset + self.decoded_length

    def contains(self, offset):
        return self.offset <= offset < self.end

    def __repr__(self):
        return (
            f"EncodedRegion({self.region_id!r}, offset={self.offset}, "
            f"encoded={self.encoded_length}, decoded={self.decoded_length})"
        )


class Buffer(GltfObject):
    """A buffer of binary geometry, animation or skin data.

    Attributes:
        byte_length: logically addressable size, including the net size change
            of every marked encoded region
        capacity: allocated arena size (>= raw_length)
        type: "arraybuffer" or "text"
        current_region: the active EncodedRegion, or None
    """

    TYPE_ARRAYBUFFER = "arraybuffer"
    TYPE_TEXT = "text"

    def __init__(self):
        super().__init__()
        self.byte_length = 0
        self.capacity = 0
        self.type = self.TYPE_ARRAYBUFFER
        self.current_region = None
        self._data = None
        self._is_special = False
        self._raw_length = 0
        self._regions = []
        self._region_delta = 0

    # ---- Manifest I/O ----

    def read(self, obj, document):
        """Populate from a manifest ``buffers`` entry.

        The payload comes from an inline data URI or a file relative to the
        manifest directory.

        Raises:
            InvalidDocumentError: stated byteLength disagrees with the payload,
                or a non-empty buffer has no uri
            GltfIOError: the referenced file cannot be opened or fully read
        """
        stated_length = member_or_default(obj, "byteLength", 0)
        self.byte_length = stated_length
        if find_string(obj, "type") == self.TYPE_TEXT:
            self.type = self.TYPE_TEXT

        uri = find_string(obj, "uri")
        if uri is None:
            if stated_length > 0:
                raise InvalidDocumentError(
                    f"Buffer \"{self.id}\" with non-zero length is missing the \"uri\" attribute"
                )
            return

        data_uri = parse_data_uri(uri)
        if data_uri is not None:
            data = decode_data_uri(data_uri)
            if data_uri.base64:
                if stated_length > 0 and len(data) != stated_length:
                    raise InvalidDocumentError(
                        f"Buffer \"{self.id}\", expected {stated_length} bytes, "
                        f"but found {len(data)}"
                    )
            elif len(data) != stated_length:
                raise InvalidDocumentError(
                    f"Buffer \"{self.id}\", expected {stated_length} bytes, "
                    f"but found {len(data)}"
                )
            self._set_data(bytearray(data))
            return

        # Local file
        if self.byte_length > 0:
            with document.open_file(uri, "rb") as stream:
                ok = self.load_from_stream(stream, self.byte_length)
            if not ok:
                raise GltfIOError(f"Error while reading referenced file \"{uri}\"")

    def to_json(self, writer=None):
        if self._is_special and writer is not None and writer.binary:
            return {
                "byteLength": self.raw_length,
                "type": self.TYPE_ARRAYBUFFER,
                "uri": BODY_BUFFER_URI,
            }
        return {
            "byteLength": self.raw_length,
            "type": self.type,
            "uri": self.get_uri(),
        }

    def load_from_stream(self, stream, length=0, base_offset=0):
        """Read the buffer contents from an open binary stream.

        Args:
            stream: file-like object opened for binary reading
            length: bytes to read; 0 means the whole stream
            base_offset: absolute position to seek to first (0 = no seek)

        Returns:
            True on success, False on a short read
        """
        if not length:
            length = _stream_size(stream)

        if base_offset:
            stream.seek(base_offset, os.SEEK_SET)

        data = stream.read(length)
        if len(data) != length:
            _log.warning("Short read for buffer %r: wanted %d bytes, got %d",
                         self.id, length, len(data))
            return False

        self._set_data(bytearray(data))
        return True

    def _set_data(self, data):
        self._data = data
        self.capacity = len(data)
        self.byte_length = len(data)
        self._raw_length = len(data)
        self._regions = []
        self._region_delta = 0
        self.current_region = None

    # ---- Raw data access ----

    @property
    def raw_length(self):
        """Number of live bytes in the arena (ignores decoded regions)."""
        return self._raw_length

    def has_data(self):
        return self._data is not None

    def get_pointer(self, offset=0):
        """Resolve a byte offset to a view of the bytes it addresses.

        If the active encoded region's decoded span contains offset, the view
        points into the region's decoded bytes; otherwise into the raw arena.
        Views are invalidated by any later grow/append/replace.

        Returns:
            memoryview starting at offset, or None if the buffer has no data
        """
        if self._data is None:
            return None

        region = self.current_region
        if region is not None and region.contains(offset):
            return memoryview(region.decoded_data)[offset - region.offset:]

        return memoryview(self._data)[offset:self.raw_length]

    def raw_view(self, offset=0):
        """Writable view of the raw arena from offset (no region redirection)."""
        if self._data is None:
            return None
        return memoryview(self._data)[offset:self.raw_length]

    def raw_bytes(self):
        if self._data is None:
            return b""
        return bytes(self._data[:self.raw_length])

    # ---- Mutation ----

    def grow(self, amount):
        """Extend byte_length by amount, reallocating with 1.5x growth.

        Live arena bytes are preserved. New bytes are zero.
        """
        if amount <= 0:
            return
        if self.capacity >= self.byte_length + amount:
            self.byte_length += amount
            self._raw_length = max(self._raw_length, self.byte_length)
            return

        self.capacity = max(self.capacity + (self.capacity >> 1), self.byte_length + amount)

        data = bytearray(self.capacity)
        if self._data is not None:
            live = self.raw_length
            data[:live] = self._data[:live]
        self._data = data
        self.byte_length += amount
        self._raw_length = max(self._raw_length, self.byte_length)

    def append_data(self, data):
        """Append bytes to the end of the buffer.

        Args:
            data: bytes-like object

        Returns:
            byte offset at which the data now starts
        """
        raw = memoryview(data).cast("B")
        offset = self.byte_length
        self.grow(len(raw))
        if len(raw):
            self._data[offset:offset + len(raw)] = raw
        return offset

    def replace_data(self, offset, old_count, new_data):
        """Replace old_count bytes at offset with new_data.

        Works on the raw arena, not on encoded regions. All bytes before and
        after the replaced range are preserved.

        Returns:
            True if replaced, False if a count is zero, new_data is empty or
            the range is out of bounds
        """
        if new_data is None or old_count == 0:
            return False
        new_raw = memoryview(new_data).cast("B")
        new_count = len(new_raw)
        live = self.raw_length
        if new_count == 0 or self._data is None or offset + old_count > live:
            return False

        size = live + new_count - old_count
        data = bytearray(size)
        data[:offset] = self._data[:offset]
        data[offset:offset + new_count] = new_raw
        data[offset + new_count:] = self._data[offset + old_count:live]

        self._data = data
        self.capacity = size
        self._raw_length = size
        self.byte_length = size + self._region_delta
        return True

    # ---- Encoded regions ----

    def encoded_region_mark(self, offset, encoded_length, decoded_data,
                            decoded_length=None, region_id=""):
        """Mark [offset, offset + encoded_length) as replaced by decoded bytes.

        byte_length changes by decoded_length - encoded_length immediately.

        Args:
            offset: start of the encoded range in the buffer
            encoded_length: size of the encoded range
            decoded_data: decoded bytes (copied, the region owns its copy)
            decoded_length: size of the decoded data (default: len(decoded_data))
            region_id: id used to select the region later

        Raises:
            InvalidDocumentError: decoded_data is None or the range is out of bounds
        """
        if decoded_data is None:
            raise InvalidDocumentError(
                "Marking an encoded region requires the decoded data"
            )
        if offset > self.byte_length:
            raise InvalidDocumentError(
                f"Incorrect offset value ({offset}) for marking encoded region"
            )
        if offset + encoded_length > self.byte_length:
            raise InvalidDocumentError(
                f"Encoded region with offset/length ({offset}/{encoded_length}) is out of range"
            )

        decoded = bytearray(memoryview(decoded_data).cast("B"))
        if decoded_length is None:
            decoded_length = len(decoded)

        self._regions.append(
            EncodedRegion(offset, encoded_length, decoded, decoded_length, region_id)
        )
        delta = decoded_length - encoded_length
        self.byte_length += delta
        self._region_delta += delta

    def encoded_region_set_current(self, region_id):
        """Make the region with region_id the active one.

        Raises:
            RegionNotFoundError: no region with that id was marked
        """
        if self.current_region is not None and self.current_region.region_id == region_id:
            return

        for region in self._regions:
            if region.region_id == region_id:
                self.current_region = region
                return

        raise RegionNotFoundError(f"Encoded region with id \"{region_id}\" not found")

    def encoded_region_clear_current(self):
        self.current_region = None

    @property
    def encoded_regions(self):
        return list(self._regions)

    # ---- Misc ----

    def mark_as_special(self):
        self._is_special = True

    def is_special(self):
        return self._is_special

    def get_uri(self):
        return f"{self.id}.bin"

    def __repr__(self):
        return (
            f"Buffer({self.id!r}, byteLength={self.byte_length}, "
            f"capacity={self.capacity}, regions={len(self._regions)})"
        )


def _stream_size(stream):
    pos = stream.tell()
    size = stream.seek(0, os.SEEK_END)
    stream.seek(pos, os.SEEK_SET)
    return size


class BufferView(GltfObject):
    """A window (offset, length, target) into one Buffer."""

    def __init__(self):
        super().__init__()
        self.buffer = None
        self.byte_offset = 0
        self.byte_length = 0
        self.target = TARGET_NONE

    def read(self, obj, document):
        buffer_id = find_string(obj, "buffer")
        if buffer_id:
            self.buffer = document.buffers.get(buffer_id)

        self.byte_offset = member_or_default(obj, "byteOffset", 0)
        self.byte_length = member_or_default(obj, "byteLength", 0)
        self.target = member_or_default(obj, "target", TARGET_NONE)

    def to_json(self, writer=None):
        out = {}
        if self.buffer is not None:
            out["buffer"] = self.buffer.id
        out["byteOffset"] = self.byte_offset
        out["byteLength"] = self.byte_length
        if self.target != TARGET_NONE:
            out["target"] = self.target
        return out

    def __repr__(self):
        buffer_id = self.buffer.id if self.buffer is not None else None
        return (
            f"BufferView({self.id!r}, buffer={buffer_id!r}, "
            f"offset={self.byte_offset}, length={self.byte_length})"
        )
