"""Binary glTF container header parser and writer."""

import struct

from .gltf_constants import (
    GLB_MAGIC, GLB_VERSION, GLB_HEADER_SIZE, GLB_CONTENT_FORMAT_JSON,
    GLB_ALIGNMENT,
)
from .gltf_errors import InvalidDocumentError


def align(value, alignment=GLB_ALIGNMENT):
    """Round value up to the next multiple of alignment."""
    return (value + alignment - 1) & ~(alignment - 1)


class GLBHeader:
    """Represents the 20-byte binary container header.

    Layout (little-endian):
        magic:          char[4]  "glTF"
        version:        u32      must be 1
        length:         u32      total file length
        content_length: u32      manifest (scene) length
        content_format: u32      0 = JSON
    """

    def __init__(self):
        self.magic = GLB_MAGIC
        self.version = GLB_VERSION
        self.length = 0
        self.content_length = 0
        self.content_format = GLB_CONTENT_FORMAT_JSON

    @property
    def scene_length(self):
        return self.content_length

    @property
    def body_offset(self):
        """Offset of the binary body, aligned after the manifest."""
        return align(GLB_HEADER_SIZE + self.content_length)

    @property
    def body_length(self):
        return max(0, self.length - self.body_offset)

    @classmethod
    def read(cls, data):
        """Read and validate a header from raw data.

        Args:
            data: bytes of at least GLB_HEADER_SIZE

        Returns:
            GLBHeader instance

        Raises:
            InvalidDocumentError: if the data is short, the magic tag is wrong,
                or the version/content format is unsupported
        """
        if len(data) < GLB_HEADER_SIZE:
            raise InvalidDocumentError(
                f"Data too small for binary header: {len(data)} < {GLB_HEADER_SIZE}"
            )

        header = cls()
        (header.magic, header.version, header.length,
         header.content_length, header.content_format) = struct.unpack_from(
            "<4sIIII", data, 0
        )

        if header.magic != GLB_MAGIC:
            raise InvalidDocumentError(f"Invalid binary magic tag: {header.magic!r}")
        if header.version != GLB_VERSION:
            raise InvalidDocumentError(
                f"Unsupported binary container version: {header.version}"
            )
        if header.content_format != GLB_CONTENT_FORMAT_JSON:
            raise InvalidDocumentError(
                f"Unsupported manifest format: {header.content_format}"
            )

        return header

    def write(self):
        """Serialize the header to GLB_HEADER_SIZE bytes."""
        return struct.pack(
            "<4sIIII", self.magic, self.version, self.length,
            self.content_length, self.content_format,
        )

    def __repr__(self):
        return (
            f"GLBHeader(version={self.version}, length={self.length}, "
            f"sceneLength={self.content_length}, bodyOffset={self.body_offset}, "
            f"bodyLength={self.body_length})"
        )
