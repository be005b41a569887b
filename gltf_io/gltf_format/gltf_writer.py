"""Serializes an AssetDocument back to a manifest and binary data.

This is the inverse of AssetDocument.load(): every materialized object of
every dictionary is written through its to_json(), keyed by id.
"""

import json
import logging
import os

from .gltf_constants import GLB_HEADER_SIZE, EXT_BINARY_GLTF
from .gltf_errors import GltfIOError, SerializationError
from .gltf_header import GLBHeader, align
from ..settings import ExportSettings

_log = logging.getLogger("gltf_writer")


class AssetWriter:
    """Writes a document as text (.gltf + .bin files) or one binary container.

    Usage:
        writer = AssetWriter(document)
        writer.write_file("out/scene.gltf")        # + out/<buffer-id>.bin
        writer.write_binary_file("out/scene.glb")
    """

    def __init__(self, document, settings=None):
        self.document = document
        self.settings = settings or ExportSettings()
        self.binary = False

    def build_manifest(self):
        """Build the manifest tree for the current output mode."""
        doc = self.document
        manifest = {"asset": doc.asset.to_json()}

        extensions_used = list(doc.extensions_used)
        if self.binary and EXT_BINARY_GLTF not in extensions_used:
            extensions_used.append(EXT_BINARY_GLTF)
        elif not self.binary and EXT_BINARY_GLTF in extensions_used:
            extensions_used.remove(EXT_BINARY_GLTF)
        if extensions_used:
            manifest["extensionsUsed"] = extensions_used

        for lazy_dict in doc.dicts:
            if not len(lazy_dict):
                continue
            section = {}
            for obj in lazy_dict:
                out = obj.to_json(self)
                if obj.name:
                    out["name"] = obj.name
                section[obj.id] = out

            container = manifest
            if lazy_dict.ext_id:
                container = manifest.setdefault("extensions", {}).setdefault(lazy_dict.ext_id, {})
            container[lazy_dict.dict_id] = section

        if doc.scene is not None:
            manifest["scene"] = doc.scene.id

        return manifest

    def _dump(self, manifest, indent=None):
        try:
            if indent is None:
                return json.dumps(manifest, separators=(",", ":"), allow_nan=False)
            return json.dumps(manifest, indent=indent, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Could not encode manifest: {exc}") from exc

    @staticmethod
    def _write_bytes(path, data):
        try:
            with open(path, "wb") as f:
                f.write(data)
        except OSError as exc:
            raise GltfIOError(f"Could not write file \"{path}\": {exc}") from exc

    def _write_side_files(self, directory, skip_special):
        for buffer in self.document.buffers:
            if skip_special and buffer.is_special():
                continue
            path = os.path.join(directory, buffer.get_uri())
            self._write_bytes(path, buffer.raw_bytes())
            _log.debug("Wrote buffer \"%s\" (%d bytes) to %s", buffer.id, buffer.raw_length, path)

    def write_file(self, path):
        """Write a pretty-printed manifest plus one <buffer-id>.bin per buffer.

        Raises:
            GltfIOError: an output file cannot be written
            SerializationError: the manifest cannot be encoded
        """
        self.binary = False
        text = self._dump(self.build_manifest(), self.settings.json_indent)
        self._write_bytes(path, text.encode("utf-8"))
        self._write_side_files(os.path.dirname(os.path.abspath(path)), skip_special=False)
        _log.info("Wrote \"%s\" (%d buffers)", path, len(self.document.buffers))

    def write_binary_file(self, path):
        """Write a binary container with the body buffer inline.

        Layout: header, manifest padded with spaces to 4 bytes, then the
        body buffer padded with zeros to 4 bytes. Buffers other than the
        body still go to side files.

        Raises:
            GltfIOError: an output file cannot be written
            SerializationError: the manifest cannot be encoded
        """
        self.binary = True
        doc = self.document
        if doc.get_body_buffer() is None:
            doc.set_as_binary()

        scene = self._dump(self.build_manifest()).encode("utf-8")
        scene += b" " * (align(GLB_HEADER_SIZE + len(scene)) - GLB_HEADER_SIZE - len(scene))

        body = doc.get_body_buffer().raw_bytes()
        body += b"\x00" * (align(len(body)) - len(body))

        header = GLBHeader()
        header.content_length = len(scene)
        header.length = GLB_HEADER_SIZE + len(scene) + len(body)

        self._write_bytes(path, header.write() + scene + body)
        self._write_side_files(os.path.dirname(os.path.abspath(path)), skip_special=True)
        _log.info("Wrote \"%s\": %r", path, header)
