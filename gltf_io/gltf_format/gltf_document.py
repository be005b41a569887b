"""The in-memory asset: one lazy dictionary per object kind.

Usage:
    doc = AssetDocument()
    doc.load("path/to/scene.gltf")           # or load(path, is_binary=True)
    # Access parsed data:
    #   doc.scene          - root Scene (None if the asset had none)
    #   doc.meshes[...]    - via doc.meshes.get(id) / iteration
    #   doc.asset          - AssetMetadata

    doc = AssetDocument()
    buf = doc.buffers.create("data")          # export path
    ...
    doc.save("out.gltf")
"""

import json
import logging
import os

from .gltf_accessor import Accessor
from .gltf_buffer import Buffer, BufferView, _stream_size
from .gltf_constants import (
    GLB_HEADER_SIZE, MAX_SCENE_LENGTH, BODY_BUFFER_ID, EXT_BINARY_GLTF,
)
from .gltf_dict import IdRegistry, LazyDict
from .gltf_errors import InvalidDocumentError, ParseError, GltfIOError
from .gltf_header import GLBHeader
from .gltf_json import find_array, find_object, find_string, member_or_default
from .gltf_objects import (
    AssetMetadata, Animation, Image, Material, Mesh, Node, Sampler, Scene,
    Skin, Texture,
)
from .gltf_writer import AssetWriter
from ..settings import ImportSettings

_log = logging.getLogger("gltf_document")


def parse_manifest(data):
    """Parse manifest bytes into a dict.

    Raises:
        ParseError: malformed UTF-8 or JSON; offset is in bytes
        InvalidDocumentError: the root value is not an object
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(exc.reason, exc.start) from exc

    try:
        manifest = json.loads(text)
    except json.JSONDecodeError as exc:
        offset = len(text[:exc.pos].encode("utf-8"))
        raise ParseError(exc.msg, offset) from exc

    if not isinstance(manifest, dict):
        raise InvalidDocumentError("The root of the manifest must be a JSON object")
    return manifest


class AssetDocument:
    """Root of the object graph; owns every dictionary and buffer."""

    def __init__(self, settings=None):
        self.settings = settings or ImportSettings()
        self.ids = IdRegistry()
        self.asset = AssetMetadata()
        self.extensions_used = []
        self.scene = None
        self.base_dir = ""

        self._dicts = []
        self._body_buffer = None

        self.accessors = LazyDict(self, Accessor, "accessors")
        self.animations = LazyDict(self, Animation, "animations")
        self.buffers = LazyDict(self, Buffer, "buffers")
        self.buffer_views = LazyDict(self, BufferView, "bufferViews")
        self.images = LazyDict(self, Image, "images")
        self.materials = LazyDict(self, Material, "materials")
        self.meshes = LazyDict(self, Mesh, "meshes")
        self.nodes = LazyDict(self, Node, "nodes")
        self.samplers = LazyDict(self, Sampler, "samplers")
        self.scenes = LazyDict(self, Scene, "scenes")
        self.skins = LazyDict(self, Skin, "skins")
        self.textures = LazyDict(self, Texture, "textures")

    def register_dict(self, lazy_dict):
        self._dicts.append(lazy_dict)

    @property
    def dicts(self):
        return list(self._dicts)

    # ---- Loading ----

    def load(self, path, is_binary=False):
        """Read a manifest (or binary container) and resolve the root scene.

        Args:
            path: file to read; buffer uris resolve relative to its directory
            is_binary: the file is a binary container, not plain JSON

        Raises:
            GltfIOError: the file (or a referenced buffer file) can't be read
            InvalidDocumentError: bad container header, manifest size out of
                range, or structural errors in the objects
            ParseError: the manifest is not valid JSON
        """
        self.base_dir = os.path.dirname(os.path.abspath(path))

        with self.open_file(path, "rb", absolute=True) as stream:
            # 1. Container header
            header = None
            if is_binary:
                header = GLBHeader.read(stream.read(GLB_HEADER_SIZE))
                _log.debug("%r", header)
                self.set_as_binary()
                scene_length = header.scene_length
            else:
                scene_length = _stream_size(stream)

            if scene_length < 2:
                raise InvalidDocumentError(f"Manifest too small: {scene_length} bytes")
            if scene_length >= MAX_SCENE_LENGTH:
                raise InvalidDocumentError(f"Manifest too large: {scene_length} bytes")

            # 2. Manifest
            data = stream.read(scene_length)
            if len(data) != scene_length:
                raise GltfIOError(
                    f"Truncated manifest in \"{path}\": {len(data)} of {scene_length} bytes"
                )
            manifest = parse_manifest(data)

            # 3. Metadata
            self.asset.read(manifest)
            if not self.asset.is_supported():
                _log.warning("Unsupported asset version \"%s\" in \"%s\", nothing loaded",
                             self.asset.version, path)
                self._clear()
                return

            # 4. Binary body
            if header is not None and header.body_length:
                # The body chunk is padded; the manifest entry has the real size
                body_length = header.body_length
                body_obj = find_object(find_object(manifest, "buffers") or {}, BODY_BUFFER_ID)
                if body_obj is not None:
                    body_length = min(body_length,
                                      member_or_default(body_obj, "byteLength", body_length))
                if body_length > 0 and not self._body_buffer.load_from_stream(
                        stream, body_length, header.body_offset):
                    raise GltfIOError(f"Truncated binary body in \"{path}\"")

        for ext in find_array(manifest, "extensionsUsed") or ():
            if isinstance(ext, str) and ext not in self.extensions_used:
                self.extensions_used.append(ext)

        # 5. Object graph
        for d in self._dicts:
            d.attach_to_document(manifest)
        try:
            scene_id = find_string(manifest, "scene")
            if scene_id is None:
                scene_ids = self.scenes.section_ids()
                scene_id = scene_ids[0] if scene_ids else None
            if scene_id is not None:
                self.scene = self.scenes.get(scene_id)

            if self.settings.resolve_all_objects:
                for d in self._dicts:
                    d.resolve_all()
        finally:
            for d in self._dicts:
                d.detach_from_document()

        _log.info("Loaded \"%s\": %d nodes, %d meshes, %d accessors",
                  path, len(self.nodes), len(self.meshes), len(self.accessors))

    def _clear(self):
        for d in self._dicts:
            d.clear()
        self.ids.clear()
        self._body_buffer = None
        self.scene = None
        self.extensions_used = []

    # ---- Binary body ----

    def set_as_binary(self):
        """Create the special body buffer that binary containers carry inline."""
        if self._body_buffer is None:
            self._body_buffer = self.buffers.create(BODY_BUFFER_ID)
            self._body_buffer.mark_as_special()
        if EXT_BINARY_GLTF not in self.extensions_used:
            self.extensions_used.append(EXT_BINARY_GLTF)

    def get_body_buffer(self):
        return self._body_buffer

    # ---- Services ----

    def find_unique_id(self, base, suffix):
        return self.ids.find_unique_id(base, suffix)

    def open_file(self, path, mode, absolute=False):
        """Open a file, relative paths resolving against the manifest directory.

        Raises:
            GltfIOError: the file cannot be opened
        """
        if not absolute and not os.path.isabs(path):
            path = os.path.join(self.base_dir, path)
        try:
            return open(path, mode)
        except OSError as exc:
            raise GltfIOError(f"Could not open file \"{path}\": {exc}") from exc

    def save(self, path, binary=False, settings=None):
        """Write the document as .gltf + .bin side files, or one binary file."""
        writer = AssetWriter(self, settings)
        if binary:
            writer.write_binary_file(path)
        else:
            writer.write_file(path)

    def __repr__(self):
        return (
            f"AssetDocument(version={self.asset.version!r}, nodes={len(self.nodes)}, "
            f"meshes={len(self.meshes)}, buffers={len(self.buffers)})"
        )
