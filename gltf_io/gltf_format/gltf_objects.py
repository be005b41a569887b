"""Python representations of the glTF top-level object kinds.

Every kind derives from GltfObject and implements the same pair:

    read(obj, document)  populate from a manifest entry; references to other
                         objects are resolved through document dictionaries,
                         which materializes them on demand
    to_json(writer)      inverse of read; references become ids and absent
                         optional members are omitted

Buffer, BufferView and Accessor live in gltf_buffer / gltf_accessor.
"""

import logging

from .gltf_constants import (
    MODE_TRIANGLES, SEMANTICS, EXT_BINARY_GLTF,
    SEMANTIC_POSITION, SEMANTIC_NORMAL, SEMANTIC_TEXCOORD, SEMANTIC_COLOR,
    SEMANTIC_JOINT, SEMANTIC_JOINTMATRIX, SEMANTIC_WEIGHT,
)
from .gltf_errors import MissingObjectError
from .gltf_json import (
    find_object, find_array, find_string, find_number, member_or_default,
    read_number_list, parse_data_uri, decode_data_uri, encode_data_uri,
)

_log = logging.getLogger("gltf_objects")


class GltfObject:
    """Base for every dictionary-held object: a document-unique id and a name."""

    def __init__(self):
        self.id = ""
        self.name = None

    def read(self, obj, document):
        pass

    def to_json(self, writer=None):
        return {}

    def is_special(self):
        return False


# ---------------------------------------------------------------------------
# Asset metadata
# ---------------------------------------------------------------------------

class AssetMetadata:
    """The top-level ``asset`` object."""

    def __init__(self):
        self.version = ""
        self.generator = ""
        self.copyright = ""
        self.premultiplied_alpha = False
        self.profile_api = "WebGL"
        self.profile_version = "1.0.2"

    def read(self, manifest):
        obj = find_object(manifest, "asset")
        if obj is None:
            return

        self.copyright = member_or_default(obj, "copyright", "")
        self.generator = member_or_default(obj, "generator", "")
        self.premultiplied_alpha = member_or_default(obj, "premultipliedAlpha", False)

        version = obj.get("version")
        if isinstance(version, str):
            self.version = version
        elif find_number(obj, "version") is not None:
            self.version = f"{float(version):.1f}"

        profile = find_object(obj, "profile")
        if profile is not None:
            self.profile_api = member_or_default(profile, "api", self.profile_api)
            self.profile_version = member_or_default(profile, "version", self.profile_version)

    def is_supported(self):
        """Only 1.x assets can be read."""
        return self.version[:1] == "1"

    def to_json(self):
        out = {"version": self.version or "1.0"}
        if self.generator:
            out["generator"] = self.generator
        if self.copyright:
            out["copyright"] = self.copyright
        if self.premultiplied_alpha:
            out["premultipliedAlpha"] = True
        out["profile"] = {"api": self.profile_api, "version": self.profile_version}
        return out


# ---------------------------------------------------------------------------
# Scene graph
# ---------------------------------------------------------------------------

def _read_refs(obj, name, dictionary):
    refs = []
    for ref_id in find_array(obj, name) or ():
        if isinstance(ref_id, str):
            refs.append(dictionary.get(ref_id))
    return refs


class Node(GltfObject):
    """A scene graph node. ``parent`` is set while reading ``children``."""

    def __init__(self):
        super().__init__()
        self.children = []
        self.meshes = []
        self.skeletons = []
        self.skin = None
        self.joint_name = ""
        self.matrix = None       # 16 floats, column-major
        self.translation = None  # 3 floats
        self.rotation = None     # 4 floats (x, y, z, w)
        self.scale = None        # 3 floats
        self.parent = None

    def read(self, obj, document):
        # Set first so skins reached through the children can find this joint
        self.joint_name = member_or_default(obj, "jointName", "")

        self.children = _read_refs(obj, "children", document.nodes)
        for child in self.children:
            child.parent = self

        self.meshes = _read_refs(obj, "meshes", document.meshes)
        # A skeleton root may be this node or one of its ancestors
        self.skeletons = []
        for node_id in find_array(obj, "skeletons") or ():
            if isinstance(node_id, str):
                pending = document.nodes.get_pending(node_id)
                self.skeletons.append(pending if pending is not None else document.nodes.get(node_id))

        skin_id = find_string(obj, "skin")
        if skin_id:
            self.skin = document.skins.get(skin_id)

        self.matrix = read_number_list(obj, "matrix", 16)
        self.translation = read_number_list(obj, "translation", 3)
        self.rotation = read_number_list(obj, "rotation", 4)
        self.scale = read_number_list(obj, "scale", 3)

    def to_json(self, writer=None):
        out = {}
        if self.matrix is not None:
            out["matrix"] = list(self.matrix)
        if self.translation is not None:
            out["translation"] = list(self.translation)
        if self.scale is not None:
            out["scale"] = list(self.scale)
        if self.rotation is not None:
            out["rotation"] = list(self.rotation)
        if self.children:
            out["children"] = [n.id for n in self.children]
        if self.meshes:
            out["meshes"] = [m.id for m in self.meshes]
        if self.skeletons:
            out["skeletons"] = [n.id for n in self.skeletons]
        if self.skin is not None:
            out["skin"] = self.skin.id
        if self.joint_name:
            out["jointName"] = self.joint_name
        return out

    def __repr__(self):
        return f"Node({self.id!r}, children={len(self.children)}, meshes={len(self.meshes)})"


class Scene(GltfObject):
    def __init__(self):
        super().__init__()
        self.nodes = []

    def read(self, obj, document):
        self.nodes = _read_refs(obj, "nodes", document.nodes)

    def to_json(self, writer=None):
        out = {}
        if self.nodes:
            out["nodes"] = [n.id for n in self.nodes]
        return out


# ---------------------------------------------------------------------------
# Meshes
# ---------------------------------------------------------------------------

def match_semantic(key):
    """Split an attribute key into (semantic, set index).

    "TEXCOORD_1" -> ("TEXCOORD", 1), "NORMAL" -> ("NORMAL", 0). Returns None
    for keys that are not a known semantic with an optional numeric suffix.
    """
    for semantic in SEMANTICS:
        if not key.startswith(semantic):
            continue
        rest = key[len(semantic):]
        if not rest:
            return semantic, 0
        if rest[0] == "_" and rest[1:].isdigit():
            return semantic, int(rest[1:])
        return None
    return None


class Attributes:
    """Per-semantic accessor lists. Unset sets are None."""

    _FIELDS = {
        SEMANTIC_POSITION: "position",
        SEMANTIC_NORMAL: "normal",
        SEMANTIC_TEXCOORD: "texcoord",
        SEMANTIC_COLOR: "color",
        SEMANTIC_JOINT: "joint",
        SEMANTIC_JOINTMATRIX: "jointmatrix",
        SEMANTIC_WEIGHT: "weight",
    }

    # Written as SEM_N even when only one set exists
    _ALWAYS_NUMBERED = {SEMANTIC_TEXCOORD}

    def __init__(self):
        self.position = []
        self.normal = []
        self.texcoord = []
        self.color = []
        self.joint = []
        self.jointmatrix = []
        self.weight = []

    def get(self, semantic):
        return getattr(self, self._FIELDS[semantic])

    def set(self, semantic, index, accessor):
        slots = self.get(semantic)
        if len(slots) <= index:
            slots.extend([None] * (index + 1 - len(slots)))
        slots[index] = accessor

    def to_json(self):
        out = {}
        for semantic in self._FIELDS:
            slots = self.get(semantic)
            if not slots:
                continue
            if len(slots) == 1 and semantic not in self._ALWAYS_NUMBERED:
                if slots[0] is not None:
                    out[semantic] = slots[0].id
                continue
            for i, accessor in enumerate(slots):
                if accessor is not None:
                    out[f"{semantic}_{i}"] = accessor.id
        return out


class Primitive:
    def __init__(self):
        self.mode = MODE_TRIANGLES
        self.attributes = Attributes()
        self.indices = None
        self.material = None

    def to_json(self):
        out = {"mode": self.mode}
        if self.material is not None:
            out["material"] = self.material.id
        if self.indices is not None:
            out["indices"] = self.indices.id
        out["attributes"] = self.attributes.to_json()
        return out


class Mesh(GltfObject):
    """A set of primitives to be rendered."""

    def __init__(self):
        super().__init__()
        self.primitives = []

    def read(self, obj, document):
        """Read primitives and resolve their accessors and materials.

        Attribute keys that are not a known semantic, and attribute values
        that are not strings, are skipped.
        """
        for prim_obj in find_array(obj, "primitives") or ():
            if not isinstance(prim_obj, dict):
                continue
            prim = Primitive()
            prim.mode = member_or_default(prim_obj, "mode", MODE_TRIANGLES)

            attrs = find_object(prim_obj, "attributes")
            if attrs is not None:
                for key, value in attrs.items():
                    if not isinstance(value, str):
                        continue
                    match = match_semantic(key)
                    if match is None:
                        _log.debug("Mesh %r: skipping unknown attribute %r", self.id, key)
                        continue
                    semantic, index = match
                    prim.attributes.set(semantic, index, document.accessors.get(value))

            indices_id = find_string(prim_obj, "indices")
            if indices_id:
                prim.indices = document.accessors.get(indices_id)

            material_id = find_string(prim_obj, "material")
            if material_id:
                prim.material = document.materials.get(material_id)

            self.primitives.append(prim)

    def to_json(self, writer=None):
        return {"primitives": [p.to_json() for p in self.primitives]}

    def __repr__(self):
        return f"Mesh({self.id!r}, primitives={len(self.primitives)})"


# ---------------------------------------------------------------------------
# Skins
# ---------------------------------------------------------------------------

class Skin(GltfObject):
    """Joint list plus inverse-bind matrices for skinned meshes.

    Attributes:
        bind_shape_matrix: 16 floats (column-major) or None
        inverse_bind_matrices: MAT4 float Accessor, one matrix per joint
        joint_names: list of Node; position is the joint index used by the
            vertex JOINT accessors
    """

    def __init__(self):
        super().__init__()
        self.bind_shape_matrix = None
        self.inverse_bind_matrices = None
        self.joint_names = []

    def read(self, obj, document):
        self.bind_shape_matrix = read_number_list(obj, "bindShapeMatrix", 16)

        ibm_id = find_string(obj, "inverseBindMatrices")
        if ibm_id:
            self.inverse_bind_matrices = document.accessors.get(ibm_id)

        for joint_name in find_array(obj, "jointNames") or ():
            if isinstance(joint_name, str):
                self.joint_names.append(_resolve_joint(document, joint_name, self.id))

    def to_json(self, writer=None):
        out = {"jointNames": [n.joint_name or n.id for n in self.joint_names]}
        if self.bind_shape_matrix is not None:
            out["bindShapeMatrix"] = list(self.bind_shape_matrix)
        if self.inverse_bind_matrices is not None:
            out["inverseBindMatrices"] = self.inverse_bind_matrices.id
        return out


def _resolve_joint(document, joint_name, skin_id):
    """Find the node whose jointName is joint_name.

    Already materialized nodes are checked first, then the nodes section;
    a node whose id equals the joint name is the last resort.
    """
    nodes = document.nodes
    node = nodes.find(lambda n: n.joint_name == joint_name)
    if node is not None:
        return node

    node_id = nodes.find_section_id(
        lambda entry: isinstance(entry, dict) and entry.get("jointName") == joint_name
    )
    if node_id is None:
        if joint_name not in nodes and not nodes.has_section_id(joint_name):
            raise MissingObjectError(
                f"Skin \"{skin_id}\" references unknown joint \"{joint_name}\""
            )
        node_id = joint_name

    # A joint may be an ancestor of the skinned node and still be reading
    pending = nodes.get_pending(node_id)
    return pending if pending is not None else nodes.get(node_id)


# ---------------------------------------------------------------------------
# Materials and textures
# ---------------------------------------------------------------------------

class TexProperty:
    """A material value that is either an RGBA color or a texture."""

    def __init__(self, color=(0.0, 0.0, 0.0, 1.0), texture=None):
        self.color = list(color)
        self.texture = texture

    def to_json(self):
        if self.texture is not None:
            return self.texture.id
        return list(self.color)


class Material(GltfObject):
    _COLOR_VALUES = ("ambient", "diffuse", "specular", "emission")

    def __init__(self):
        super().__init__()
        self.technique = None
        self.ambient = TexProperty()
        self.diffuse = TexProperty()
        self.specular = TexProperty()
        self.emission = TexProperty()
        self.shininess = 0.0
        self.transparent = False
        self.transparency = 1.0

    def read(self, obj, document):
        self.technique = find_string(obj, "technique")

        values = find_object(obj, "values")
        if values is None:
            return

        for prop_name in self._COLOR_VALUES:
            prop = getattr(self, prop_name)
            texture_id = find_string(values, prop_name)
            if texture_id:
                prop.texture = document.textures.get(texture_id)
                continue
            color = read_number_list(values, prop_name, 4)
            if color is not None:
                prop.color = color

        self.shininess = member_or_default(values, "shininess", self.shininess)
        transparency = find_number(values, "transparency")
        if transparency is not None:
            self.transparent = True
            self.transparency = float(transparency)

    def to_json(self, writer=None):
        values = {name: getattr(self, name).to_json() for name in self._COLOR_VALUES}
        if self.transparent:
            values["transparency"] = self.transparency
        values["shininess"] = self.shininess

        out = {"values": values}
        if self.technique:
            out["technique"] = self.technique
        return out


class Sampler(GltfObject):
    _FIELDS = (("magFilter", "mag_filter"), ("minFilter", "min_filter"),
               ("wrapS", "wrap_s"), ("wrapT", "wrap_t"))

    def __init__(self):
        super().__init__()
        self.mag_filter = 0
        self.min_filter = 0
        self.wrap_s = 0
        self.wrap_t = 0

    def read(self, obj, document):
        for key, attr in self._FIELDS:
            setattr(self, attr, member_or_default(obj, key, 0))

    def to_json(self, writer=None):
        return {key: getattr(self, attr) for key, attr in self._FIELDS if getattr(self, attr)}


class Image(GltfObject):
    """Image data: an external uri, an inline data URI, or a buffer view."""

    def __init__(self):
        super().__init__()
        self.uri = ""
        self.mime_type = ""
        self.data = None
        self.buffer_view = None
        self.width = 0
        self.height = 0

    def read(self, obj, document):
        extensions = find_object(obj, "extensions")
        binary_ext = find_object(extensions, EXT_BINARY_GLTF) if extensions else None
        if binary_ext is not None:
            view_id = find_string(binary_ext, "bufferView")
            if view_id:
                self.buffer_view = document.buffer_views.get(view_id)
            self.mime_type = member_or_default(binary_ext, "mimeType", "")
            self.width = member_or_default(binary_ext, "width", 0)
            self.height = member_or_default(binary_ext, "height", 0)
            return

        uri = find_string(obj, "uri")
        if uri is None:
            return
        data_uri = parse_data_uri(uri)
        if data_uri is not None:
            self.data = decode_data_uri(data_uri)
            self.mime_type = data_uri.mime_type
        else:
            self.uri = uri

    def to_json(self, writer=None):
        binary = writer is not None and writer.binary
        if binary and self.buffer_view is not None:
            ext = {"bufferView": self.buffer_view.id}
            if self.mime_type:
                ext["mimeType"] = self.mime_type
            return {"extensions": {EXT_BINARY_GLTF: ext}}
        if self.data is not None:
            return {"uri": encode_data_uri(self.data, self.mime_type or "application/octet-stream")}
        return {"uri": self.uri}


class Texture(GltfObject):
    def __init__(self):
        super().__init__()
        self.source = None
        self.sampler = None

    def read(self, obj, document):
        source_id = find_string(obj, "source")
        if source_id:
            self.source = document.images.get(source_id)
        sampler_id = find_string(obj, "sampler")
        if sampler_id:
            self.sampler = document.samplers.get(sampler_id)

    def to_json(self, writer=None):
        out = {}
        if self.source is not None:
            out["source"] = self.source.id
        if self.sampler is not None:
            out["sampler"] = self.sampler.id
        return out


# ---------------------------------------------------------------------------
# Animations
# ---------------------------------------------------------------------------

class AnimChannel:
    __slots__ = ('sampler', 'target_node', 'target_path')

    def __init__(self, sampler, target_node, target_path):
        self.sampler = sampler
        self.target_node = target_node
        self.target_path = target_path


class AnimSampler:
    __slots__ = ('id', 'input', 'interpolation', 'output')

    def __init__(self, sampler_id, input_param, interpolation, output_param):
        self.id = sampler_id
        self.input = input_param
        self.interpolation = interpolation
        self.output = output_param


class Animation(GltfObject):
    """Keyframe animation.

    Attributes:
        channels: list of AnimChannel (sampler id -> node property)
        parameters: dict of parameter name -> Accessor (e.g. "TIME")
        samplers: list of AnimSampler naming input/output parameters
    """

    def __init__(self):
        super().__init__()
        self.channels = []
        self.parameters = {}
        self.samplers = []

    def read(self, obj, document):
        for channel in find_array(obj, "channels") or ():
            if not isinstance(channel, dict):
                continue
            target = find_object(channel, "target") or {}
            node_id = find_string(target, "id")
            node = document.nodes.get(node_id) if node_id else None
            self.channels.append(AnimChannel(
                member_or_default(channel, "sampler", ""),
                node,
                member_or_default(target, "path", ""),
            ))

        for param_name, accessor_id in (find_object(obj, "parameters") or {}).items():
            if isinstance(accessor_id, str):
                self.parameters[param_name] = document.accessors.get(accessor_id)

        for sampler_id, sampler in (find_object(obj, "samplers") or {}).items():
            if not isinstance(sampler, dict):
                continue
            self.samplers.append(AnimSampler(
                sampler_id,
                member_or_default(sampler, "input", ""),
                member_or_default(sampler, "interpolation", "LINEAR"),
                member_or_default(sampler, "output", ""),
            ))

    def to_json(self, writer=None):
        channels = []
        for c in self.channels:
            target = {"path": c.target_path}
            if c.target_node is not None:
                target["id"] = c.target_node.id
            channels.append({"sampler": c.sampler, "target": target})

        return {
            "channels": channels,
            "parameters": {name: acc.id for name, acc in self.parameters.items()},
            "samplers": {
                s.id: {"input": s.input, "interpolation": s.interpolation, "output": s.output}
                for s in self.samplers
            },
        }
