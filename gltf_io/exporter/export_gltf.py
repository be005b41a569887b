"""Host scene -> glTF export.

Pipeline:
    1. Create the data buffer (the body buffer for binary output)
    2. Export materials, textures and images
    3. Export meshes: attributes and indices appended to the buffer
    4. Export the node hierarchy and the default scene
    5. Export one shared skin for every mesh with bones
    6. Write .gltf + .bin side files, or a single .glb
"""

import logging
import os

import numpy as np

from ..gltf_format.gltf_constants import (
    ATTRIB_SCALAR, ATTRIB_VEC2, ATTRIB_VEC3, ATTRIB_VEC4,
    COMPONENT_FLOAT, COMPONENT_UNSIGNED_INT, COMPONENT_UNSIGNED_SHORT,
    MODE_LINES, MODE_POINTS, MODE_TRIANGLES,
    TARGET_ARRAY_BUFFER, TARGET_ELEMENT_ARRAY_BUFFER,
)
from ..gltf_format.gltf_document import AssetDocument
from ..gltf_format.gltf_objects import Primitive, TexProperty
from ..gltf_format.gltf_writer import AssetWriter
from ..settings import ExportSettings
from .export_data import export_data
from .host_scene import matrix_to_list
from .skin_export import export_skin, finish_skin, find_mesh_node

_log = logging.getLogger("gltf_export")

_FACE_MODES = {1: MODE_POINTS, 2: MODE_LINES, 3: MODE_TRIANGLES}

# Largest index an UNSIGNED_SHORT index accessor can hold
_MAX_SHORT_INDEX = 0xFFFF


class GltfExporter:
    """Builds an AssetDocument from a HostScene and writes it out.

    Usage:
        exporter = GltfExporter(host_scene, ExportSettings(binary=True))
        document = exporter.export("out/model.glb")
    """

    def __init__(self, host_scene, settings=None):
        self.host_scene = host_scene
        self.settings = settings or ExportSettings()
        self.document = None
        self.buffer = None
        self._materials = []      # host material index -> Material
        self._meshes = []         # host mesh index -> Mesh
        self._nodes_by_name = {}  # host node name -> Node (first wins)

    def export(self, filepath):
        """Build the document and write it to filepath. Returns the document."""
        document = self.build(filepath)
        writer = AssetWriter(document, self.settings)
        if self.settings.binary:
            writer.write_binary_file(filepath)
        else:
            writer.write_file(filepath)
        return document

    def build(self, filepath=""):
        """Convert the host scene into a new AssetDocument."""
        doc = AssetDocument()
        self.document = doc
        doc.asset.version = "1.0"
        doc.asset.generator = self.settings.generator
        doc.asset.copyright = self.settings.copyright

        # ---- 1. Data buffer ----
        if self.settings.binary:
            doc.set_as_binary()
            self.buffer = doc.get_body_buffer()
        else:
            prefix = self.settings.buffer_id
            if not prefix:
                prefix = os.path.splitext(os.path.basename(filepath))[0] or "buffer"
            self.buffer = doc.buffers.create(doc.find_unique_id("", prefix))

        # ---- 2-5 ----
        self._export_materials()
        self._export_meshes()
        root = self._export_node(self.host_scene.root, None)

        scene = doc.scenes.create(doc.find_unique_id("defaultScene", "scene"))
        scene.nodes.append(root)
        doc.scene = scene

        if self.settings.export_skins and self.host_scene.has_bones():
            self._export_skin(root)

        _log.info("Built document: %d meshes, %d nodes, %d accessors, %d bytes of data",
                  len(doc.meshes), len(doc.nodes), len(doc.accessors), self.buffer.byte_length)
        return doc

    # ---- Materials ----

    def _export_materials(self):
        doc = self.document
        for i, host_mat in enumerate(self.host_scene.materials):
            mat = doc.materials.create(doc.find_unique_id(host_mat.name, "material"))
            mat.name = host_mat.name or None
            mat.ambient = TexProperty(host_mat.ambient)
            mat.diffuse = TexProperty(host_mat.diffuse)
            mat.specular = TexProperty(host_mat.specular)
            mat.emission = TexProperty(host_mat.emission)
            mat.shininess = float(host_mat.shininess)
            if host_mat.transparency < 1.0:
                mat.transparent = True
                mat.transparency = float(host_mat.transparency)

            if host_mat.diffuse_texture:
                mat.diffuse.texture = self._export_texture(host_mat.diffuse_texture, mat.id)
            self._materials.append(mat)

    def _export_texture(self, path, base_id):
        doc = self.document
        image = doc.images.create(doc.find_unique_id(base_id, "image"))
        image.uri = path.replace("\\", "/")

        if not len(doc.samplers):
            doc.samplers.create(doc.find_unique_id("defaultSampler", "sampler"))

        texture = doc.textures.create(doc.find_unique_id(base_id, "texture"))
        texture.source = image
        texture.sampler = doc.samplers.get(0)
        return texture

    # ---- Meshes ----

    def _export_meshes(self):
        doc = self.document
        settings = self.settings
        buf = self.buffer

        for host_mesh in self.host_scene.meshes:
            mesh = doc.meshes.create(doc.find_unique_id(host_mesh.name, "mesh"))
            mesh.name = host_mesh.name or None
            prim = Primitive()
            mesh.primitives.append(prim)
            attrs = prim.attributes

            acc = export_data(doc, mesh.id, buf, host_mesh.positions, ATTRIB_VEC3,
                              COMPONENT_FLOAT, TARGET_ARRAY_BUFFER)
            if acc is not None:
                attrs.position.append(acc)

            if settings.export_normals and host_mesh.normals is not None:
                acc = export_data(doc, mesh.id, buf, host_mesh.normals, ATTRIB_VEC3,
                                  COMPONENT_FLOAT, TARGET_ARRAY_BUFFER)
                if acc is not None:
                    attrs.normal.append(acc)

            if settings.export_texcoords:
                for uvs in host_mesh.texcoords:
                    acc = export_data(doc, mesh.id, buf, uvs, ATTRIB_VEC2,
                                      COMPONENT_FLOAT, TARGET_ARRAY_BUFFER)
                    if acc is not None:
                        attrs.texcoord.append(acc)

            if settings.export_colors:
                for colors in host_mesh.colors:
                    acc = export_data(doc, mesh.id, buf, colors, ATTRIB_VEC4,
                                      COMPONENT_FLOAT, TARGET_ARRAY_BUFFER)
                    if acc is not None:
                        attrs.color.append(acc)

            faces = np.asarray(host_mesh.faces)
            if faces.size:
                width = faces.shape[1] if faces.ndim == 2 else 3
                prim.mode = _FACE_MODES.get(width, MODE_TRIANGLES)
                indices = faces.reshape(-1)
                component = COMPONENT_UNSIGNED_SHORT
                if int(indices.max()) > _MAX_SHORT_INDEX:
                    component = COMPONENT_UNSIGNED_INT
                prim.indices = export_data(doc, mesh.id, buf, indices, ATTRIB_SCALAR,
                                           component, TARGET_ELEMENT_ARRAY_BUFFER)

            if 0 <= host_mesh.material_index < len(self._materials):
                prim.material = self._materials[host_mesh.material_index]

            self._meshes.append(mesh)

    # ---- Nodes ----

    def _export_node(self, host_node, parent):
        doc = self.document
        node = doc.nodes.create(doc.find_unique_id(host_node.name, "node"))
        node.name = host_node.name or None
        node.matrix = matrix_to_list(host_node.transform)
        node.parent = parent
        self._nodes_by_name.setdefault(host_node.name, node)

        for mesh_index in host_node.meshes:
            if 0 <= mesh_index < len(self._meshes):
                node.meshes.append(self._meshes[mesh_index])
            else:
                _log.warning("Node %r references missing mesh %d", host_node.name, mesh_index)

        for child in host_node.children:
            node.children.append(self._export_node(child, node))
        return node

    # ---- Skin ----

    def _export_skin(self, root):
        doc = self.document
        skin_id = doc.find_unique_id("skin", "skin")
        skin = doc.skins.create(skin_id)
        skin.name = skin_id

        inverse_bind_matrices = []
        dropped = 0
        for host_mesh, mesh in zip(self.host_scene.meshes, self._meshes):
            if host_mesh.has_bones():
                dropped += export_skin(doc, host_mesh, mesh, self.buffer, skin,
                                       inverse_bind_matrices, self._nodes_by_name)
        if dropped:
            _log.info("Skin %r: %d vertex influences beyond the limit were dropped",
                      skin.id, dropped)

        mesh_node = find_mesh_node(root, self._meshes[0].id) if self._meshes else None
        finish_skin(doc, skin, self.buffer, inverse_bind_matrices, mesh_node)
