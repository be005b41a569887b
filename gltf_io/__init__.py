"""Reader/writer for glTF 1.0 assets (.gltf manifest + .bin, or binary .glb).

Entry points:
    load(filepath)                    -> AssetDocument
    save(document, filepath)          write .gltf + side files, or .glb
    import_scene(filepath)            -> HostScene
    export_scene(host_scene, filepath)
"""

__version__ = "0.1.0"

from .settings import ImportSettings, ExportSettings


def _is_binary_file(document, filepath):
    from .gltf_format.gltf_constants import GLB_MAGIC
    with document.open_file(filepath, "rb", absolute=True) as f:
        return f.read(len(GLB_MAGIC)) == GLB_MAGIC


def load(filepath, is_binary=None, settings=None):
    """Load an asset. is_binary=None detects the container by its magic tag."""
    from .gltf_format.gltf_document import AssetDocument

    document = AssetDocument(settings)
    if is_binary is None:
        is_binary = _is_binary_file(document, filepath)
    document.load(filepath, is_binary)
    return document


def save(document, filepath, binary=None, settings=None):
    """Save a document. binary=None picks the container from the extension."""
    if binary is None:
        binary = filepath.lower().endswith(".glb")
    document.save(filepath, binary, settings)


def import_scene(filepath, settings=None):
    """Load an asset and convert it to the host scene model."""
    from .importer.scene_builder import build_host_scene
    return build_host_scene(load(filepath, settings=settings))


def export_scene(host_scene, filepath, settings=None):
    """Build a document from a host scene and write it to filepath."""
    from .exporter.export_gltf import GltfExporter
    return GltfExporter(host_scene, settings).export(filepath)
