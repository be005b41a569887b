"""Import and export options.

Both settings objects are plain dataclasses so callers can build them from
keyword arguments, and tests can override single fields without touching
globals. The debug flag defaults to the GLTF_IO_DEBUG environment variable.
"""

import os
from dataclasses import dataclass


def debug_enabled():
    """True when GLTF_IO_DEBUG=1 is set in the environment."""
    return os.environ.get('GLTF_IO_DEBUG', '') == '1'


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass
class ImportSettings:
    """Options for AssetDocument.load()."""

    # Only objects reachable from the root scene are read by default.
    # When set, every entry of every manifest section is materialized too.
    resolve_all_objects: bool = False

    # Log every object as it is resolved
    debug: bool = False

    def __post_init__(self):
        self.debug = self.debug or debug_enabled()


@dataclass
class ExportSettings:
    """Options for GltfExporter and AssetWriter."""

    # Write a single binary container instead of manifest + .bin side files
    binary: bool = False

    # Manifest pretty-print indentation (text output only)
    json_indent: int = 4

    # asset.generator / asset.copyright
    generator: str = "gltf_io"
    copyright: str = ""

    export_normals: bool = True
    export_texcoords: bool = True
    export_colors: bool = True
    export_skins: bool = True

    # Id of the shared data buffer for text output. Empty = derived from
    # the output file name.
    buffer_id: str = ""
