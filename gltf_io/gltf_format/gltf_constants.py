"""Constants for the glTF 1.0 manifest and binary container."""

# Binary container (KHR_binary_glTF)
GLB_MAGIC = b"glTF"
GLB_VERSION = 1
GLB_HEADER_SIZE = 20  # magic, version, length, contentLength, contentFormat
GLB_CONTENT_FORMAT_JSON = 0
GLB_ALIGNMENT = 4

# Manifest text may not exceed what a u32 contentLength can address
MAX_SCENE_LENGTH = 0xFFFFFFFF

BODY_BUFFER_ID = "binary_glTF"
BODY_BUFFER_URI = "data:,"
EXT_BINARY_GLTF = "KHR_binary_glTF"

# Component types (WebGL enums) -> little-endian numpy dtype strings
COMPONENT_BYTE = 5120
COMPONENT_UNSIGNED_BYTE = 5121
COMPONENT_SHORT = 5122
COMPONENT_UNSIGNED_SHORT = 5123
COMPONENT_UNSIGNED_INT = 5125
COMPONENT_FLOAT = 5126

COMPONENT_DTYPES = {
    COMPONENT_BYTE: "<i1",
    COMPONENT_UNSIGNED_BYTE: "<u1",
    COMPONENT_SHORT: "<i2",
    COMPONENT_UNSIGNED_SHORT: "<u2",
    COMPONENT_UNSIGNED_INT: "<u4",
    COMPONENT_FLOAT: "<f4",
}

COMPONENT_SIZES = {
    COMPONENT_BYTE: 1,
    COMPONENT_UNSIGNED_BYTE: 1,
    COMPONENT_SHORT: 2,
    COMPONENT_UNSIGNED_SHORT: 2,
    COMPONENT_UNSIGNED_INT: 4,
    COMPONENT_FLOAT: 4,
}

# Element shapes and their component counts
ATTRIB_SCALAR = "SCALAR"
ATTRIB_VEC2 = "VEC2"
ATTRIB_VEC3 = "VEC3"
ATTRIB_VEC4 = "VEC4"
ATTRIB_MAT2 = "MAT2"
ATTRIB_MAT3 = "MAT3"
ATTRIB_MAT4 = "MAT4"

ATTRIB_COMPONENTS = {
    ATTRIB_SCALAR: 1,
    ATTRIB_VEC2: 2,
    ATTRIB_VEC3: 3,
    ATTRIB_VEC4: 4,
    ATTRIB_MAT2: 4,
    ATTRIB_MAT3: 9,
    ATTRIB_MAT4: 16,
}

# BufferView targets
TARGET_NONE = 0
TARGET_ARRAY_BUFFER = 34962
TARGET_ELEMENT_ARRAY_BUFFER = 34963

# Primitive draw modes
MODE_POINTS = 0
MODE_LINES = 1
MODE_LINE_LOOP = 2
MODE_LINE_STRIP = 3
MODE_TRIANGLES = 4
MODE_TRIANGLE_STRIP = 5
MODE_TRIANGLE_FAN = 6

# Vertex attribute semantics. Longest prefix first so JOINTMATRIX_0 is not
# taken for a JOINT set.
SEMANTIC_POSITION = "POSITION"
SEMANTIC_NORMAL = "NORMAL"
SEMANTIC_TEXCOORD = "TEXCOORD"
SEMANTIC_COLOR = "COLOR"
SEMANTIC_JOINT = "JOINT"
SEMANTIC_JOINTMATRIX = "JOINTMATRIX"
SEMANTIC_WEIGHT = "WEIGHT"

SEMANTICS = (
    SEMANTIC_JOINTMATRIX,
    SEMANTIC_POSITION,
    SEMANTIC_TEXCOORD,
    SEMANTIC_NORMAL,
    SEMANTIC_WEIGHT,
    SEMANTIC_COLOR,
    SEMANTIC_JOINT,
)

# Vertex influence cap for skinned export
MAX_JOINTS_PER_VERTEX = 4

IDENTITY_MATRIX = (
    1.0, 0.0, 0.0, 0.0,
    0.0, 1.0, 0.0, 0.0,
    0.0, 0.0, 1.0, 0.0,
    0.0, 0.0, 0.0, 1.0,
)
