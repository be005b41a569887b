"""Exception types raised while loading or saving glTF assets.

Every failure aborts the current load/save call. Each class also derives from
the builtin exception a caller would naturally catch for that condition.
"""


class GltfError(Exception):
    """Base class for all glTF reader/writer errors."""


class ParseError(GltfError, ValueError):
    """The manifest is not well-formed JSON.

    Attributes:
        offset: byte offset into the manifest where parsing failed
    """

    def __init__(self, message, offset=0):
        super().__init__(f"JSON parse error, offset {offset}: {message}")
        self.offset = offset


class InvalidDocumentError(GltfError, ValueError):
    """Structural violation in the manifest, container or buffer data."""


class MissingSectionError(GltfError, LookupError):
    """A dictionary lookup was made but its manifest section is absent."""


class MissingObjectError(GltfError, LookupError):
    """The requested id does not exist in its manifest section."""


class MalformedObjectError(GltfError, ValueError):
    """A dictionary entry exists but is not a JSON object."""


class DuplicateIdError(GltfError, ValueError):
    """An id is already in use somewhere in the document."""


class RegionNotFoundError(GltfError, LookupError):
    """No encoded region with the requested id was registered."""


class GltfIOError(GltfError, OSError):
    """A file could not be opened, read or written."""


class SerializationError(GltfError):
    """The manifest could not be encoded as JSON."""
