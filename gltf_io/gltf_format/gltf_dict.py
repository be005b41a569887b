"""Id registry and lazily-populated object dictionaries.

Each object kind of a document lives in one LazyDict, backed by the manifest
section of the same name (e.g. "meshes"). Objects are constructed the first
time something asks for their id, so the graph resolves in reference order
rather than declaration order. Every dictionary shares the document's
IdRegistry, which keeps ids unique across all kinds.
"""

import logging

from .gltf_errors import (
    InvalidDocumentError, MissingSectionError, MissingObjectError,
    MalformedObjectError, DuplicateIdError,
)
from .gltf_json import find_object, find_string

_log = logging.getLogger("gltf_dict")


class IdRegistry:
    """The set of ids in use anywhere in one document."""

    def __init__(self):
        self._ids = set()

    def add(self, obj_id):
        """Register obj_id. Returns False if it was already in use."""
        if obj_id in self._ids:
            return False
        self._ids.add(obj_id)
        return True

    def discard(self, obj_id):
        self._ids.discard(obj_id)

    def clear(self):
        self._ids.clear()

    def __contains__(self, obj_id):
        return obj_id in self._ids

    def __len__(self):
        return len(self._ids)

    def find_unique_id(self, base, suffix):
        """Return base if unused, else base_suffix, else base_suffix_0, _1, ..."""
        candidate = base
        if candidate:
            if candidate not in self._ids:
                return candidate
            candidate += "_"
        candidate += suffix
        if candidate not in self._ids:
            return candidate

        n = 0
        while f"{candidate}_{n}" in self._ids:
            n += 1
        return f"{candidate}_{n}"


class LazyDict:
    """Lazy id -> object mapping for one object kind.

    Args:
        document: owning AssetDocument; the dictionary registers itself
        cls: GltfObject subclass constructed for each entry
        dict_id: manifest section name, e.g. "accessors"
        ext_id: when set, the section lives under extensions/<ext_id>
    """

    def __init__(self, document, cls, dict_id, ext_id=None):
        self._document = document
        self._cls = cls
        self.dict_id = dict_id
        self.ext_id = ext_id
        self._objs = []
        self._by_id = {}
        self._section = None
        self._pending = {}
        document.register_dict(self)

    # ---- Manifest binding ----

    def attach_to_document(self, manifest):
        container = manifest
        if self.ext_id:
            extensions = find_object(manifest, "extensions")
            container = find_object(extensions, self.ext_id) if extensions is not None else None
        self._section = find_object(container, self.dict_id) if container is not None else None

    def detach_from_document(self):
        self._section = None
        self._pending.clear()

    def section_ids(self):
        """Ids present in the attached manifest section."""
        if self._section is None:
            return []
        return list(self._section.keys())

    def has_section_id(self, obj_id):
        return self._section is not None and obj_id in self._section

    def find_section_id(self, predicate):
        """First id in the attached section whose raw value satisfies predicate."""
        if self._section is None:
            return None
        for obj_id, value in self._section.items():
            if predicate(value):
                return obj_id
        return None

    # ---- Lookup ----

    def get(self, key):
        """Return the object for an id, reading it from the manifest if needed.

        Args:
            key: string id, or int position among materialized objects

        Raises:
            IndexError: int position out of range
            MissingSectionError: the manifest has no section for this kind
            MissingObjectError: the section has no entry with this id
            MalformedObjectError: the entry is not a JSON object
            InvalidDocumentError: the entry (indirectly) references itself
        """
        if isinstance(key, int):
            return self._objs[key]

        obj = self._by_id.get(key)
        if obj is not None:
            return obj

        if self._section is None:
            raise MissingSectionError(f"Missing section \"{self.dict_id}\"")
        if key in self._pending:
            raise InvalidDocumentError(
                f"Object \"{key}\" in \"{self.dict_id}\" references itself"
            )

        if key not in self._section:
            raise MissingObjectError(
                f"Missing object with id \"{key}\" in \"{self.dict_id}\""
            )
        value = self._section[key]
        if not isinstance(value, dict):
            raise MalformedObjectError(
                f"Object with id \"{key}\" in \"{self.dict_id}\" is not a JSON object"
            )

        inst = self._cls()
        inst.id = key
        inst.name = find_string(value, "name")

        if self._document.settings.debug:
            _log.debug("Reading %s \"%s\"", self._cls.__name__, key)

        self._pending[key] = inst
        try:
            inst.read(value, self._document)
        finally:
            del self._pending[key]

        return self.add(inst)

    def get_pending(self, obj_id):
        """The instance for obj_id if it is in the middle of being read."""
        return self._pending.get(obj_id)

    def find(self, predicate):
        """First materialized (or currently reading) object matching predicate."""
        for obj in self._objs:
            if predicate(obj):
                return obj
        for obj in self._pending.values():
            if predicate(obj):
                return obj
        return None

    def resolve_all(self):
        """Materialize every entry of the attached section."""
        for obj_id in self.section_ids():
            self.get(obj_id)

    # ---- Creation ----

    def create(self, obj_id):
        """Create a new object with no manifest backing.

        Raises:
            DuplicateIdError: obj_id is already used anywhere in the document
        """
        if obj_id in self._document.ids:
            raise DuplicateIdError(f"Object with id \"{obj_id}\" already exists")
        inst = self._cls()
        inst.id = obj_id
        return self.add(inst)

    def add(self, obj):
        """Register an object and return it."""
        if not self._document.ids.add(obj.id):
            # Tolerated on load: kinds are separate sections in the manifest
            _log.warning("Id \"%s\" in \"%s\" is already used by another object",
                         obj.id, self.dict_id)
        self._by_id[obj.id] = obj
        self._objs.append(obj)
        return obj

    def clear(self):
        for obj in self._objs:
            self._document.ids.discard(obj.id)
        self._objs = []
        self._by_id = {}

    # ---- Container protocol ----

    def __len__(self):
        return len(self._objs)

    def __iter__(self):
        return iter(list(self._objs))

    def __contains__(self, obj_id):
        return obj_id in self._by_id

    def __repr__(self):
        return f"LazyDict({self.dict_id!r}, {len(self._objs)} objects)"
