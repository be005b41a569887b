"""Append typed arrays to a buffer and describe them with a view + accessor."""

import logging

import numpy as np

from ..gltf_format.gltf_constants import (
    ATTRIB_COMPONENTS, COMPONENT_DTYPES, COMPONENT_SIZES, TARGET_NONE,
)

_log = logging.getLogger("gltf_export")


def export_data(document, base_id, buffer, data, attrib_type, component_type,
                target=TARGET_NONE, compute_bounds=True):
    """Write an array of elements to the end of buffer.

    The data is placed at the next offset aligned to the component size,
    wrapped in a new BufferView and a tightly packed Accessor.

    Args:
        document: AssetDocument that receives the view and accessor
        base_id: prefix for the generated ids (e.g. the mesh id)
        buffer: Buffer to append to
        data: array-like of shape (count, n) or (count,); converted to the
            component dtype. When n is smaller than the element size of
            attrib_type, missing components are zero.
        attrib_type: element shape of the accessor (ATTRIB_*)
        component_type: COMPONENT_* enum
        target: BufferView target hint
        compute_bounds: record per-component min/max on the accessor

    Returns:
        the new Accessor, or None if data is empty
    """
    arr = np.asarray(data, dtype=np.dtype(COMPONENT_DTYPES[component_type]))
    if arr.size == 0:
        return None
    count = arr.shape[0]
    arr = np.ascontiguousarray(arr.reshape(count, -1))

    num_comps = ATTRIB_COMPONENTS[attrib_type]
    bytes_per_comp = COMPONENT_SIZES[component_type]
    length = count * num_comps * bytes_per_comp

    offset = buffer.byte_length
    padding = (bytes_per_comp - offset % bytes_per_comp) % bytes_per_comp
    offset += padding
    buffer.grow(length + padding)

    view = document.buffer_views.create(document.find_unique_id(base_id, "view"))
    view.buffer = buffer
    view.byte_offset = offset
    view.byte_length = length
    view.target = target

    acc = document.accessors.create(document.find_unique_id(base_id, "accessor"))
    acc.buffer_view = view
    acc.byte_offset = 0
    acc.byte_stride = 0
    acc.component_type = component_type
    acc.count = count
    acc.type = attrib_type

    if compute_bounds:
        cols = min(arr.shape[1], num_comps)
        mins = [0] * num_comps
        maxs = [0] * num_comps
        mins[:cols] = arr[:, :cols].min(axis=0).tolist()
        maxs[:cols] = arr[:, :cols].max(axis=0).tolist()
        acc.min = mins
        acc.max = maxs

    acc.write_data(count, arr, arr.shape[1] * bytes_per_comp)
    _log.debug("Exported %r at offset %d (+%d padding)", acc, offset, padding)
    return acc
