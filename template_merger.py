"""
Template Merger Module
Overlays project data onto a template tree.

Generated entries start as copies of template entries so that every
opaque field the host application expects (envelopes, mixer blocks,
singer tables ...) is present, then only the fields the project model
owns are overwritten. The number of generated entries always follows
the project data, never the template.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence

import value_tree
from value_tree import Node


def pick_template(candidates: Sequence[Node], index: int) -> Node:
    """Template entry at an index, else the first entry, else an empty object"""
    if index < len(candidates):
        return candidates[index]
    if candidates:
        return candidates[0]
    return value_tree.empty_object()


def merge_entries(template_entries: Sequence[Node], overrides: Sequence[Mapping[str, Any]]) -> List[Node]:
    """Build exactly one entry per override map, each on top of its matched template entry"""
    return [
        pick_template(template_entries, i).with_field_map(fields)
        for i, fields in enumerate(overrides)
    ]


@dataclass(frozen=True)
class MirrorSpec:
    """
    How a dependent view copies data from its source entries.

    Attributes:
        fields: Mirror field name -> source field name
        index_field: Mirror field receiving the source entry's index, if any
    """
    fields: Mapping[str, str] = field(default_factory=dict)
    index_field: Optional[str] = None


def mirror_entries(
    sources: Sequence[Node],
    template_entries: Sequence[Node],
    layout: MirrorSpec,
    extra: Optional[Callable[[Node, Node], Mapping[str, Any]]] = None
) -> List[Node]:
    """
    Regenerate a dependent view from freshly built source entries.

    The result has the same length and order as ``sources``; each entry is
    its matched template entry with the mirrored fields copied from the
    source. ``extra(template_entry, source)`` may add further overrides.
    """
    mirrored = []
    for i, source in enumerate(sources):
        base = pick_template(template_entries, i)
        overrides = {
            mirror_name: source.field(source_name)
            for mirror_name, source_name in layout.fields.items()
            if source.has(source_name)
        }
        if layout.index_field:
            overrides[layout.index_field] = i
        if extra is not None:
            overrides.update(extra(base, source))
        mirrored.append(base.with_field_map(overrides))
    return mirrored


def mirror_mismatches(sources: Sequence[Node], mirror: Sequence[Node], layout: MirrorSpec) -> List[int]:
    """Indexes where a mirror disagrees with its sources (a length mismatch reports the tail)"""
    mismatches = []
    for i in range(max(len(sources), len(mirror))):
        if i >= len(sources) or i >= len(mirror):
            mismatches.append(i)
            continue
        source, entry = sources[i], mirror[i]
        for mirror_name, source_name in layout.fields.items():
            if source.fields().get(source_name) != entry.fields().get(mirror_name):
                mismatches.append(i)
                break
    return mismatches
