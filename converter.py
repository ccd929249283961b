"""
Converter Module
Ties the codecs together: detect the source format, import, normalize
lyrics, then export to the target format.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence

import midi_codec
import ppsf_codec
import vpr_codec
import vsqx_codec
from conversion_errors import UnsupportedFileFormatError
from lyrics_normalizer import LyricsType, cleanup_project
from project_model import ExportResult, Feature, Format, ImportParams, Project
from template_registry import TemplateRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Codec:
    """Parse/generate pair for one format"""
    format: Format
    parse: Callable[..., Project]
    generate: Callable[..., ExportResult]
    supported_features: FrozenSet[Feature]
    # Template based codecs accept a ``registry`` argument
    uses_templates: bool = False


CODECS: Dict[Format, Codec] = {
    Format.PPSF: Codec(Format.PPSF, ppsf_codec.parse, ppsf_codec.generate,
                       ppsf_codec.SUPPORTED_FEATURES, uses_templates=True),
    Format.VPR: Codec(Format.VPR, vpr_codec.parse, vpr_codec.generate,
                      vpr_codec.SUPPORTED_FEATURES, uses_templates=True),
    Format.VSQX: Codec(Format.VSQX, vsqx_codec.parse, vsqx_codec.generate,
                       vsqx_codec.SUPPORTED_FEATURES),
    Format.MIDI: Codec(Format.MIDI, midi_codec.parse, midi_codec.generate,
                       midi_codec.SUPPORTED_FEATURES),
}

# Extra extensions accepted on import
_EXTENSION_ALIASES = {
    '.midi': Format.MIDI,
}


def get_codec(target: Format) -> Codec:
    return CODECS[target]


def supported_formats() -> List[Format]:
    return list(CODECS)


def detect_format(file_name: str) -> Format:
    """Format of a file, judged by its extension"""
    extension = Path(file_name).suffix.lower()
    for fmt in CODECS:
        if fmt.extension == extension:
            return fmt
    if extension in _EXTENSION_ALIASES:
        return _EXTENSION_ALIASES[extension]
    raise UnsupportedFileFormatError(
        f"Unsupported file type '{extension or file_name}'", file_name)


def parse_format(value: str) -> Format:
    """Target format from a user supplied name such as 'vpr' or '.mid'"""
    normalized = value.strip().lower().lstrip('.')
    if normalized == 'midi':
        return Format.MIDI
    for fmt in CODECS:
        if fmt.value == normalized:
            return fmt
    raise UnsupportedFileFormatError(f"Unknown target format '{value}'")


def import_project(data: bytes, file_name: str, params: Optional[ImportParams] = None) -> Project:
    codec = get_codec(detect_format(file_name))
    project = codec.parse(data, params or ImportParams(), file_name)
    logger.info("Imported %s: %d track(s), %d note(s), warnings=%s",
                file_name, len(project.tracks), sum(len(t.notes) for t in project.tracks),
                [w.value for w in project.import_warnings])
    return project


def export_project(
    project: Project,
    target: Format,
    features: Sequence[Feature] = (),
    registry: Optional[TemplateRegistry] = None
) -> ExportResult:
    codec = get_codec(target)
    unsupported = [f for f in features if f not in codec.supported_features]
    if unsupported:
        logger.info("Ignoring features not supported by %s: %s",
                    target.value, ', '.join(f.value for f in unsupported))
    enabled = [f for f in features if f in codec.supported_features]

    if codec.uses_templates:
        return codec.generate(project.with_format(target), enabled, registry=registry)
    return codec.generate(project.with_format(target), enabled)


def convert(
    data: bytes,
    file_name: str,
    target: Format,
    params: Optional[ImportParams] = None,
    lyrics_type: LyricsType = LyricsType.UNKNOWN,
    features: Sequence[Feature] = (),
    registry: Optional[TemplateRegistry] = None
) -> ExportResult:
    """Convert a project file to the target format"""
    project = import_project(data, file_name, params)
    project = cleanup_project(project, lyrics_type)
    return export_project(project, target, features, registry)
