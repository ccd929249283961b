"""
PPSF Codec Module
Piapro Studio NT projects: a zip archive holding a single ppsf.json.

Generation starts from the bundled template because Piapro Studio refuses
to load (or crashes on edit) when per-event envelopes, singer or mixer
blocks are missing, and because the piano roll reads the notes from a
second list in gui_settings that has to match the event list exactly.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import value_tree
from conversion_errors import IllegalFileError, UnsupportedLegacyPpsfError
from import_policy import ensure_tempos, ensure_time_signatures, with_leading_entry
from project_model import (
    ExportResult, Feature, Format, ImportParams, Note, Project, Tempo,
    TimeSignature, Track, validate_notes
)
from template_merger import MirrorSpec, merge_entries, mirror_entries, mirror_mismatches, pick_template
from template_registry import TemplateRegistry, default_registry
from value_tree import Node, ValueTreeError
from zip_container import create_archive, read_entry

logger = logging.getLogger(__name__)

FORMAT = Format.PPSF
JSON_PATH = 'ppsf.json'
BPM_RATE = 10000
TRACK_EDITOR = 'track-editor'
SUPPORTED_FEATURES = frozenset()

# Lyrics that extend the previous vowel
CONTINUATION_LYRICS = ('-', 'ー')
CONTINUATION_SYMBOLS = '-'

# Piano roll note <- dvl_track event
NOTE_MIRROR = MirrorSpec(
    fields={
        'length': 'length',
        'lyric': 'lyric',
        'note_number': 'note_number',
        'pos': 'pos',
        'symbols': 'symbols',
    },
    index_field='event_index',
)


def parse(data: bytes, params: ImportParams, file_name: str = 'untitled.ppsf') -> Project:
    """
    Parse a .ppsf file

    Raises:
        UnsupportedLegacyPpsfError: the bytes are not a zip archive
        CorruptArchiveError: the archive has no readable ppsf.json
        IllegalFileError: ppsf.json is not valid project JSON
    """
    root = _read_content(data, file_name)
    try:
        return _parse_project(root, params, file_name)
    except (ValueTreeError, ValueError) as e:
        raise IllegalFileError(f"Invalid ppsf project: {e}", file_name) from e


def _read_content(data: bytes, file_name: str) -> Node:
    entry = read_entry(data, [JSON_PATH], file_name, UnsupportedLegacyPpsfError)
    try:
        return value_tree.loads(entry.data.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise IllegalFileError(f"{JSON_PATH} is not valid JSON: {e}", file_name) from e


def _parse_project(root: Node, params: ImportParams, file_name: str) -> Project:
    project = root.get_object('ppsf').get_object('project')
    warnings = []

    name = project.opt_str('name')
    if not name or not name.strip():
        name = Path(file_name).stem

    time_signatures = ensure_time_signatures(_parse_meter(project.opt_object('meter')), warnings)
    tempos = ensure_tempos(_parse_tempo(project.opt_object('tempo')), warnings)

    tracks = tuple(
        _parse_track(i, track, params.default_lyric)
        for i, track in enumerate(project.opt_array('dvl_track'))
    )

    return Project(
        format=FORMAT,
        input_files=(file_name,),
        name=name,
        tracks=tracks,
        time_signatures=time_signatures,
        tempos=tempos,
        measure_prefix=0,
        import_warnings=tuple(warnings),
    )


def _parse_meter(meter: Optional[Node]) -> List[TimeSignature]:
    if meter is None:
        return []
    const = meter.get_object('const')
    first = TimeSignature(measure_position=0, numerator=const.get_int('nume'), denominator=const.get_int('denomi'))
    if not meter.opt_bool('use_sequence', False):
        return [first]
    sequence = [
        TimeSignature(
            measure_position=event.get_int('measure'),
            numerator=event.get_int('nume'),
            denominator=event.get_int('denomi'),
        )
        for event in meter.opt_array('sequence')
    ]
    return with_leading_entry(sequence, first, lambda ts: ts.measure_position)


def _parse_tempo(tempo: Optional[Node]) -> List[Tempo]:
    if tempo is None:
        return []
    first = Tempo(tick_position=0, bpm=tempo.get_int('const') / BPM_RATE)
    if not tempo.opt_bool('use_sequence', False):
        return [first]
    sequence = [
        Tempo(tick_position=event.get_int('tick'), bpm=event.get_int('value') / BPM_RATE)
        for event in tempo.opt_array('sequence')
    ]
    return with_leading_entry(sequence, first, lambda t: t.tick_position)


def _parse_track(index: int, dvl_track: Node, default_lyric: str) -> Track:
    name = dvl_track.opt_str('name', f"Track {index + 1}")
    notes = []
    for event in dvl_track.opt_array('events'):
        if not event.opt_bool('enabled', True):
            continue
        lyric = event.opt_str('lyric')
        if lyric is None or not lyric.strip():
            lyric = default_lyric
        pos = event.get_int('pos')
        notes.append(Note(
            id=0,
            key=event.get_int('note_number'),
            lyric=lyric,
            tick_on=pos,
            tick_off=pos + event.get_int('length'),
        ))
    return validate_notes(Track(id=index, name=name, notes=tuple(notes)))


def generate(
    project: Project,
    features: Sequence[Feature] = (),
    registry: Optional[TemplateRegistry] = None
) -> ExportResult:
    """Generate a .ppsf archive by merging the project into the bundled template"""
    template = (registry or default_registry()).get(FORMAT)
    root = template.get_object('ppsf')
    inner = root.get_object('project')

    template_tracks = inner.opt_array('dvl_track')
    dvl_tracks = [
        _build_track(i, validate_notes(track), template_tracks)
        for i, track in enumerate(project.tracks)
    ]

    new_inner = inner.with_fields(
        dvl_track=dvl_tracks,
        meter=_build_meter(project.time_signatures, inner.opt_object('meter')),
        tempo=_build_tempo(project.tempos, inner.opt_object('tempo')),
        name=project.name,
    )

    root_overrides = {'project': new_inner}
    gui_settings = root.opt_object('gui_settings')
    if gui_settings is not None:
        root_overrides['gui_settings'] = _sync_gui_settings(gui_settings, dvl_tracks)

    document = template.with_fields(ppsf=root.with_field_map(root_overrides))
    logger.debug("Generated ppsf with %d track(s), %d event(s)",
                 len(dvl_tracks), sum(len(t.notes) for t in project.tracks))

    return ExportResult(
        data=create_archive(JSON_PATH, value_tree.dumps(document)),
        file_name=FORMAT.file_name(project.name),
        warnings=(),
    )


def _event_fields(note: Note) -> Dict[str, object]:
    fields = {
        'enabled': True,
        'length': note.length,
        'lyric': note.lyric,
        'note_number': note.key,
        'pos': note.tick_on,
    }
    if note.lyric.strip() in CONTINUATION_LYRICS:
        fields['symbols'] = CONTINUATION_SYMBOLS
    return fields


def _build_track(index: int, track: Track, template_tracks: Sequence[Node]) -> Node:
    template_track = pick_template(template_tracks, index)
    events = merge_entries(
        template_track.opt_array('events'),
        [_event_fields(note) for note in track.notes],
    )
    return template_track.with_fields(
        enabled=template_track.opt_bool('enabled', True),
        events=events,
        name=track.name,
    )


def _build_meter(time_signatures: Sequence[TimeSignature], template_meter: Optional[Node]) -> Node:
    base = template_meter or value_tree.empty_object()
    first = time_signatures[0]
    sequence = merge_entries(
        base.opt_array('sequence'),
        [{'denomi': ts.denominator, 'nume': ts.numerator, 'measure': ts.measure_position}
         for ts in time_signatures],
    )
    return base.with_fields(
        const={'denomi': first.denominator, 'nume': first.numerator},
        sequence=sequence,
        use_sequence=bool(sequence),
    )


def _build_tempo(tempos: Sequence[Tempo], template_tempo: Optional[Node]) -> Node:
    base = template_tempo or value_tree.empty_object()
    sequence = merge_entries(
        base.opt_array('sequence'),
        [{'tick': t.tick_position, 'value': encode_bpm(t.bpm)} for t in tempos],
    )
    return base.with_fields(
        const=encode_bpm(tempos[0].bpm),
        sequence=sequence,
        use_sequence=bool(sequence),
    )


def encode_bpm(bpm: float) -> int:
    return int(round(bpm * BPM_RATE))


def _sync_gui_settings(gui_settings: Node, dvl_tracks: Sequence[Node]) -> Node:
    """Rebuild the piano roll note lists so they match the events one to one"""
    editor = gui_settings.opt_object(TRACK_EDITOR)
    if editor is None:
        return gui_settings

    template_event_tracks = editor.opt_array('event_tracks')
    event_tracks = []
    for i, dvl_track in enumerate(dvl_tracks):
        base = pick_template(template_event_tracks, i)
        notes = mirror_entries(
            dvl_track.get_array('events'),
            base.opt_array('notes'),
            NOTE_MIRROR,
            extra=_mirror_syllables,
        )
        stale = mirror_mismatches(dvl_track.get_array('events'), notes, NOTE_MIRROR)
        if stale:
            logger.warning("Piano roll notes %s of track %d do not match their events", stale, i)
        event_tracks.append(base.with_fields(index=i, notes=notes))

    return gui_settings.with_field_map({TRACK_EDITOR: editor.with_fields(event_tracks=event_tracks)})


def _mirror_syllables(template_note: Node, event: Node) -> Dict[str, object]:
    # Only the syllable text is known; the rest stays as in the template
    syllables = template_note.opt_array('syllables')
    if not syllables:
        return {}
    lyric = event.get_str('lyric')
    return {
        'syllables': [
            s.with_fields(lyric_text=lyric) if s.has('lyric_text') else s
            for s in syllables
        ]
    }
