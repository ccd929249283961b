"""
VPR Codec Module
VOCALOID 5/6 projects: a zip archive containing Project/sequence.json.

Tick resolution is 480 PPQ, tempo values are stored as BPM * 100 and
note positions are relative to their part.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import value_tree
from conversion_errors import IllegalFileError
from import_policy import ensure_tempos, ensure_time_signatures, with_leading_entry
from project_model import (
    ExportResult, ExportWarning, Feature, Format, ImportParams, Note, Project,
    Tempo, TimeSignature, Track, TICKS_PER_BEAT, validate_notes
)
from template_merger import merge_entries, pick_template
from template_registry import TemplateRegistry, default_registry
from value_tree import Node, ValueTreeError
from zip_container import create_archive, read_entry

logger = logging.getLogger(__name__)

FORMAT = Format.VPR
# Older exporters put sequence.json at the archive root
ENTRY_PATHS = ('Project/sequence.json', 'sequence.json')
BPM_RATE = 100
VOCAL_TRACK_TYPE = 0
TRACK_COLORS = 8
SUPPORTED_FEATURES = frozenset()


def _not_a_zip(file_name: str) -> IllegalFileError:
    return IllegalFileError('VPR file is not a zip archive', file_name)


def parse(data: bytes, params: ImportParams, file_name: str = 'untitled.vpr') -> Project:
    entry = read_entry(data, ENTRY_PATHS, file_name, _not_a_zip)
    if entry.path != ENTRY_PATHS[0]:
        logger.info("%s: read project from %s (tried %s)", file_name, entry.path, ', '.join(entry.tried))
    try:
        sequence = value_tree.loads(entry.data.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise IllegalFileError(f"{entry.path} is not valid JSON: {e}", file_name) from e

    try:
        return _parse_sequence(sequence, params, file_name)
    except (ValueTreeError, ValueError) as e:
        raise IllegalFileError(f"Invalid vpr project: {e}", file_name) from e


def _parse_sequence(sequence: Node, params: ImportParams, file_name: str) -> Project:
    warnings = []
    name = sequence.opt_str('title')
    if not name or not name.strip():
        name = Path(file_name).stem

    master = sequence.opt_object('masterTrack')
    tempos = ensure_tempos(_parse_tempos(master), warnings)
    time_signatures = ensure_time_signatures(_parse_time_signatures(master), warnings)

    vocal_tracks = [
        t for t in sequence.opt_array('tracks')
        if t.opt_int('type', VOCAL_TRACK_TYPE) == VOCAL_TRACK_TYPE
    ]
    tracks = tuple(
        _parse_track(i, track, params.default_lyric)
        for i, track in enumerate(vocal_tracks)
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


def _parse_tempos(master: Optional[Node]) -> List[Tempo]:
    tempo = master.opt_object('tempo') if master is not None else None
    if tempo is None:
        return []
    global_tempo = tempo.opt_object('global')
    first = None
    if global_tempo is not None and global_tempo.opt_float('value') is not None:
        first = Tempo(tick_position=0, bpm=global_tempo.get_float('value') / BPM_RATE)
        if global_tempo.opt_bool('isEnabled', False):
            return [first]
    events = [
        Tempo(tick_position=event.get_int('pos'), bpm=event.get_float('value') / BPM_RATE)
        for event in tempo.opt_array('events')
    ]
    # The global value plays until the first event
    if first is None or not events:
        return events
    return with_leading_entry(events, first, lambda t: t.tick_position)


def _parse_time_signatures(master: Optional[Node]) -> List[TimeSignature]:
    time_sig = master.opt_object('timeSig') if master is not None else None
    if time_sig is None:
        return []
    return [
        TimeSignature(
            measure_position=event.get_int('bar'),
            numerator=event.get_int('numer'),
            denominator=event.get_int('denom'),
        )
        for event in time_sig.opt_array('events')
    ]


def _parse_track(index: int, track: Node, default_lyric: str) -> Track:
    name = track.opt_str('name', f"Track {index + 1}")
    notes = []
    for part in track.opt_array('parts'):
        part_pos = part.opt_int('pos', 0)
        for note in part.opt_array('notes'):
            lyric = note.opt_str('lyric')
            if lyric is None or not lyric.strip():
                lyric = default_lyric
            tick_on = part_pos + note.get_int('pos')
            notes.append(Note(
                id=0,
                key=note.get_int('number'),
                lyric=lyric,
                tick_on=tick_on,
                tick_off=tick_on + note.get_int('duration'),
            ))
    return validate_notes(Track(id=index, name=name, notes=tuple(notes)))


def generate(
    project: Project,
    features: Sequence[Feature] = (),
    registry: Optional[TemplateRegistry] = None
) -> ExportResult:
    """Generate a .vpr archive from the bundled sequence template"""
    template = (registry or default_registry()).get(FORMAT)
    master = template.get_object('masterTrack')

    template_tracks = [
        t for t in template.opt_array('tracks')
        if t.opt_int('type', VOCAL_TRACK_TYPE) == VOCAL_TRACK_TYPE
    ]
    tracks = [
        _build_track(i, validate_notes(track), template_tracks)
        for i, track in enumerate(project.tracks)
    ]

    sequence = template.with_fields(
        title=project.name,
        masterTrack=master.with_fields(
            tempo=_build_tempo(project.tempos, master.opt_object('tempo')),
            timeSig=_build_time_signatures(project.time_signatures, master.opt_object('timeSig')),
        ),
        tracks=tracks,
    )

    return ExportResult(
        data=create_archive(ENTRY_PATHS[0], value_tree.dumps(sequence, indent=2)),
        file_name=FORMAT.file_name(project.name),
        warnings=(ExportWarning.PHONEME_RESET_REQUIRED,),
    )


def _build_tempo(tempos: Sequence[Tempo], template_tempo: Optional[Node]) -> Node:
    base = template_tempo or value_tree.empty_object()
    patch = value_tree.from_python({
        # Disabled so the events below are used; other global fields stay as in the template
        'global': {'isEnabled': False, 'value': _encode_bpm(tempos[0].bpm)},
        'events': merge_entries(
            base.opt_array('events'),
            [{'pos': t.tick_position, 'value': _encode_bpm(t.bpm)} for t in tempos],
        ),
    })
    return value_tree.overlay(base, patch)


def _build_time_signatures(time_signatures: Sequence[TimeSignature], template_time_sig: Optional[Node]) -> Node:
    base = template_time_sig or value_tree.empty_object()
    return base.with_fields(
        events=merge_entries(
            base.opt_array('events'),
            [{'bar': ts.measure_position, 'numer': ts.numerator, 'denom': ts.denominator}
             for ts in time_signatures],
        ),
    )


def _encode_bpm(bpm: float) -> int:
    return int(round(bpm * BPM_RATE))


def _note_fields(note: Note) -> Dict[str, object]:
    return {
        'lyric': note.lyric,
        'phoneme': note.lyric,
        'pos': note.tick_on,
        'duration': note.length,
        'number': note.key,
    }


def _part_duration(notes: Sequence[Note]) -> int:
    """Part length: last note end plus one beat of padding"""
    if not notes:
        return 4 * TICKS_PER_BEAT  # Default 1 measure
    return notes[-1].tick_off + TICKS_PER_BEAT


def _build_track(index: int, track: Track, template_tracks: Sequence[Node]) -> Node:
    template_track = pick_template(template_tracks, index)
    template_part = pick_template(template_track.opt_array('parts'), 0)
    part = template_part.with_fields(
        pos=0,
        duration=_part_duration(track.notes),
        notes=merge_entries(
            template_part.opt_array('notes'),
            [_note_fields(note) for note in track.notes],
        ),
    )
    return template_track.with_fields(
        type=VOCAL_TRACK_TYPE,
        name=track.name,
        color=index % TRACK_COLORS,
        parts=[part],
    )
