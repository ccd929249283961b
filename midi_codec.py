"""
MIDI Codec Module
Standard MIDI Files: notes, tempo, time signature and lyric meta events.
"""

import io
import logging
from pathlib import Path
from typing import List, Sequence, Tuple

import mido

from conversion_errors import IllegalFileError
from import_policy import ensure_tempos, ensure_time_signatures
from project_model import (
    ExportResult, Feature, Format, ImportParams, Note, Project, Tempo,
    TimeSignature, Track, TICKS_PER_BEAT, measure_of_tick, rescale_tick,
    tick_of_measure, validate_notes
)

logger = logging.getLogger(__name__)

FORMAT = Format.MIDI
DEFAULT_VELOCITY = 64
SUPPORTED_FEATURES = frozenset()

# Lyric meta events have no declared encoding; latin1 always decodes
TEXT_CHARSETS = ('utf-8', 'shift_jis', 'latin1')


def parse(data: bytes, params: ImportParams, file_name: str = 'untitled.mid') -> Project:
    midi = _open_midi(data, file_name)

    ticks_per_beat = midi.ticks_per_beat
    if ticks_per_beat <= 0:
        raise IllegalFileError('SMPTE time division is not supported', file_name)

    warnings = []
    raw_tempos = []
    raw_time_signatures = []
    tracks = []
    song_name = None

    for midi_track in midi.tracks:
        current_tick = 0
        track_name = None
        lyrics = {}  # tick -> text
        active_notes = {}  # key: (channel, pitch), value: start_tick
        notes = []

        for msg in midi_track:
            current_tick += msg.time

            if msg.type == 'set_tempo':
                raw_tempos.append(Tempo(
                    tick_position=rescale_tick(current_tick, ticks_per_beat),
                    bpm=mido.tempo2bpm(msg.tempo),
                ))

            elif msg.type == 'time_signature':
                raw_time_signatures.append((rescale_tick(current_tick, ticks_per_beat), msg.numerator, msg.denominator))

            elif msg.type == 'track_name' and track_name is None:
                track_name = msg.name.strip()

            elif msg.type == 'lyrics':
                lyrics.setdefault(current_tick, msg.text.strip())

            elif msg.type == 'note_on' and msg.velocity > 0:
                # Note starts; a retrigger ends the note still sounding on that key
                key = (msg.channel, msg.note)
                if key in active_notes:
                    notes.append((active_notes[key], current_tick, msg.note))
                active_notes[key] = current_tick

            elif msg.type == 'note_off' or (msg.type == 'note_on' and msg.velocity == 0):
                # Note ends
                key = (msg.channel, msg.note)
                if key in active_notes:
                    start_tick = active_notes.pop(key)
                    notes.append((start_tick, current_tick, msg.note))

        if active_notes:
            logger.warning("%s: closing %d note(s) left open at the end of a track", file_name, len(active_notes))
            for (_, pitch), start_tick in active_notes.items():
                notes.append((start_tick, current_tick, pitch))

        if not notes:
            # Conductor track: its name is the song title
            if track_name and song_name is None:
                song_name = track_name
            continue

        index = len(tracks)
        tracks.append(validate_notes(Track(
            id=index,
            name=track_name or f"Track {index + 1}",
            notes=tuple(
                Note(
                    id=0,
                    key=pitch,
                    lyric=lyrics.get(start) or params.default_lyric,
                    tick_on=rescale_tick(start, ticks_per_beat),
                    tick_off=rescale_tick(end, ticks_per_beat),
                )
                for start, end, pitch in sorted(notes)
            ),
        )))

    return Project(
        format=FORMAT,
        input_files=(file_name,),
        name=song_name or Path(file_name).stem,
        tracks=tuple(tracks),
        time_signatures=ensure_time_signatures(_measure_time_signatures(raw_time_signatures), warnings),
        # SMF plays at 120 BPM until the first set_tempo, which is the default ensure_tempos prepends
        tempos=ensure_tempos(raw_tempos, warnings),
        measure_prefix=0,
        import_warnings=tuple(warnings),
    )


def _open_midi(data: bytes, file_name: str) -> mido.MidiFile:
    """Load the file, retrying text decoding with each charset in TEXT_CHARSETS"""
    for charset in TEXT_CHARSETS:
        try:
            return mido.MidiFile(file=io.BytesIO(data), charset=charset)
        except UnicodeDecodeError:
            logger.debug("%s: meta text is not %s", file_name, charset)
        except (OSError, EOFError, ValueError, KeyError) as e:
            raise IllegalFileError(f"Not a valid MIDI file: {e}", file_name) from e
    # latin1 decodes any byte sequence, so the loop always returns
    raise IllegalFileError('Cannot decode MIDI text events', file_name)


def _measure_time_signatures(raw: Sequence[Tuple[int, int, int]]) -> List[TimeSignature]:
    """Place tick-positioned time signature events on measures (4/4 applies until the first event)"""
    if not raw:
        return []
    signatures = [TimeSignature.default()]
    for tick, numerator, denominator in sorted(raw, key=lambda e: e[0]):
        measure = measure_of_tick(signatures, tick)
        signatures = [ts for ts in signatures if ts.measure_position != measure]
        signatures.append(TimeSignature(measure, numerator, denominator))
        signatures.sort(key=lambda ts: ts.measure_position)
    return signatures


def generate(project: Project, features: Sequence[Feature] = ()) -> ExportResult:
    """Generate a type 1 MIDI file: a conductor track, then one track per vocal track"""
    midi = mido.MidiFile(type=1, ticks_per_beat=TICKS_PER_BEAT, charset='utf-8')

    conductor = [(0, 0, mido.MetaMessage('track_name', name=project.name, time=0))]
    for ts in project.time_signatures:
        tick = tick_of_measure(project.time_signatures, ts.measure_position)
        conductor.append((tick, 1, mido.MetaMessage(
            'time_signature', numerator=ts.numerator, denominator=ts.denominator, time=0)))
    for tempo in project.tempos:
        conductor.append((tempo.tick_position, 2, mido.MetaMessage(
            'set_tempo', tempo=mido.bpm2tempo(tempo.bpm), time=0)))
    midi.tracks.append(_to_track(conductor))

    for track in project.tracks:
        events = [(0, 0, mido.MetaMessage('track_name', name=track.name, time=0))]
        for note in validate_notes(track).notes:
            # note_off sorts before the next note's lyric and note_on on the same tick
            events.append((note.tick_off, 1, mido.Message('note_off', note=note.key, velocity=0, time=0)))
            events.append((note.tick_on, 2, mido.MetaMessage('lyrics', text=note.lyric, time=0)))
            events.append((note.tick_on, 3, mido.Message('note_on', note=note.key, velocity=DEFAULT_VELOCITY, time=0)))
        midi.tracks.append(_to_track(events))

    buffer = io.BytesIO()
    midi.save(file=buffer)
    return ExportResult(
        data=buffer.getvalue(),
        file_name=FORMAT.file_name(project.name),
        warnings=(),
    )


def _to_track(events: List[Tuple[int, int, mido.Message]]) -> mido.MidiTrack:
    """Convert (absolute tick, order, message) triples into a track with delta times"""
    track = mido.MidiTrack()
    last_tick = 0
    for tick, _, msg in sorted(events, key=lambda e: (e[0], e[1])):
        track.append(msg.copy(time=tick - last_tick))
        last_tick = tick
    return track
