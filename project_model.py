"""
Project Model Module
Format-independent representation every codec reads from and writes to.

All models are immutable dataclasses: transforms (lyric cleanup, format
re-tagging, note validation) build new values instead of mutating.
Tick positions use TICKS_PER_BEAT ticks per quarter note.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Sequence, Tuple

logger = logging.getLogger(__name__)

TICKS_PER_BEAT = 480
DEFAULT_BPM = 120.0


class Format(Enum):
    """Supported project formats"""
    PPSF = 'ppsf'   # Piapro Studio NT
    VPR = 'vpr'     # Vocaloid 5/6
    VSQX = 'vsqx'   # Vocaloid 3/4
    MIDI = 'mid'    # Standard MIDI File

    @property
    def extension(self) -> str:
        return '.' + self.value

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    def file_name(self, project_name: str) -> str:
        """Output filename for a project written in this format"""
        base = project_name.strip() or 'untitled'
        return base + self.extension


_MIME_TYPES = {
    Format.PPSF: 'application/octet-stream',
    Format.VPR: 'application/octet-stream',
    Format.VSQX: 'application/xml',
    Format.MIDI: 'audio/midi',
}


def get_file_extension(output_format: Format) -> str:
    return output_format.extension


def get_mime_type(output_format: Format) -> str:
    return output_format.mime_type


class ImportWarning(Enum):
    """Substitutions made while importing a file"""
    TEMPO_NOT_FOUND = 'TempoNotFound'
    TIME_SIGNATURE_NOT_FOUND = 'TimeSignatureNotFound'


class ExportWarning(Enum):
    """Things the user should fix in the host editor after export"""
    # Phonemes were written as the lyric text and need regeneration
    PHONEME_RESET_REQUIRED = 'PhonemeResetRequired'


class Feature(Enum):
    """Optional export features"""
    CONVERT_PITCH = 'convert_pitch'


@dataclass(frozen=True)
class ImportParams:
    default_lyric: str = 'あ'


@dataclass(frozen=True)
class Tempo:
    tick_position: int
    bpm: float

    def __post_init__(self):
        if self.tick_position < 0:
            raise ValueError(f"Tempo tick must be non-negative, got {self.tick_position}")

    @classmethod
    def default(cls) -> 'Tempo':
        return cls(tick_position=0, bpm=DEFAULT_BPM)


@dataclass(frozen=True)
class TimeSignature:
    measure_position: int
    numerator: int
    denominator: int

    def __post_init__(self):
        if self.measure_position < 0:
            raise ValueError(f"Measure must be non-negative, got {self.measure_position}")
        if self.numerator <= 0 or self.denominator <= 0:
            raise ValueError(f"Invalid time signature {self.numerator}/{self.denominator}")

    @classmethod
    def default(cls) -> 'TimeSignature':
        return cls(measure_position=0, numerator=4, denominator=4)


@dataclass(frozen=True)
class Note:
    """
    A single sung note.

    Attributes:
        id: Index within its track after validation, not unique across tracks
        key: MIDI note number
        lyric: Raw or normalized lyric text
        tick_on: Start position in ticks
        tick_off: End position in ticks (greater than tick_on once validated)
    """
    id: int
    key: int
    lyric: str
    tick_on: int
    tick_off: int

    @property
    def length(self) -> int:
        return self.tick_off - self.tick_on


@dataclass(frozen=True)
class Track:
    id: int
    name: str
    notes: Tuple[Note, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Project:
    format: Format
    input_files: Tuple[str, ...]
    name: str
    tracks: Tuple[Track, ...]
    time_signatures: Tuple[TimeSignature, ...]
    tempos: Tuple[Tempo, ...]
    measure_prefix: int = 0
    import_warnings: Tuple[ImportWarning, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.tempos or self.tempos[0].tick_position != 0:
            raise ValueError("Project needs a tempo at tick 0")
        if not self.time_signatures or self.time_signatures[0].measure_position != 0:
            raise ValueError("Project needs a time signature at measure 0")

    def with_format(self, target: Format) -> 'Project':
        return replace(self, format=target)

    def with_tracks(self, tracks: Sequence[Track]) -> 'Project':
        return replace(self, tracks=tuple(tracks))

    def summary(self) -> Dict[str, Any]:
        """Short description used by the inspect endpoint"""
        return {
            'format': self.format.value,
            'name': self.name,
            'tempos': [{'tick': t.tick_position, 'bpm': t.bpm} for t in self.tempos],
            'time_signatures': [
                {'measure': ts.measure_position, 'numerator': ts.numerator, 'denominator': ts.denominator}
                for ts in self.time_signatures
            ],
            'measure_prefix': self.measure_prefix,
            'tracks': [
                {
                    'id': track.id,
                    'name': track.name,
                    'note_count': len(track.notes),
                    'lyrics': [n.lyric for n in track.notes[:100]],
                }
                for track in self.tracks
            ],
            'warnings': [w.value for w in self.import_warnings],
        }


@dataclass(frozen=True)
class ExportResult:
    data: bytes
    file_name: str
    warnings: Tuple[ExportWarning, ...] = field(default_factory=tuple)


def validate_notes(track: Track) -> Track:
    """
    Repair a track so it is safe to re-encode.

    Notes are ordered by start tick, zero or negative lengths become one
    tick, and a note running into its successor is shortened to end where
    the successor starts. A note left without any length (it starts on
    the same tick as its successor) is removed. Ids are renumbered.
    """
    ordered = sorted(track.notes, key=lambda n: n.tick_on)
    repaired: List[Note] = []
    dropped = 0

    for i, note in enumerate(ordered):
        tick_off = max(note.tick_off, note.tick_on + 1)
        if i + 1 < len(ordered):
            next_on = ordered[i + 1].tick_on
            if tick_off > next_on:
                tick_off = next_on
        if tick_off <= note.tick_on:
            dropped += 1
            continue
        repaired.append(replace(note, id=len(repaired), tick_off=tick_off))

    if dropped:
        logger.warning("Track %r: removed %d note(s) sharing a start tick", track.name, dropped)
    return replace(track, notes=tuple(repaired))


# Meter helpers

def ticks_per_measure(time_signature: TimeSignature) -> int:
    """Ticks in one measure, e.g. 1920 for 4/4 and 2880 for 12/8"""
    return time_signature.numerator * TICKS_PER_BEAT * 4 // time_signature.denominator


def tick_of_measure(time_signatures: Sequence[TimeSignature], measure: int) -> int:
    """Absolute tick at which a measure starts"""
    tick = 0
    current = time_signatures[0]
    for ts in time_signatures[1:]:
        if ts.measure_position >= measure:
            break
        tick += (ts.measure_position - current.measure_position) * ticks_per_measure(current)
        current = ts
    return tick + (measure - current.measure_position) * ticks_per_measure(current)


def measure_of_tick(time_signatures: Sequence[TimeSignature], tick: int) -> int:
    """Index of the measure containing a tick (time signatures must start at measure 0)"""
    measure_tick = 0
    current = time_signatures[0]
    for ts in time_signatures[1:]:
        next_tick = measure_tick + (ts.measure_position - current.measure_position) * ticks_per_measure(current)
        if next_tick > tick:
            break
        measure_tick = next_tick
        current = ts
    return current.measure_position + (tick - measure_tick) // ticks_per_measure(current)


def rescale_tick(tick: int, source_resolution: int, target_resolution: int = TICKS_PER_BEAT) -> int:
    if source_resolution == target_resolution:
        return tick
    return int(round(tick * target_resolution / source_resolution))
