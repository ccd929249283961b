"""
Import Policy Module
Fallback rules shared by every codec when a source lacks tempo or meter data.
"""

from typing import List, Sequence, Tuple, TypeVar, Callable

from project_model import ImportWarning, Tempo, TimeSignature

T = TypeVar('T')


def with_leading_entry(sequence: Sequence[T], first: T, position: Callable[[T], int]) -> List[T]:
    """Prepend the constant-derived entry unless something already sits at position 0"""
    if any(position(entry) == 0 for entry in sequence):
        return list(sequence)
    return [first] + list(sequence)


def _dedupe_sorted(sequence: Sequence[T], position: Callable[[T], int]) -> List[T]:
    # Stable sort, the last entry decoded at a position wins
    by_position = {}
    for entry in sorted(sequence, key=position):
        by_position[position(entry)] = entry
    return list(by_position.values())


def ensure_tempos(tempos: Sequence[Tempo], warnings: List[ImportWarning]) -> Tuple[Tempo, ...]:
    """
    Sort tempos and substitute the default (with a warning) when none were decoded.

    A sequence starting after tick 0 gets the default tempo in front of it;
    codecs with their own constant tempo prepend that one before calling this.
    """
    result = _dedupe_sorted(tempos, lambda t: t.tick_position)
    if not result:
        warnings.append(ImportWarning.TEMPO_NOT_FOUND)
        return (Tempo.default(),)
    return tuple(with_leading_entry(result, Tempo.default(), lambda t: t.tick_position))


def ensure_time_signatures(
    time_signatures: Sequence[TimeSignature],
    warnings: List[ImportWarning]
) -> Tuple[TimeSignature, ...]:
    """Sort time signatures and substitute the default (with a warning) when none were decoded"""
    result = _dedupe_sorted(time_signatures, lambda ts: ts.measure_position)
    if not result:
        warnings.append(ImportWarning.TIME_SIGNATURE_NOT_FOUND)
        return (TimeSignature.default(),)
    return tuple(with_leading_entry(result, TimeSignature.default(), lambda ts: ts.measure_position))


def shift_tempos(tempos: Sequence[Tempo], offset: int) -> List[Tempo]:
    """
    Move tempos left by a pre-roll offset in ticks.

    The last tempo at or before the offset becomes the tick-0 entry,
    earlier ones are discarded.
    """
    shifted = []
    leading = None
    for tempo in sorted(tempos, key=lambda t: t.tick_position):
        position = tempo.tick_position - offset
        if position <= 0:
            leading = Tempo(tick_position=0, bpm=tempo.bpm)
        else:
            shifted.append(Tempo(tick_position=position, bpm=tempo.bpm))
    if leading is not None:
        shifted.insert(0, leading)
    return shifted


def shift_time_signatures(time_signatures: Sequence[TimeSignature], offset: int) -> List[TimeSignature]:
    """Same as shift_tempos, offset counted in measures"""
    shifted = []
    leading = None
    for ts in sorted(time_signatures, key=lambda t: t.measure_position):
        position = ts.measure_position - offset
        if position <= 0:
            leading = TimeSignature(measure_position=0, numerator=ts.numerator, denominator=ts.denominator)
        else:
            shifted.append(TimeSignature(measure_position=position, numerator=ts.numerator, denominator=ts.denominator))
    if leading is not None:
        shifted.insert(0, leading)
    return shifted
