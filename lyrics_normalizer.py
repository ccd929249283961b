"""
Lyrics Normalizer Module
Rewrites raw syllable text into the notation a target editor expects.

Supported notations:
- Romaji CV   ("ka", "shi")
- Romaji VCV  ("a ka", "i shi")
- Kana CV     ("か", "きゃ")
- Kana VCV    ("a か")
- Unknown     (left untouched)
"""

from dataclasses import replace
from enum import Enum
from typing import Callable, Dict, Sequence, Tuple

from kana_table import MAX_ROMAJI_LENGTH, is_kana, is_romaji
from project_model import Project, Track

# Characters a VCV prefix may end with
ROMAJI_TAILS = ('a', 'i', 'u', 'e', 'o', 'n', '-')

SMALL_TSU = 'っ'


class LyricsType(Enum):
    UNKNOWN = 'unknown'
    ROMAJI_CV = 'romaji_cv'
    ROMAJI_VCV = 'romaji_vcv'
    KANA_CV = 'kana_cv'
    KANA_VCV = 'kana_vcv'


def _is_romaji_tail(char: str) -> bool:
    return char in ROMAJI_TAILS


def cleanup_romaji_cv(text: str) -> str:
    if not text:
        return text

    result = text.lower().strip()
    result = result.lstrip('?').strip()

    # Only the longest dictionary length is tried; a miss keeps the text
    prefix = result[:MAX_ROMAJI_LENGTH]
    if is_romaji(prefix):
        result = prefix

    return result


def cleanup_romaji_vcv(text: str) -> str:
    if not text:
        return text

    result = text.lower().strip()

    if ' ' not in result:
        return cleanup_romaji_cv(text)

    blank_pos = result.index(' ')
    body = ''

    # Lengths are scanned upward but the scan stops after the first length
    for length in range(1, MAX_ROMAJI_LENGTH + 1):
        start = blank_pos + 1
        end = start + length
        if end > len(result):
            break
        candidate = result[start:end]
        if is_romaji(candidate):
            body = candidate
        break

    prefix_char = result[blank_pos - 1]
    if body and _is_romaji_tail(prefix_char):
        result = f"{prefix_char} {body}"

    return result


def _kana_unit_at(text: str, index: int) -> str:
    """Two-character unit at an index if it is kana, else the single character"""
    if index + 2 <= len(text):
        unit = text[index:index + 2]
        if is_kana(unit):
            return unit
    return text[index:index + 1]


def cleanup_kana_cv(text: str) -> str:
    if not text:
        return text

    result = text.strip()

    for index in range(len(result)):
        unit = _kana_unit_at(result, index)
        if is_kana(unit):
            result = unit
            break

    return result.replace(SMALL_TSU, '').strip()


def cleanup_kana_vcv(text: str) -> str:
    if not text:
        return text

    result = text.strip()

    if ' ' not in result:
        return cleanup_kana_cv(text)

    blank_pos = result.index(' ')
    body = _kana_unit_at(result, blank_pos + 1)

    prefix_char = result[blank_pos - 1]
    if is_kana(body) and _is_romaji_tail(prefix_char):
        result = f"{prefix_char} {body}"

    return result


_CLEANUPS: Dict[LyricsType, Callable[[str], str]] = {
    LyricsType.ROMAJI_CV: cleanup_romaji_cv,
    LyricsType.ROMAJI_VCV: cleanup_romaji_vcv,
    LyricsType.KANA_CV: cleanup_kana_cv,
    LyricsType.KANA_VCV: cleanup_kana_vcv,
}


def normalize_lyric(text: str, lyrics_type: LyricsType) -> str:
    cleanup = _CLEANUPS.get(lyrics_type)
    if cleanup is None:
        return text
    return cleanup(text)


def cleanup_tracks(tracks: Sequence[Track], lyrics_type: LyricsType) -> Tuple[Track, ...]:
    """Return new tracks whose note lyrics are normalized"""
    if lyrics_type == LyricsType.UNKNOWN:
        return tuple(tracks)
    return tuple(
        replace(track, notes=tuple(
            replace(note, lyric=normalize_lyric(note.lyric, lyrics_type))
            for note in track.notes
        ))
        for track in tracks
    )


def cleanup_project(project: Project, lyrics_type: LyricsType) -> Project:
    return project.with_tracks(cleanup_tracks(project.tracks, lyrics_type))
