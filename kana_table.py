"""
Kana Table Module
Japanese kana <-> romaji pairs used to recognize lyric syllables.
Katakana entries are derived from the hiragana ones.
"""

from typing import FrozenSet, List, Tuple

HIRAGANA_ROMAJI: List[Tuple[str, str]] = [
    ('あ', 'a'), ('い', 'i'), ('う', 'u'), ('え', 'e'), ('お', 'o'),
    ('か', 'ka'), ('き', 'ki'), ('く', 'ku'), ('け', 'ke'), ('こ', 'ko'),
    ('さ', 'sa'), ('し', 'shi'), ('す', 'su'), ('せ', 'se'), ('そ', 'so'),
    ('た', 'ta'), ('ち', 'chi'), ('つ', 'tsu'), ('て', 'te'), ('と', 'to'),
    ('な', 'na'), ('に', 'ni'), ('ぬ', 'nu'), ('ね', 'ne'), ('の', 'no'),
    ('は', 'ha'), ('ひ', 'hi'), ('ふ', 'fu'), ('へ', 'he'), ('ほ', 'ho'),
    ('ま', 'ma'), ('み', 'mi'), ('む', 'mu'), ('め', 'me'), ('も', 'mo'),
    ('や', 'ya'), ('ゆ', 'yu'), ('よ', 'yo'),
    ('ら', 'ra'), ('り', 'ri'), ('る', 'ru'), ('れ', 're'), ('ろ', 'ro'),
    ('わ', 'wa'), ('を', 'wo'), ('ん', 'n'),
    ('が', 'ga'), ('ぎ', 'gi'), ('ぐ', 'gu'), ('げ', 'ge'), ('ご', 'go'),
    ('ざ', 'za'), ('じ', 'ji'), ('ず', 'zu'), ('ぜ', 'ze'), ('ぞ', 'zo'),
    ('だ', 'da'), ('ぢ', 'di'), ('づ', 'du'), ('で', 'de'), ('ど', 'do'),
    ('ば', 'ba'), ('び', 'bi'), ('ぶ', 'bu'), ('べ', 'be'), ('ぼ', 'bo'),
    ('ぱ', 'pa'), ('ぴ', 'pi'), ('ぷ', 'pu'), ('ぺ', 'pe'), ('ぽ', 'po'),
    ('ゔ', 'vu'),
    # Contracted sounds
    ('きゃ', 'kya'), ('きゅ', 'kyu'), ('きぇ', 'kye'), ('きょ', 'kyo'),
    ('しゃ', 'sha'), ('しゅ', 'shu'), ('しぇ', 'she'), ('しょ', 'sho'),
    ('ちゃ', 'cha'), ('ちゅ', 'chu'), ('ちぇ', 'che'), ('ちょ', 'cho'),
    ('にゃ', 'nya'), ('にゅ', 'nyu'), ('にぇ', 'nye'), ('にょ', 'nyo'),
    ('ひゃ', 'hya'), ('ひゅ', 'hyu'), ('ひぇ', 'hye'), ('ひょ', 'hyo'),
    ('みゃ', 'mya'), ('みゅ', 'myu'), ('みぇ', 'mye'), ('みょ', 'myo'),
    ('りゃ', 'rya'), ('りゅ', 'ryu'), ('りぇ', 'rye'), ('りょ', 'ryo'),
    ('ぎゃ', 'gya'), ('ぎゅ', 'gyu'), ('ぎぇ', 'gye'), ('ぎょ', 'gyo'),
    ('じゃ', 'ja'), ('じゅ', 'ju'), ('じぇ', 'je'), ('じょ', 'jo'),
    ('びゃ', 'bya'), ('びゅ', 'byu'), ('びぇ', 'bye'), ('びょ', 'byo'),
    ('ぴゃ', 'pya'), ('ぴゅ', 'pyu'), ('ぴぇ', 'pye'), ('ぴょ', 'pyo'),
    # Foreign sounds
    ('いぇ', 'ye'), ('うぃ', 'wi'), ('うぇ', 'we'), ('うぉ', 'who'),
    ('ゔぁ', 'va'), ('ゔぃ', 'vi'), ('ゔぇ', 've'), ('ゔぉ', 'vo'),
    ('ふぁ', 'fa'), ('ふぃ', 'fi'), ('ふぇ', 'fe'), ('ふぉ', 'fo'), ('ふゅ', 'fyu'),
    ('つぁ', 'tsa'), ('つぃ', 'tsi'), ('つぇ', 'tse'), ('つぉ', 'tso'),
    ('てぃ', 'ti'), ('とぅ', 'tu'), ('てゅ', 'tyu'),
    ('でぃ', 'dhi'), ('どぅ', 'dhu'), ('でゅ', 'dyu'),
    ('すぃ', 'si'), ('ずぃ', 'zi'),
    ('くぁ', 'kwa'), ('ぐぁ', 'gwa'),
]

_KATAKANA_OFFSET = ord('ア') - ord('あ')


def to_katakana(text: str) -> str:
    return ''.join(
        chr(ord(c) + _KATAKANA_OFFSET) if 'ぁ' <= c <= 'ゖ' else c
        for c in text
    )


HIRAGANA: FrozenSet[str] = frozenset(kana for kana, _ in HIRAGANA_ROMAJI)
KATAKANA: FrozenSet[str] = frozenset(to_katakana(kana) for kana in HIRAGANA)
KANAS: FrozenSet[str] = HIRAGANA | KATAKANA
ROMAJIS: FrozenSet[str] = frozenset(romaji for _, romaji in HIRAGANA_ROMAJI)
MAX_ROMAJI_LENGTH = max(len(r) for r in ROMAJIS)


def is_kana(text: str) -> bool:
    return text in KANAS


def is_romaji(text: str) -> bool:
    return text in ROMAJIS
