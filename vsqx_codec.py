"""
VSQX Codec Module
VOCALOID 3/4 XML projects.

Both vsq3 and vsq4 files are read; files are always written as vsq4.
Positions in a vsqx include the pre-measures, which are stripped on
import and recorded as the project's measure prefix.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from xml.dom import minidom

from conversion_errors import IllegalFileError
from import_policy import (
    ensure_tempos, ensure_time_signatures, shift_tempos, shift_time_signatures, with_leading_entry
)
from project_model import (
    ExportResult, ExportWarning, Feature, Format, ImportParams, Note, Project,
    Tempo, TimeSignature, Track, TICKS_PER_BEAT, rescale_tick, tick_of_measure,
    ticks_per_measure, validate_notes
)

logger = logging.getLogger(__name__)

FORMAT = Format.VSQX
VSQ3_NS = 'http://www.yamaha.co.jp/vocaloid/schema/vsq3/'
VSQ4_NS = 'http://www.yamaha.co.jp/vocaloid/schema/vsq4/'
BPM_RATE = 100
DEFAULT_PRE_MEASURE = 1
DEFAULT_VELOCITY = 64
SUPPORTED_FEATURES = frozenset()

DEFAULT_SINGER = {'id': 'AAAAAAAAAAAAAAAAA', 'name': 'Default Singer'}

PART_STYLES = [
    ('accent', '50'),
    ('bendDep', '8'),
    ('bendLen', '0'),
    ('decay', '50'),
    ('fallPort', '0'),
    ('opening', '127'),
    ('risePort', '0'),
]

NOTE_STYLES = PART_STYLES + [
    ('vibLen', '0'),
    ('vibType', '0'),
]


@dataclass(frozen=True)
class _Tags:
    """Element names that differ between schema versions"""
    part: str
    part_tick: str
    track_names: Tuple[str, ...]
    note_tick: str
    duration: str
    note_number: str
    lyric: str
    measure: str
    numerator: str
    denominator: str
    tempo_tick: str
    tempo_value: str


VSQ3_TAGS = _Tags(
    part='musicalPart', part_tick='posTick', track_names=('trackName', 'name'),
    note_tick='posTick', duration='durTick', note_number='noteNum', lyric='lyric',
    measure='posMes', numerator='nume', denominator='denomi',
    tempo_tick='posTick', tempo_value='bpm',
)

VSQ4_TAGS = _Tags(
    part='vsPart', part_tick='t', track_names=('name',),
    note_tick='t', duration='dur', note_number='n', lyric='y',
    measure='m', numerator='nu', denominator='de',
    tempo_tick='t', tempo_value='v',
)

_SCHEMAS = {
    f'{{{VSQ3_NS}}}vsq3': (VSQ3_NS, VSQ3_TAGS),
    f'{{{VSQ4_NS}}}vsq4': (VSQ4_NS, VSQ4_TAGS),
}


def parse(data: bytes, params: ImportParams, file_name: str = 'untitled.vsqx') -> Project:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise IllegalFileError(f"Not a valid XML document: {e}", file_name) from e

    schema = _SCHEMAS.get(root.tag)
    if schema is None:
        raise IllegalFileError(f"Unknown vsqx root element {root.tag}", file_name)
    ns, tags = schema

    try:
        return _parse_root(root, '{%s}' % ns, tags, params, file_name)
    except ValueError as e:
        raise IllegalFileError(f"Invalid vsqx project: {e}", file_name) from e


def _find_text(elem: ET.Element, ns: str, *names: str) -> Optional[str]:
    for name in names:
        child = elem.find(ns + name)
        if child is not None and child.text is not None:
            return child.text.strip()
    return None


def _require_int(elem: ET.Element, ns: str, name: str) -> int:
    text = _find_text(elem, ns, name)
    if text is None:
        raise ValueError(f"<{name}> missing in <{elem.tag.split('}')[-1]}>")
    return int(text)


def _parse_root(root: ET.Element, ns: str, tags: _Tags, params: ImportParams, file_name: str) -> Project:
    warnings = []
    master = root.find(ns + 'masterTrack')
    if master is None:
        raise ValueError("<masterTrack> missing")

    name = _find_text(master, ns, 'seqName') or Path(file_name).stem
    resolution = int(_find_text(master, ns, 'resolution') or TICKS_PER_BEAT)
    if resolution <= 0:
        raise ValueError(f"resolution must be positive, got {resolution}")
    pre_measure = int(_find_text(master, ns, 'preMeasure') or 0)

    raw_time_signatures = [
        TimeSignature(
            measure_position=_require_int(ts, ns, tags.measure),
            numerator=_require_int(ts, ns, tags.numerator),
            denominator=_require_int(ts, ns, tags.denominator),
        )
        for ts in master.findall(ns + 'timeSig')
    ]
    raw_tempos = [
        Tempo(
            tick_position=rescale_tick(_require_int(t, ns, tags.tempo_tick), resolution),
            bpm=_require_int(t, ns, tags.tempo_value) / BPM_RATE,
        )
        for t in master.findall(ns + 'tempo')
    ]

    # Pre-measure length is measured with the meter in effect at the song start
    meter_for_prefix = with_leading_entry(
        sorted(raw_time_signatures, key=lambda ts: ts.measure_position),
        TimeSignature.default(),
        lambda ts: ts.measure_position,
    )
    tick_prefix = tick_of_measure(meter_for_prefix, pre_measure)

    time_signatures = ensure_time_signatures(shift_time_signatures(raw_time_signatures, pre_measure), warnings)
    tempos = ensure_tempos(shift_tempos(raw_tempos, tick_prefix), warnings)

    tracks = tuple(
        _parse_track(i, vs_track, ns, tags, resolution, tick_prefix, params.default_lyric)
        for i, vs_track in enumerate(root.findall(ns + 'vsTrack'))
    )

    return Project(
        format=FORMAT,
        input_files=(file_name,),
        name=name,
        tracks=tracks,
        time_signatures=time_signatures,
        tempos=tempos,
        measure_prefix=pre_measure,
        import_warnings=tuple(warnings),
    )


def _parse_track(
    index: int,
    vs_track: ET.Element,
    ns: str,
    tags: _Tags,
    resolution: int,
    tick_prefix: int,
    default_lyric: str
) -> Track:
    name = _find_text(vs_track, ns, *tags.track_names) or f"Track {index + 1}"
    notes = []
    skipped = 0
    for part in vs_track.findall(ns + tags.part):
        part_tick = int(_find_text(part, ns, tags.part_tick) or 0)
        for note in part.findall(ns + 'note'):
            tick_on = rescale_tick(part_tick + _require_int(note, ns, tags.note_tick), resolution) - tick_prefix
            length = rescale_tick(_require_int(note, ns, tags.duration), resolution)
            if tick_on < 0:
                skipped += 1
                continue
            lyric = _find_text(note, ns, tags.lyric)
            notes.append(Note(
                id=0,
                key=_require_int(note, ns, tags.note_number),
                lyric=lyric if lyric else default_lyric,
                tick_on=tick_on,
                tick_off=tick_on + length,
            ))
    if skipped:
        logger.warning("Track %r: skipped %d note(s) placed inside the pre-measures", name, skipped)
    return validate_notes(Track(id=index, name=name, notes=tuple(notes)))


def generate(project: Project, features: Sequence[Feature] = ()) -> ExportResult:
    """Generate VSQ4 (Vocaloid 4) format"""
    pre_measure = project.measure_prefix or DEFAULT_PRE_MEASURE
    tick_prefix = pre_measure * ticks_per_measure(project.time_signatures[0])
    tracks = [validate_notes(track) for track in project.tracks]

    root = ET.Element('vsq4')
    root.set('xmlns', VSQ4_NS)
    root.set('xmlns:xsi', 'http://www.w3.org/2001/XMLSchema-instance')
    root.set('xsi:schemaLocation', f'{VSQ4_NS} vsq4.xsd')

    ET.SubElement(root, 'vender').text = 'Yamaha corporation'
    ET.SubElement(root, 'version').text = '4.0.0.3'

    # Voice table
    voice_table = ET.SubElement(root, 'vVoiceTable')
    voice = ET.SubElement(voice_table, 'vVoice')
    ET.SubElement(voice, 'bs').text = '1'
    ET.SubElement(voice, 'pc').text = '0'
    ET.SubElement(voice, 'id').text = DEFAULT_SINGER['id']
    ET.SubElement(voice, 'name').text = DEFAULT_SINGER['name']

    v_prm = ET.SubElement(voice, 'vPrm')
    for prm in ('bre', 'bri', 'cle', 'gen', 'ope'):
        ET.SubElement(v_prm, prm).text = '0'

    _add_mixer(root, len(tracks))

    # Master track
    master_track = ET.SubElement(root, 'masterTrack')
    ET.SubElement(master_track, 'seqName').text = project.name
    ET.SubElement(master_track, 'comment').text = project.name
    ET.SubElement(master_track, 'resolution').text = str(TICKS_PER_BEAT)
    ET.SubElement(master_track, 'preMeasure').text = str(pre_measure)

    for i, ts in enumerate(project.time_signatures):
        time_sig = ET.SubElement(master_track, 'timeSig')
        ET.SubElement(time_sig, 'm').text = str(0 if i == 0 else ts.measure_position + pre_measure)
        ET.SubElement(time_sig, 'nu').text = str(ts.numerator)
        ET.SubElement(time_sig, 'de').text = str(ts.denominator)

    for i, tempo in enumerate(project.tempos):
        tempo_elem = ET.SubElement(master_track, 'tempo')
        ET.SubElement(tempo_elem, 't').text = str(0 if i == 0 else tempo.tick_position + tick_prefix)
        ET.SubElement(tempo_elem, 'v').text = str(int(round(tempo.bpm * BPM_RATE)))

    for i, track in enumerate(tracks):
        _add_track(root, i, track, tick_prefix)

    # monoTrack and stTrack (empty but required)
    ET.SubElement(root, 'monoTrack')
    ET.SubElement(root, 'stTrack')

    # aux element - required
    aux = ET.SubElement(root, 'aux')
    ET.SubElement(aux, 'id').text = 'AUX_VST_HOST_CHUNK_INFO'
    ET.SubElement(aux, 'content').text = 'VlNDSwAAAAADAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA='

    return ExportResult(
        data=_prettify_xml(root).encode('utf-8'),
        file_name=FORMAT.file_name(project.name),
        warnings=(ExportWarning.PHONEME_RESET_REQUIRED,),
    )


def _add_mixer(root: ET.Element, track_count: int) -> None:
    mixer = ET.SubElement(root, 'mixer')

    master_unit = ET.SubElement(mixer, 'masterUnit')
    ET.SubElement(master_unit, 'oDev').text = '0'
    ET.SubElement(master_unit, 'rLvl').text = '0'
    ET.SubElement(master_unit, 'vol').text = '0'

    for i in range(track_count):
        vs_unit = ET.SubElement(mixer, 'vsUnit')
        ET.SubElement(vs_unit, 'tNo').text = str(i)
        ET.SubElement(vs_unit, 'iGin').text = '0'
        ET.SubElement(vs_unit, 'sLvl').text = '-898'
        ET.SubElement(vs_unit, 'sEnable').text = '0'
        ET.SubElement(vs_unit, 'm').text = '0'
        ET.SubElement(vs_unit, 's').text = '0'
        ET.SubElement(vs_unit, 'pan').text = '64'
        ET.SubElement(vs_unit, 'vol').text = '0'

    mono_unit = ET.SubElement(mixer, 'monoUnit')
    ET.SubElement(mono_unit, 'iGin').text = '0'
    ET.SubElement(mono_unit, 'sLvl').text = '-898'
    ET.SubElement(mono_unit, 'sEnable').text = '0'
    ET.SubElement(mono_unit, 'm').text = '0'
    ET.SubElement(mono_unit, 's').text = '0'
    ET.SubElement(mono_unit, 'pan').text = '64'
    ET.SubElement(mono_unit, 'vol').text = '0'

    st_unit = ET.SubElement(mixer, 'stUnit')
    ET.SubElement(st_unit, 'iGin').text = '0'
    ET.SubElement(st_unit, 'm').text = '0'
    ET.SubElement(st_unit, 's').text = '0'
    ET.SubElement(st_unit, 'vol').text = '-129'


def _add_track(root: ET.Element, index: int, track: Track, tick_prefix: int) -> None:
    vs_track = ET.SubElement(root, 'vsTrack')
    ET.SubElement(vs_track, 'tNo').text = str(index)
    ET.SubElement(vs_track, 'name').text = track.name
    ET.SubElement(vs_track, 'comment').text = track.name

    # Notes are positioned relative to the part, which starts after the pre-measures
    vs_part = ET.SubElement(vs_track, 'vsPart')
    ET.SubElement(vs_part, 't').text = str(tick_prefix)
    ET.SubElement(vs_part, 'playTime').text = str(_get_total_ticks(track.notes))
    ET.SubElement(vs_part, 'name').text = track.name
    ET.SubElement(vs_part, 'comment').text = track.name

    # sPlug (singing style plugin) - required
    s_plug = ET.SubElement(vs_part, 'sPlug')
    ET.SubElement(s_plug, 'id').text = 'ACA9C502-A04B-42b5-B2EB-5CEA36D16FCE'
    ET.SubElement(s_plug, 'name').text = 'VOCALOID2 Compatible Style'
    ET.SubElement(s_plug, 'version').text = '3.0.0.1'

    p_style = ET.SubElement(vs_part, 'pStyle')
    _add_style_elements(p_style, PART_STYLES)

    singer_elem = ET.SubElement(vs_part, 'singer')
    ET.SubElement(singer_elem, 't').text = '0'
    ET.SubElement(singer_elem, 'bs').text = '1'
    ET.SubElement(singer_elem, 'pc').text = '0'

    for note in track.notes:
        _add_note(vs_part, note)

    # plane element at end of vsPart - required
    ET.SubElement(vs_part, 'plane').text = '0'


def _add_style_elements(parent: ET.Element, styles: List[Tuple[str, str]]) -> None:
    for id_val, val in styles:
        v_elem = ET.SubElement(parent, 'v')
        v_elem.set('id', id_val)
        v_elem.text = val


def _add_note(parent: ET.Element, note: Note) -> None:
    note_elem = ET.SubElement(parent, 'note')
    ET.SubElement(note_elem, 't').text = str(note.tick_on)
    ET.SubElement(note_elem, 'dur').text = str(note.length)
    ET.SubElement(note_elem, 'n').text = str(note.key)
    ET.SubElement(note_elem, 'v').text = str(DEFAULT_VELOCITY)
    ET.SubElement(note_elem, 'y').text = note.lyric
    # Phoneme is regenerated by the editor once the lyric is touched
    ET.SubElement(note_elem, 'p').text = note.lyric

    n_style = ET.SubElement(note_elem, 'nStyle')
    _add_style_elements(n_style, NOTE_STYLES)


def _get_total_ticks(notes: Sequence[Note]) -> int:
    """Calculate part duration in ticks"""
    if not notes:
        return 4 * TICKS_PER_BEAT  # Default 1 measure

    # Add some padding
    return notes[-1].tick_off + TICKS_PER_BEAT


def _prettify_xml(elem: ET.Element) -> str:
    """Return a pretty-printed XML string with proper declaration"""
    rough_string = ET.tostring(elem, encoding='unicode')
    reparsed = minidom.parseString(rough_string)
    xml_str = reparsed.toprettyxml(indent='  ')
    # Replace default declaration with UTF-8 declaration
    if xml_str.startswith('<?xml'):
        newline_pos = xml_str.find('?>')
        xml_str = '<?xml version="1.0" encoding="UTF-8"?>' + xml_str[newline_pos + 2:]
    return xml_str
