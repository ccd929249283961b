import json

import pytest

import vpr_codec
from conftest import make_note, make_project, make_zip, note_tuples, read_zip_json
from conversion_errors import CorruptArchiveError, IllegalFileError
from project_model import ExportWarning, Format, ImportParams, ImportWarning, Tempo, TimeSignature, Track

PARAMS = ImportParams(default_lyric='ら')


def _sequence(**overrides):
    sequence = {
        'title': 'vpr song',
        'masterTrack': {
            'tempo': {'global': {'isEnabled': False, 'value': 12000},
                      'events': [{'pos': 0, 'value': 14000}, {'pos': 1920, 'value': 9050}]},
            'timeSig': {'events': [{'bar': 0, 'numer': 3, 'denom': 4}]},
        },
        'tracks': [
            {'type': 0, 'name': 'Vocal', 'parts': [
                {'pos': 1920, 'notes': [
                    {'lyric': 'か', 'pos': 0, 'duration': 480, 'number': 60},
                    {'lyric': '', 'pos': 480, 'duration': 480, 'number': 62},
                ]},
            ]},
            {'type': 1, 'name': 'Audio', 'parts': []},
        ],
    }
    sequence.update(overrides)
    return sequence


def _archive(sequence, path='Project/sequence.json'):
    return make_zip({path: json.dumps(sequence, ensure_ascii=False)})


def test_parse_sequence():
    project = vpr_codec.parse(_archive(_sequence()), PARAMS, 'x.vpr')
    assert project.format == Format.VPR
    assert project.name == 'vpr song'
    assert project.tempos == (Tempo(0, 140.0), Tempo(1920, 90.5))
    assert project.time_signatures == (TimeSignature(0, 3, 4),)
    # Audio tracks are ignored, note positions are relative to the part
    assert [t.name for t in project.tracks] == ['Vocal']
    assert note_tuples(project.tracks[0]) == [(60, 'か', 1920, 2400), (62, 'ら', 2400, 2880)]


def test_enabled_global_tempo_wins():
    sequence = _sequence()
    sequence['masterTrack']['tempo']['global'] = {'isEnabled': True, 'value': 10000}
    project = vpr_codec.parse(_archive(sequence), PARAMS, 'x.vpr')
    assert project.tempos == (Tempo(0, 100.0),)


def test_disabled_global_tempo_plays_until_the_first_event():
    sequence = _sequence()
    sequence['masterTrack']['tempo'] = {'global': {'isEnabled': False, 'value': 14000},
                                        'events': [{'pos': 1920, 'value': 9000}]}
    sequence['masterTrack']['timeSig'] = {'events': [{'bar': 2, 'numer': 3, 'denom': 4}]}
    project = vpr_codec.parse(_archive(sequence), PARAMS, 'x.vpr')
    assert project.tempos == (Tempo(0, 140.0), Tempo(1920, 90.0))
    assert project.time_signatures == (TimeSignature(0, 4, 4), TimeSignature(2, 3, 4))
    assert project.import_warnings == ()


def test_root_level_entry_is_accepted():
    project = vpr_codec.parse(_archive(_sequence(), path='sequence.json'), PARAMS, 'x.vpr')
    assert project.name == 'vpr song'


def test_missing_master_track_uses_defaults():
    sequence = _sequence()
    del sequence['masterTrack']
    project = vpr_codec.parse(_archive(sequence), PARAMS, 'x.vpr')
    assert project.tempos == (Tempo(0, 120.0),)
    assert project.time_signatures == (TimeSignature(0, 4, 4),)
    assert set(project.import_warnings) == {ImportWarning.TEMPO_NOT_FOUND, ImportWarning.TIME_SIGNATURE_NOT_FOUND}


def test_invalid_inputs():
    with pytest.raises(IllegalFileError):
        vpr_codec.parse(b'not a zip', PARAMS, 'x.vpr')
    with pytest.raises(CorruptArchiveError):
        vpr_codec.parse(make_zip({'Project/other.json': '{}'}), PARAMS, 'x.vpr')
    with pytest.raises(IllegalFileError):
        vpr_codec.parse(make_zip({'Project/sequence.json': '[]'}), PARAMS, 'x.vpr')


def test_round_trip(registry):
    source = make_project(
        tempos=[Tempo(0, 150.0), Tempo(960, 75.5)],
        time_signatures=[TimeSignature(0, 4, 4), TimeSignature(3, 5, 4)],
    )
    result = vpr_codec.generate(source, registry=registry)
    assert result.file_name == 'song.vpr'
    assert result.warnings == (ExportWarning.PHONEME_RESET_REQUIRED,)

    parsed = vpr_codec.parse(result.data, PARAMS, result.file_name)
    assert parsed.tempos == source.tempos
    assert parsed.time_signatures == source.time_signatures
    assert note_tuples(parsed.tracks[0]) == note_tuples(source.tracks[0])


def test_generated_sequence_keeps_template_fields(registry):
    tracks = [Track(0, 'a', (make_note(0, 480, 60, 'か'),)), Track(1, 'b', ())]
    sequence = read_zip_json(vpr_codec.generate(make_project(tracks=tracks), registry=registry).data,
                             vpr_codec.ENTRY_PATHS[0])
    assert sequence['title'] == 'song'
    assert sequence['voices'][0]['compID'] == 'AAAAAAAAAAAAAAAAA'
    assert sequence['masterTrack']['tempo']['global']['isEnabled'] is False

    first, second = sequence['tracks']
    assert [first['color'], second['color']] == [0, 1]
    assert first['parts'][0]['duration'] == 480 + 480
    note = first['parts'][0]['notes'][0]
    assert (note['lyric'], note['phoneme'], note['number'], note['pos'], note['duration']) == ('か', 'か', 60, 0, 480)
    assert note['exp']['opening'] == 127
    assert second['parts'][0]['notes'] == []
