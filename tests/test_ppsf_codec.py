import pytest

import ppsf_codec
from conftest import make_note, make_ppsf, make_project, make_zip, note_tuples, read_zip_json
from conversion_errors import CorruptArchiveError, IllegalFileError, UnsupportedLegacyPpsfError
from project_model import Format, ImportParams, ImportWarning, Tempo, TimeSignature, Track
from template_merger import mirror_mismatches
from value_tree import from_python

PARAMS = ImportParams(default_lyric='ら')


def _event(pos, length, note_number=60, lyric='あ', **extra):
    event = {'pos': pos, 'length': length, 'note_number': note_number, 'lyric': lyric}
    event.update(extra)
    return event


def _project_fields(**overrides):
    fields = {
        'name': 'demo',
        'dvl_track': [{'name': 'Miku', 'events': [_event(0, 480, 60, 'か'), _event(480, 480, 62, 'な')]}],
        'meter': {'const': {'nume': 3, 'denomi': 4}, 'use_sequence': False},
        'tempo': {'const': 1400000, 'use_sequence': False},
        'sampling_rate': 44100,
    }
    fields.update(overrides)
    return fields


def _generated_root(result):
    return read_zip_json(result.data, ppsf_codec.JSON_PATH)['ppsf']


def test_parse_basic_project():
    project = ppsf_codec.parse(make_ppsf(_project_fields()), PARAMS, 'demo.ppsf')
    assert project.format == Format.PPSF
    assert project.name == 'demo'
    assert project.tempos == (Tempo(0, 140.0),)
    assert project.time_signatures == (TimeSignature(0, 3, 4),)
    assert project.import_warnings == ()
    assert project.tracks[0].name == 'Miku'
    assert note_tuples(project.tracks[0]) == [(60, 'か', 0, 480), (62, 'な', 480, 960)]


def test_parse_sequences():
    fields = _project_fields(
        meter={'const': {'nume': 4, 'denomi': 4}, 'use_sequence': True,
               'sequence': [{'measure': 2, 'nume': 6, 'denomi': 8}]},
        tempo={'const': 1200000, 'use_sequence': True,
               'sequence': [{'tick': 0, 'value': 1000000}, {'tick': 1920, 'value': 1505000}]},
    )
    project = ppsf_codec.parse(make_ppsf(fields), PARAMS, 'demo.ppsf')
    assert project.time_signatures == (TimeSignature(0, 4, 4), TimeSignature(2, 6, 8))
    # A sequence entry at tick 0 takes precedence over the constant
    assert project.tempos == (Tempo(0, 100.0), Tempo(1920, 150.5))


def test_missing_tempo_and_meter_use_defaults():
    fields = _project_fields()
    del fields['tempo']
    del fields['meter']
    project = ppsf_codec.parse(make_ppsf(fields), PARAMS, 'demo.ppsf')
    assert project.tempos == (Tempo(0, 120.0),)
    assert project.time_signatures == (TimeSignature(0, 4, 4),)
    assert set(project.import_warnings) == {ImportWarning.TEMPO_NOT_FOUND, ImportWarning.TIME_SIGNATURE_NOT_FOUND}


def test_parse_tolerates_unknown_fields_and_missing_optionals():
    fields = _project_fields(
        dvl_track=[{'events': [_event(0, 240, lyric='', future_field={'x': 1}), _event(240, 240, enabled=False)],
                    'mystery': [1, 2, 3]}],
        brand_new_block={'a': True},
    )
    del fields['name']
    project = ppsf_codec.parse(make_ppsf(fields), PARAMS, 'my song.ppsf')
    assert project.name == 'my song'
    assert project.tracks[0].name == 'Track 1'
    # Disabled events are skipped, blank lyrics get the default
    assert note_tuples(project.tracks[0]) == [(60, 'ら', 0, 240)]


def test_non_zip_input_is_legacy():
    with pytest.raises(UnsupportedLegacyPpsfError) as excinfo:
        ppsf_codec.parse(b'PPSF legacy binary \x00\x01', PARAMS, 'old.ppsf')
    assert excinfo.value.kind == 'unsupported_legacy_ppsf'
    assert excinfo.value.file_name == 'old.ppsf'


def test_zip_without_project_entry_is_corrupt():
    with pytest.raises(CorruptArchiveError):
        ppsf_codec.parse(make_zip({'other.json': '{}'}), PARAMS, 'broken.ppsf')


def test_invalid_json_or_structure_is_illegal():
    with pytest.raises(IllegalFileError):
        ppsf_codec.parse(make_zip({'ppsf.json': '{not json'}), PARAMS, 'broken.ppsf')
    with pytest.raises(IllegalFileError):
        ppsf_codec.parse(make_zip({'ppsf.json': '{"ppsf": {}}'}), PARAMS, 'broken.ppsf')
    with pytest.raises(IllegalFileError):
        ppsf_codec.parse(make_ppsf(_project_fields(tempo={'const': 'fast'})), PARAMS, 'broken.ppsf')


def test_round_trip(registry):
    source = make_project(
        tempos=[Tempo(0, 128.0), Tempo(3840, 96.5)],
        time_signatures=[TimeSignature(0, 4, 4), TimeSignature(4, 3, 4)],
    )
    result = ppsf_codec.generate(source, registry=registry)
    assert result.file_name == 'song.ppsf'
    assert result.warnings == ()

    parsed = ppsf_codec.parse(result.data, PARAMS, result.file_name)
    assert note_tuples(parsed.tracks[0]) == note_tuples(source.tracks[0])
    assert parsed.tempos == source.tempos
    assert parsed.time_signatures == source.time_signatures
    assert parsed.name == 'song'
    assert parsed.import_warnings == ()


def test_event_count_follows_notes_not_template(registry):
    for count in (0, 1, 5):
        notes = tuple(make_note(i * 480, i * 480 + 480, 60 + i, 'あ') for i in range(count))
        result = ppsf_codec.generate(make_project(tracks=[Track(0, 'v', notes)]), registry=registry)
        events = _generated_root(result)['project']['dvl_track'][0]['events']
        assert len(events) == count


def test_events_keep_template_fields(registry):
    result = ppsf_codec.generate(make_project(), registry=registry)
    event = _generated_root(result)['project']['dvl_track'][0]['events'][2]
    assert event['lyric'] == 'ら'
    assert event['pos'] == 960
    assert event['length'] == 960
    assert event['note_number'] == 64
    assert event['enabled'] is True
    assert event['note_on_pit_envelope'] == {'length': 0, 'offset': 0, 'points': [], 'use_length': False}
    assert event['consonant_rate'] == 1.0


def test_project_passthrough_fields_survive(registry):
    template_project = registry.get(Format.PPSF).get_object('ppsf').get_object('project')
    result = ppsf_codec.generate(make_project(name='Passthrough'), registry=registry)
    project = _generated_root(result)['project']
    assert project['name'] == 'Passthrough'
    assert project['sampling_rate'] == template_project.get_int('sampling_rate')
    assert project['singer_table'] == template_project.field('singer_table').to_python()
    assert project['dvl_track'][0]['singer'] == template_project.get_array('dvl_track')[0].field('singer').to_python()


def test_tempo_and_meter_encoding(registry):
    source = make_project(tempos=[Tempo(0, 123.456)], time_signatures=[TimeSignature(0, 6, 8)])
    project = _generated_root(ppsf_codec.generate(source, registry=registry))['project']
    assert project['tempo']['const'] == 1234560
    assert project['tempo']['sequence'][0]['value'] == 1234560
    assert project['meter']['const'] == {'denomi': 8, 'nume': 6}
    assert project['meter']['use_sequence'] is True


def test_gui_mirror_matches_events(registry):
    tracks = [
        Track(0, 'a', tuple(make_note(i * 240, i * 240 + 240, 60 + i, 'かきくけこ'[i]) for i in range(5))),
        Track(1, 'b', (make_note(0, 480, 70, 'ー'),)),
    ]
    root = _generated_root(ppsf_codec.generate(make_project(tracks=tracks), registry=registry))
    dvl_tracks = root['project']['dvl_track']
    event_tracks = root['gui_settings']['track-editor']['event_tracks']
    assert len(event_tracks) == len(dvl_tracks) == 2

    for i, (dvl_track, event_track) in enumerate(zip(dvl_tracks, event_tracks)):
        events = from_python(dvl_track['events']).items()
        mirror = from_python(event_track['notes']).items()
        assert event_track['index'] == i
        assert mirror_mismatches(events, mirror, ppsf_codec.NOTE_MIRROR) == []
        assert [n['event_index'] for n in event_track['notes']] == list(range(len(events)))
        assert [n['syllables'][0]['lyric_text'] for n in event_track['notes']] == \
            [e['lyric'] for e in dvl_track['events']]


def test_continuation_lyric_sets_symbols(registry):
    tracks = [Track(0, 'a', (make_note(0, 480, 60, 'あ'), make_note(480, 960, 60, 'ー')))]
    root = _generated_root(ppsf_codec.generate(make_project(tracks=tracks), registry=registry))
    events = root['project']['dvl_track'][0]['events']
    assert events[1]['symbols'] == '-'
    assert root['gui_settings']['track-editor']['event_tracks'][0]['notes'][1]['symbols'] == '-'


def test_generate_repairs_overlapping_notes(registry):
    tracks = [Track(0, 'a', (make_note(0, 600), make_note(480, 960)))]
    parsed = ppsf_codec.parse(
        ppsf_codec.generate(make_project(tracks=tracks), registry=registry).data, PARAMS, 'x.ppsf')
    assert [(n.tick_on, n.tick_off) for n in parsed.tracks[0].notes] == [(0, 480), (480, 960)]
