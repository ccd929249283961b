from import_policy import (
    ensure_tempos, ensure_time_signatures, shift_tempos, shift_time_signatures, with_leading_entry
)
from project_model import ImportWarning, Tempo, TimeSignature


def test_missing_tempo_gets_default_and_warning():
    warnings = []
    assert ensure_tempos([], warnings) == (Tempo(0, 120.0),)
    assert warnings == [ImportWarning.TEMPO_NOT_FOUND]


def test_missing_time_signature_gets_default_and_warning():
    warnings = []
    assert ensure_time_signatures([], warnings) == (TimeSignature(0, 4, 4),)
    assert warnings == [ImportWarning.TIME_SIGNATURE_NOT_FOUND]


def test_present_values_are_sorted_without_warning():
    warnings = []
    tempos = ensure_tempos([Tempo(960, 90.0), Tempo(0, 140.0)], warnings)
    assert tempos == (Tempo(0, 140.0), Tempo(960, 90.0))
    assert warnings == []


def test_duplicate_positions_keep_the_last_entry():
    tempos = ensure_tempos([Tempo(0, 100.0), Tempo(0, 150.0)], [])
    assert tempos == (Tempo(0, 150.0),)


def test_late_first_entry_keeps_its_position():
    warnings = []
    assert ensure_tempos([Tempo(480, 100.0)], warnings) == (Tempo(0, 120.0), Tempo(480, 100.0))
    assert ensure_time_signatures([TimeSignature(3, 3, 4)], warnings) == (
        TimeSignature(0, 4, 4), TimeSignature(3, 3, 4))
    assert warnings == []


def test_with_leading_entry():
    position = lambda t: t.tick_position  # noqa: E731
    assert with_leading_entry([Tempo(480, 90.0)], Tempo(0, 120.0), position) == [Tempo(0, 120.0), Tempo(480, 90.0)]
    assert with_leading_entry([Tempo(0, 90.0)], Tempo(0, 120.0), position) == [Tempo(0, 90.0)]


def test_shift_tempos_keeps_last_value_inside_the_offset():
    tempos = [Tempo(0, 100.0), Tempo(1000, 110.0), Tempo(2500, 130.0)]
    assert shift_tempos(tempos, 1920) == [Tempo(0, 110.0), Tempo(580, 130.0)]


def test_shift_time_signatures():
    signatures = [TimeSignature(0, 4, 4), TimeSignature(1, 3, 4), TimeSignature(4, 6, 8)]
    assert shift_time_signatures(signatures, 1) == [TimeSignature(0, 3, 4), TimeSignature(3, 6, 8)]
