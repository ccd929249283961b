import io
import zipfile

import pytest

from conftest import make_zip
from conversion_errors import CorruptArchiveError, IllegalFileError
from zip_container import create_archive, read_entry


def _not_a_zip(file_name):
    return IllegalFileError('not a zip', file_name)


def test_first_present_candidate_wins():
    data = make_zip({'b.json': 'B', 'a.json': 'A'})
    entry = read_entry(data, ['missing.json', 'a.json', 'b.json'], 'x.zip', _not_a_zip)
    assert entry.path == 'a.json'
    assert entry.data == b'A'
    assert entry.tried == ('missing.json', 'a.json')


def test_missing_entry_lists_tried_paths():
    with pytest.raises(CorruptArchiveError) as excinfo:
        read_entry(make_zip({'c.json': 'C'}), ['a.json', 'b.json'], 'x.zip', _not_a_zip)
    assert 'a.json, b.json' in str(excinfo.value)


def _patch_central_directory(data, offset, value):
    patched = bytearray(data)
    header = patched.index(b'PK\x01\x02')
    patched[header + offset:header + offset + 2] = value.to_bytes(2, 'little')
    return bytes(patched)


@pytest.mark.parametrize('offset, value', [
    (10, 99),  # compression method nobody implements
    (8, 0x1),  # encrypted flag
])
def test_unreadable_entry_is_corrupt(offset, value):
    data = _patch_central_directory(make_zip({'a.json': '{}'}), offset, value)
    with pytest.raises(CorruptArchiveError) as excinfo:
        read_entry(data, ['a.json'], 'x.zip', _not_a_zip)
    assert excinfo.value.kind == 'corrupt_archive'


def test_non_zip_uses_the_given_error():
    with pytest.raises(IllegalFileError):
        read_entry(b'plain bytes', ['a.json'], 'x.zip', _not_a_zip)


def test_create_archive():
    data = create_archive('dir/entry.json', '{"lyric": "あ"}')
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.namelist() == ['dir/entry.json']
        assert zf.getinfo('dir/entry.json').compress_type == zipfile.ZIP_DEFLATED
        assert zf.read('dir/entry.json').decode('utf-8') == '{"lyric": "あ"}'
