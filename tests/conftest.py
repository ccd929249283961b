import io
import json
import zipfile

import pytest

from project_model import Format, Note, Project, Tempo, TimeSignature, Track
from settings import DEFAULT_TEMPLATES_DIR
from template_registry import TemplateRegistry


@pytest.fixture(scope='session')
def registry():
    return TemplateRegistry.load(DEFAULT_TEMPLATES_DIR)


def make_zip(entries):
    """Zip archive from a {path: str or bytes} mapping"""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
        for path, content in entries.items():
            zf.writestr(path, content)
    return buffer.getvalue()


def make_ppsf(project_fields, gui_settings=None):
    """A .ppsf archive whose ppsf.json project object has the given fields"""
    root = {'app_ver': '1.0.0.0', 'ppsf_ver': '1.0', 'project': project_fields}
    if gui_settings is not None:
        root['gui_settings'] = gui_settings
    return make_zip({'ppsf.json': json.dumps({'ppsf': root}, ensure_ascii=False)})


def read_zip_json(data, path):
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return json.loads(zf.read(path).decode('utf-8'))


def make_note(tick_on, tick_off, key=60, lyric='あ'):
    return Note(id=0, key=key, lyric=lyric, tick_on=tick_on, tick_off=tick_off)


def make_project(tracks=None, tempos=None, time_signatures=None, name='song', fmt=Format.PPSF):
    if tracks is None:
        tracks = [Track(id=0, name='Vocal', notes=(
            make_note(0, 480, 60, 'さ'),
            make_note(480, 960, 62, 'く'),
            make_note(960, 1920, 64, 'ら'),
        ))]
    return Project(
        format=fmt,
        input_files=('song.' + fmt.value,),
        name=name,
        tracks=tuple(tracks),
        time_signatures=tuple(time_signatures or (TimeSignature.default(),)),
        tempos=tuple(tempos or (Tempo.default(),)),
    )


@pytest.fixture
def project():
    return make_project()


def note_tuples(track):
    return [(n.key, n.lyric, n.tick_on, n.tick_off) for n in track.notes]
