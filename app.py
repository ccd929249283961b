"""
Vocal Synth Project Converter - Flask Backend
Converts vocal synthesis projects between editor formats

Supported Formats:
- PPSF (Piapro Studio NT)
- VPR (Vocaloid 5/6)
- VSQX (Vocaloid 3/4)
- MID (Standard MIDI File)
"""

import io
import json
import logging
from typing import List, Optional, Tuple

from flask import Flask, current_app, jsonify, request, send_file
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from conversion_errors import ConversionError, InvalidRequestError
from converter import export_project, get_codec, import_project, parse_format, supported_formats
from lyrics_normalizer import LyricsType, cleanup_project
from project_model import Feature, ImportParams, get_file_extension, get_mime_type
from settings import Settings, configure_logging, load_settings
from template_registry import init_registry

logger = logging.getLogger(__name__)

WARNINGS_HEADER = 'X-Conversion-Warnings'


def create_app(settings: Optional[Settings] = None) -> Flask:
    """Build the Flask application; templates are loaded here so a broken install fails at startup"""
    settings = settings or load_settings()
    configure_logging(settings)

    app = Flask(__name__)
    CORS(app, expose_headers=[WARNINGS_HEADER])

    app.config['MAX_CONTENT_LENGTH'] = settings.max_upload_bytes
    app.config['SETTINGS'] = settings
    app.config['TEMPLATE_REGISTRY'] = init_registry(settings.templates_dir)

    app.add_url_rule('/api/formats', 'formats', formats, methods=['GET'])
    app.add_url_rule('/api/inspect', 'inspect', inspect_project, methods=['POST'])
    app.add_url_rule('/api/convert', 'convert', convert, methods=['POST'])
    return app


def _read_upload() -> Tuple[bytes, str]:
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        raise InvalidRequestError('No project file provided')
    return upload.read(), upload.filename


def _import_params() -> ImportParams:
    settings = current_app.config['SETTINGS']
    default_lyric = request.form.get('default_lyric', '').strip()
    return ImportParams(default_lyric=default_lyric or settings.default_lyric)


def _lyrics_type() -> LyricsType:
    value = request.form.get('lyrics_type', LyricsType.UNKNOWN.value)
    try:
        return LyricsType(value)
    except ValueError:
        raise InvalidRequestError(f"Unknown lyrics type '{value}'") from None


def _features() -> List[Feature]:
    raw = request.form.get('features', '')
    features = []
    for value in (v.strip() for v in raw.split(',')):
        if not value:
            continue
        try:
            features.append(Feature(value))
        except ValueError:
            raise InvalidRequestError(f"Unknown feature '{value}'") from None
    return features


def formats():
    """List supported formats, lyric notations and export features"""
    return jsonify({
        'formats': [
            {
                'name': fmt.name,
                'value': fmt.value,
                'extension': get_file_extension(fmt),
                'mime_type': get_mime_type(fmt),
                'features': sorted(f.value for f in get_codec(fmt).supported_features),
            }
            for fmt in supported_formats()
        ],
        'lyrics_types': [t.value for t in LyricsType],
    })


def inspect_project():
    """
    Import a project without converting it
    Returns tracks, tempos, time signatures and import warnings
    """
    try:
        data, file_name = _read_upload()
        project = import_project(data, file_name, _import_params())
        project = cleanup_project(project, _lyrics_type())
        return jsonify(project.summary())

    except ConversionError as e:
        logger.warning("Inspect rejected %s: %s", e.file_name or 'request', e.message)
        return jsonify(e.to_dict()), 400
    except HTTPException:
        # Oversized uploads (413) keep their status
        raise
    except Exception:
        logger.exception("Inspect failed")
        return jsonify({'error': 'Internal error', 'kind': 'internal_error'}), 500


def convert():
    """
    Main conversion endpoint
    Accepts a project file plus target format and lyric options
    Returns the generated project file; warnings go in the X-Conversion-Warnings header
    """
    try:
        data, file_name = _read_upload()
        target = parse_format(request.form.get('target', ''))
        registry = current_app.config['TEMPLATE_REGISTRY']

        project = import_project(data, file_name, _import_params())
        project = cleanup_project(project, _lyrics_type())
        result = export_project(project, target, _features(), registry)

        warnings = [w.value for w in project.import_warnings] + [w.value for w in result.warnings]
        logger.info("Converted %s -> %s (%d bytes)", file_name, result.file_name, len(result.data))

        response = send_file(
            io.BytesIO(result.data),
            mimetype=get_mime_type(target),
            as_attachment=True,
            download_name=result.file_name
        )
        response.headers[WARNINGS_HEADER] = json.dumps(warnings)
        return response

    except ConversionError as e:
        logger.warning("Conversion rejected %s: %s", e.file_name or 'request', e.message)
        return jsonify(e.to_dict()), 400
    except HTTPException:
        # Oversized uploads (413) keep their status
        raise
    except Exception:
        logger.exception("Conversion failed")
        return jsonify({'error': 'Internal error', 'kind': 'internal_error'}), 500


if __name__ == '__main__':
    create_app().run(debug=True, port=5000)
