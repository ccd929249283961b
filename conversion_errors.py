"""
Conversion Errors Module
Typed failures raised by codecs and the conversion pipeline.

Every error carries a stable ``kind`` string so the HTTP layer can report
the specific reason a file was rejected.
"""

from typing import Optional


class ConversionError(Exception):
    """Base class for all conversion failures"""
    kind = 'conversion_error'

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.file_name = file_name

    def to_dict(self) -> dict:
        result = {'kind': self.kind, 'error': self.message}
        if self.file_name:
            result['file'] = self.file_name
        return result


class UnsupportedFileFormatError(ConversionError):
    """The file extension does not belong to any known format"""
    kind = 'unsupported_format'


class UnsupportedLegacyPpsfError(ConversionError):
    """The .ppsf file is not a zip archive (pre-JSON Piapro Studio layout)"""
    kind = 'unsupported_legacy_ppsf'

    def __init__(self, file_name: Optional[str] = None):
        super().__init__(
            'This .ppsf file uses the legacy Piapro Studio layout, '
            'only the zip-packaged JSON layout (Piapro Studio NT) is supported',
            file_name,
        )


class CorruptArchiveError(ConversionError):
    """The archive opened but the expected project entry is missing or unreadable"""
    kind = 'corrupt_archive'


class IllegalFileError(ConversionError):
    """The project content does not have the structure the format requires"""
    kind = 'illegal_file'


class TemplateLoadError(ConversionError):
    """A bundled template could not be loaded or decoded"""
    kind = 'template_load_error'


class InvalidRequestError(ConversionError):
    """A request is missing the upload or carries an unknown option"""
    kind = 'invalid_request'
