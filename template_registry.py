"""
Template Registry Module
Bundled "blank project" templates used as structural skeletons when
generating formats that break if internal fields are missing.

The registry loads every template or fails, then never changes, so it
can be shared by concurrent conversions without locking.
"""

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional, Tuple

import value_tree
from conversion_errors import TemplateLoadError
from project_model import Format
from settings import load_settings
from value_tree import Node

logger = logging.getLogger(__name__)

TEMPLATE_FILES = {
    Format.PPSF: 'template.ppsf.json',
    Format.VPR: 'template.vpr.json',
}


@dataclass(frozen=True)
class DecodeAttempt:
    """Outcome of one step of the template decoding chain"""
    name: str
    ok: bool
    detail: str = ''


@dataclass(frozen=True)
class TemplateDecoding:
    tree: Optional[Node]
    attempts: Tuple[DecodeAttempt, ...]

    @property
    def ok(self) -> bool:
        return self.tree is not None

    def describe(self) -> str:
        return '; '.join(
            f"{a.name}: {'ok' if a.ok else a.detail}" for a in self.attempts
        )


# Document resolution steps. Each returns (value, None) when it applies
# or (None, reason) when it does not.

def _resolve_default_export(document: Any) -> Tuple[Any, Optional[str]]:
    if not isinstance(document, dict) or set(document) != {'default'}:
        return None, 'not a default export'
    inner = document['default']
    if not isinstance(inner, str):
        return None, 'default export is not a string'
    try:
        return json.loads(inner), None
    except json.JSONDecodeError as e:
        return None, f'default export is not JSON ({e})'


def _resolve_encoded_string(document: Any) -> Tuple[Any, Optional[str]]:
    if not isinstance(document, str):
        return None, 'not an encoded string'
    try:
        return json.loads(document), None
    except json.JSONDecodeError as e:
        return None, f'encoded string is not JSON ({e})'


def _resolve_literal(document: Any) -> Tuple[Any, Optional[str]]:
    if not isinstance(document, dict):
        return None, f'document is a {type(document).__name__}, not an object'
    return document, None


RESOLUTION_CHAIN: Tuple[Tuple[str, Callable[[Any], Tuple[Any, Optional[str]]]], ...] = (
    ('default-export', _resolve_default_export),
    ('encoded-string', _resolve_encoded_string),
    ('literal', _resolve_literal),
)


def resolve_document(document: Any) -> Tuple[Optional[Node], List[DecodeAttempt]]:
    """
    Find the template object inside a decoded JSON document.

    The steps run in order and the first that yields an object wins.
    'literal' is the final branch: the document itself must be the
    template object.
    """
    attempts = []
    for name, step in RESOLUTION_CHAIN:
        value, reason = step(document)
        if reason is None and isinstance(value, dict):
            attempts.append(DecodeAttempt(name, True))
            return value_tree.from_python(value), attempts
        attempts.append(DecodeAttempt(name, False, reason or 'resolved value is not an object'))
    return None, attempts


def decode_template(raw: bytes) -> TemplateDecoding:
    """Decode template bytes (UTF-8, then UTF-8 with BOM) and resolve the template object"""
    attempts = []
    for encoding in ('utf-8', 'utf-8-sig'):
        try:
            document = json.loads(raw.decode(encoding))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            attempts.append(DecodeAttempt(encoding, False, str(e)))
            continue
        attempts.append(DecodeAttempt(encoding, True))
        tree, resolve_attempts = resolve_document(document)
        return TemplateDecoding(tree, tuple(attempts + resolve_attempts))
    return TemplateDecoding(None, tuple(attempts))


class TemplateRegistry:
    """Immutable mapping of format to template tree"""

    def __init__(self, templates: Mapping[Format, Node]):
        self._templates = MappingProxyType(dict(templates))

    @classmethod
    def load(cls, directory: Path) -> 'TemplateRegistry':
        """Load every registered template from a directory, failing on the first problem"""
        templates = {}
        for output_format, filename in TEMPLATE_FILES.items():
            path = Path(directory) / filename
            try:
                raw = path.read_bytes()
            except OSError as e:
                raise TemplateLoadError(f"Cannot read template {path}: {e}") from e
            decoding = decode_template(raw)
            if not decoding.ok:
                raise TemplateLoadError(f"Cannot decode template {path}: {decoding.describe()}")
            templates[output_format] = decoding.tree
        logger.info("Loaded %d format templates from %s", len(templates), directory)
        return cls(templates)

    def get(self, output_format: Format) -> Node:
        try:
            return self._templates[output_format]
        except KeyError:
            raise TemplateLoadError(f"No template registered for {output_format.value}") from None

    @property
    def formats(self) -> Tuple[Format, ...]:
        return tuple(self._templates)


_registry: Optional[TemplateRegistry] = None
_registry_lock = threading.Lock()


def init_registry(directory: Optional[Path] = None) -> TemplateRegistry:
    """Load the process-wide registry once; later calls return the same instance"""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = TemplateRegistry.load(directory or load_settings().templates_dir)
        return _registry


def default_registry() -> TemplateRegistry:
    registry = _registry
    if registry is None:
        return init_registry()
    return registry
