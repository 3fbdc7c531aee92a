"""Regex-based symbol extraction used by the conflict detectors.

These helpers read source fragments (often partial files), so they work on
text patterns rather than on a syntax tree.
"""

import json
import logging
import re
from pathlib import PurePosixPath

logger = logging.getLogger(__name__)

MANIFEST_NAMES = frozenset({"package.json"})

_FUNCTION_RE = re.compile(r"function\s+(\w+)")
_CLASS_RE = re.compile(r"class\s+(\w+)")
_CONST_RE = re.compile(r"const\s+(\w+)\s*=")
_TYPE_RE = re.compile(r"(?:interface|type)\s+(\w+)")
_REFERENCE_RE = re.compile(r"\b([A-Z]\w*)\b")
_FUNCTION_SIGNATURE_RE = re.compile(r"function\s+(\w+)\s*\((.*?)\)", re.DOTALL)
_ARROW_SIGNATURE_RE = re.compile(
    r"const\s+(\w+)\s*=\s*(?:async\s*)?(?:\((.*?)\)|(\w+))\s*=>", re.DOTALL
)
_VARIABLE_TYPE_RE = re.compile(r"(?:const|let|var)\s+(\w+)\s*:\s*([^=;]+)")
_IMPORT_RE = re.compile(r"import\s+([^;'\"]+?)\s+from\s+['\"]([^'\"]+)['\"]")
_SIDE_EFFECT_IMPORT_RE = re.compile(
    r"^[ \t]*(import\s+['\"]([^'\"]+)['\"][ \t]*;?)", re.MULTILINE
)
_IMPORT_STATEMENT_RE = re.compile(
    r"^[ \t]*import\s+(?:[^;'\"]+?\s+from\s+)?['\"][^'\"]+['\"][ \t]*;?[ \t]*(?:\n|$)",
    re.MULTILINE,
)
_DEFAULT_BINDING_RE = re.compile(r"^\s*(\w+)\s*(?:,|$)")
_NAMED_BINDINGS_RE = re.compile(r"\{\s*([^}]*)\s*\}")
_NAMESPACE_BINDING_RE = re.compile(r"\*\s+as\s+(\w+)")


def _squash(text: str) -> str:
    return " ".join(text.split())


def extract_code_elements(code: str) -> list[str]:
    """Declared function, class, const, interface and type names, in order, deduplicated."""
    if not code:
        return []
    found: list[str] = []
    for pattern in (_FUNCTION_RE, _CLASS_RE, _CONST_RE, _TYPE_RE):
        found.extend(m.group(1) for m in pattern.finditer(code))
    return list(dict.fromkeys(found))


def extract_references(code: str) -> set[str]:
    """Capitalised identifiers, which are likely references to types or components."""
    return set(_REFERENCE_RE.findall(code)) if code else set()


def extract_function_signatures(code: str) -> dict[str, str]:
    """Map function name to its whitespace-normalised parameter list."""
    signatures: dict[str, str] = {}
    for match in _FUNCTION_SIGNATURE_RE.finditer(code):
        signatures[match.group(1)] = _squash(match.group(2))
    for match in _ARROW_SIGNATURE_RE.finditer(code):
        params = match.group(2) if match.group(2) is not None else match.group(3)
        signatures[match.group(1)] = _squash(params or "")
    return signatures


def extract_variable_types(code: str) -> dict[str, str]:
    """Map explicitly typed variable name to its declared type."""
    return {m.group(1): _squash(m.group(2)) for m in _VARIABLE_TYPE_RE.finditer(code)}


def extract_imports(code: str) -> dict[str, str]:
    """Map module path to the raw import clause (``"React, { useState }"``)."""
    return {m.group(2): _squash(m.group(1)) for m in _IMPORT_RE.finditer(code)}


def extract_side_effect_imports(code: str) -> dict[str, str]:
    """Map module path to its bare ``import 'module';`` statement, kept verbatim."""
    imports: dict[str, str] = {}
    for match in _SIDE_EFFECT_IMPORT_RE.finditer(code):
        imports.setdefault(match.group(2), match.group(1).strip())
    return imports


def strip_imports(code: str) -> str:
    """Remove every import statement, including ones spanning several lines."""
    return _IMPORT_STATEMENT_RE.sub("", code)



def parse_import_clause(clause: str) -> tuple[str | None, list[str], str | None]:
    """Split an import clause into default binding, named bindings and namespace.

    Example:
        >>> parse_import_clause("React, { useState, useEffect }")
        ('React', ['useState', 'useEffect'], None)
    """
    namespace_match = _NAMESPACE_BINDING_RE.search(clause)
    namespace = namespace_match.group(1) if namespace_match else None

    default_match = _DEFAULT_BINDING_RE.match(clause)
    default = default_match.group(1) if default_match else None

    named: list[str] = []
    named_match = _NAMED_BINDINGS_RE.search(clause)
    if named_match:
        named = [n.strip() for n in named_match.group(1).split(",") if n.strip()]
    return default, named, namespace


def is_dependency_manifest(file_path: str) -> bool:
    """True for package manifests whose dependency versions can be merged."""
    return PurePosixPath(file_path.replace("\\", "/")).name in MANIFEST_NAMES


def parse_dependencies(content: str) -> dict[str, str]:
    """Dependency name to version from package.json text.

    ``devDependencies`` entries are keyed as ``dev:<name>``. Text that is not a
    JSON object yields an empty mapping.
    """
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Manifest content is not valid JSON; no dependencies parsed")
        return {}
    if not isinstance(data, dict):
        return {}

    dependencies: dict[str, str] = {}
    for section, prefix in (("dependencies", ""), ("devDependencies", "dev:")):
        entries = data.get(section)
        if isinstance(entries, dict):
            for name, version in entries.items():
                dependencies[f"{prefix}{name}"] = str(version)
    return dependencies
