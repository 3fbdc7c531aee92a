"""Capabilities for React component units.

Shape checks are regex heuristics over the source text; the sandbox is a
static dry run over the tree-sitter syntax tree that reports references to
names nothing declares.
"""

import logging
import re

from ..core.models import (
    ChangeErrorKind,
    ValidationContext,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
)
from ..utils.ast_parser import find_syntax_problem, parse_source, unresolved_references
from ..utils.diff import render_diff
from .capabilities import UnitCapabilities

logger = logging.getLogger(__name__)

REACT_COMPONENT = "react-component"
REACT_FUNCTIONAL_COMPONENT = "react-functional-component"
REACT_CLASS_COMPONENT = "react-class-component"
TYPESCRIPT = "typescript"
JAVASCRIPT = "javascript"

SUPPORTED_TYPES = frozenset({REACT_COMPONENT, REACT_FUNCTIONAL_COMPONENT, REACT_CLASS_COMPONENT})

MISSING_REACT_IMPORT = "Missing React import"
MISSING_EXPORT = "Component should be exported"
MISSING_RETURN = "Component is missing a return statement"
MISSING_RENDER = "Class component must include a render method"
MISSING_JSX = "Component should return JSX"
PATTERN_FAILED = "Component pattern validation failed"

_CLASS_COMPONENT_RE = re.compile(r"extends\s+(?:React\.)?(?:Pure)?Component\b")
_REACT_IMPORT_RE = re.compile(
    r"import\s+(?:\*\s+as\s+)?React\b|from\s+['\"]react['\"]|require\(\s*['\"]react['\"]\s*\)"
)
_JSX_RETURN_RE = re.compile(r"(?:\breturn|=>)\s*\(?\s*<")
_RETURN_RE = re.compile(r"\breturn\b|=>\s*[(<]")
_RENDER_RE = re.compile(r"\brender\s*\(")
_TS_HINT_RE = re.compile(r"\binterface\s|\btype\s+\w+\s*=|<[^>]+>")

_NAMED_EXPORT_RE = re.compile(r"export\s+(?:const|let|var|function|class)\s+(\w+)")
_DEFAULT_EXPORT_RE = re.compile(r"export\s+default\s+(?:function\s+|class\s+)?(\w+)")
_DESTRUCTURED_PROPS_RE = re.compile(r"(?:function|const)\s+\w+\s*=?\s*\(\s*\{\s*([^}]*)\s*\}")
_PROPS_USAGE_RE = re.compile(r"props\.(\w+)")
_PROP_TYPES_RE = re.compile(r"\w+\.propTypes\s*=\s*\{([^}]*)\}")


def has_react_import(source: str) -> bool:
    """True when the source imports or requires React."""
    return bool(_REACT_IMPORT_RE.search(source))


def detect_unit_type(source: str) -> str:
    """Classify source as a React class/functional component, TypeScript or JavaScript.

    Example:
        >>> detect_unit_type("class A extends React.Component { render() { return null; } }")
        'react-class-component'
    """
    if _CLASS_COMPONENT_RE.search(source):
        return REACT_CLASS_COMPONENT
    if has_react_import(source):
        if _JSX_RETURN_RE.search(source):
            return REACT_FUNCTIONAL_COMPONENT
        return REACT_COMPONENT
    return detect_language(source)


def detect_language(source: str) -> str:
    """Return ``typescript`` when the source carries type syntax, else ``javascript``."""
    if ":" in source and _TS_HINT_RE.search(source):
        return TYPESCRIPT
    return JAVASCRIPT


def _definition_patterns(name: str) -> tuple[re.Pattern[str], re.Pattern[str], re.Pattern[str]]:
    escaped = re.escape(name)
    function_def = re.compile(rf"function\s+{escaped}\s*(?:<[^>]*>)?\s*\(")
    arrow_def = re.compile(
        rf"(?:const|let|var)\s+{escaped}\s*(?::[^=]+)?=\s*"
        rf"(?:async\s*)?(?:\(|function\b|\w+\s*=>"
        rf"|React\.(?:memo|forwardRef)\s*\(|memo\s*\(|forwardRef\s*\()"
    )
    class_def = re.compile(rf"class\s+{escaped}\s+extends\s+(?:React\.)?(?:Pure)?Component\b")
    return function_def, arrow_def, class_def


def validate_component_pattern(code: str, context: ValidationContext) -> ValidationResult:
    """Check that ``code`` looks like a React component named after the unit."""
    name = context.unit_name or context.unit_id
    function_def, arrow_def, class_def = _definition_patterns(name)
    is_function = bool(function_def.search(code))
    is_arrow = bool(arrow_def.search(code))
    is_class = bool(class_def.search(code))

    if not (is_function or is_arrow or is_class):
        message = f"Could not find a proper {name} component definition"
        issue = ValidationIssue(message=message, severity=ValidationSeverity.ERROR, stage="pattern")
        return ValidationResult.from_issues(
            [issue], error=message, error_kind=ChangeErrorKind.PATTERN
        )

    issues: list[ValidationIssue] = []

    if (is_function or is_arrow) and not is_class and not _RETURN_RE.search(code):
        issues.append(
            ValidationIssue(MISSING_RETURN, ValidationSeverity.ERROR, stage="pattern")
        )

    if is_class and not _RENDER_RE.search(code):
        issues.append(
            ValidationIssue(MISSING_RENDER, ValidationSeverity.ERROR, stage="pattern")
        )

    if not _JSX_RETURN_RE.search(code):
        issues.append(ValidationIssue(MISSING_JSX, ValidationSeverity.WARNING, stage="pattern"))

    if not has_react_import(code):
        issues.append(
            ValidationIssue(
                MISSING_REACT_IMPORT,
                ValidationSeverity.WARNING,
                suggested_fix=_add_react_import(code),
                auto_fixable=True,
                stage="pattern",
            )
        )

    if not _is_exported(code, name):
        issues.append(
            ValidationIssue(
                MISSING_EXPORT,
                ValidationSeverity.WARNING,
                suggested_fix=_add_default_export(code, name),
                auto_fixable=True,
                stage="pattern",
            )
        )

    has_errors = any(i.severity.is_blocking for i in issues)
    return ValidationResult.from_issues(
        issues,
        error=PATTERN_FAILED if has_errors else None,
        error_kind=ChangeErrorKind.PATTERN,
    )


def _is_exported(code: str, name: str) -> bool:
    if "export default" in code or "module.exports" in code:
        return True
    return name in {m.group(1) for m in _NAMED_EXPORT_RE.finditer(code)}


def _add_react_import(code: str) -> str:
    return "import React from 'react';\n\n" + code


def _add_default_export(code: str, name: str) -> str:
    return code.rstrip("\n") + f"\n\nexport default {name};\n"


def fix_component(code: str, issues: tuple[ValidationIssue, ...]) -> str:
    """Apply the auto-fixable pattern issues to ``code``.

    ``issues`` must come from validating this same ``code``; the export fix
    carries the full fixed text and the import fix is prepended on top.
    """
    fixable = {issue.message: issue for issue in issues if issue.auto_fixable}
    fixed = code
    export_issue = fixable.get(MISSING_EXPORT)
    if export_issue is not None and export_issue.suggested_fix:
        fixed = export_issue.suggested_fix
    if MISSING_REACT_IMPORT in fixable and not has_react_import(fixed):
        fixed = _add_react_import(fixed)
    return fixed


def run_sandbox(code: str, context: ValidationContext) -> ValidationResult:
    """Dry-run ``code`` statically and fail on references to undefined names.

    Identifier reads, callees and component tags are checked against every
    name the unit binds plus known runtime globals. Scopes are not modelled,
    so a name bound anywhere in the unit counts as defined everywhere.
    """
    tree = parse_source(code)
    problem = find_syntax_problem(tree)
    if problem is not None:
        message = f"SyntaxError: {problem.message} ({problem.line}:{problem.column})"
        return _sandbox_failure(message, problem.line, problem.column)

    unresolved = unresolved_references(tree.root_node)
    if unresolved:
        first = unresolved[0]
        logger.debug(
            f"Sandbox for {context.unit_id} found {len(unresolved)} unresolved reference(s)"
        )
        message = f"ReferenceError: {first.name} is not defined"
        return _sandbox_failure(message, first.line, first.column)
    return ValidationResult(success=True)


def _sandbox_failure(message: str, line: int, column: int) -> ValidationResult:
    issue = ValidationIssue(
        message, ValidationSeverity.ERROR, line=line, column=column, stage="sandbox"
    )
    return ValidationResult.from_issues(
        [issue], error=f"Sandbox execution failed: {message}", error_kind=ChangeErrorKind.SANDBOX
    )


def extract_exports(code: str) -> frozenset[str]:
    """Named exports plus ``default:<name>`` for a default export."""
    exports = {m.group(1) for m in _NAMED_EXPORT_RE.finditer(code)}
    exports.update(f"default:{m.group(1)}" for m in _DEFAULT_EXPORT_RE.finditer(code))
    return frozenset(exports)


def extract_props(code: str) -> frozenset[str]:
    """Prop names from destructured parameters, ``props.x`` usage and propTypes."""
    props: set[str] = set()

    match = _DESTRUCTURED_PROPS_RE.search(code)
    if match:
        for entry in match.group(1).split(","):
            name = entry.split("=")[0].split(":")[0].strip()
            if name and not name.startswith("..."):
                props.add(name)

    props.update(m.group(1) for m in _PROPS_USAGE_RE.finditer(code))

    prop_types = _PROP_TYPES_RE.search(code)
    if prop_types:
        for entry in prop_types.group(1).split(","):
            name = entry.split(":")[0].strip()
            if name:
                props.add(name)

    return frozenset(props)


def references_prop(dependent_source: str, unit_id: str, unit_name: str, prop: str) -> bool:
    """Textual test: does the dependent render the unit and pass ``prop``?"""
    renders_unit = f"<{unit_id}" in dependent_source or f"<{unit_name}" in dependent_source
    return renders_unit and f"{prop}=" in dependent_source


def react_capabilities() -> UnitCapabilities:
    """Capability record for React components."""
    return UnitCapabilities(
        name="react",
        supported_types=SUPPORTED_TYPES,
        detect_type=detect_unit_type,
        detect_language=detect_language,
        validate_pattern=validate_component_pattern,
        sandbox=run_sandbox,
        extract_exports=extract_exports,
        extract_props=extract_props,
        references_prop=references_prop,
        diff=render_diff,
        fix=fix_component,
    )
