"""Banned-construct scanning for proposed source."""

import re
from dataclasses import dataclass
from typing import ClassVar

from ..core.models import (
    ChangeErrorKind,
    ValidationContext,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
)
from .stages import ValidationStage


@dataclass
class SecurityFinding:
    """Represents a detected banned construct."""

    finding_type: str
    matched_text: str
    line_number: int
    column: int
    severity: ValidationSeverity
    message: str


class SecurityScanner:
    """Scan source for dynamic code evaluation and unsafe DOM APIs.

    This class provides pattern-based detection of:
    - Dynamic code evaluation (``eval``, ``new Function``)
    - Unsafe DOM writes (``document.write``, ``innerHTML`` assignment)
    - Dynamic iframe creation
    """

    # (regex, type, severity, message)
    PATTERNS: ClassVar[list[tuple[str, str, ValidationSeverity, str]]] = [
        (
            r"\beval\s*\(",
            "eval",
            ValidationSeverity.CRITICAL,
            "Use of eval() is not allowed",
        ),
        (
            r"\bnew\s+Function\s*\(",
            "function_constructor",
            ValidationSeverity.CRITICAL,
            "Use of new Function() is not allowed",
        ),
        (
            r"\bdocument\.write(?:ln)?\s*\(",
            "document_write",
            ValidationSeverity.CRITICAL,
            "Use of document.write() is not allowed",
        ),
        (
            r"\.innerHTML\s*=(?!=)",
            "inner_html",
            ValidationSeverity.CRITICAL,
            "Direct assignment to innerHTML is not allowed",
        ),
        (
            r"\bdocument\.createElement\s*\(\s*['\"`]iframe['\"`]",
            "dynamic_iframe",
            ValidationSeverity.ERROR,
            "Dynamic iframe creation is not allowed",
        ),
    ]

    _COMPILED: ClassVar[list[tuple[re.Pattern[str], str, ValidationSeverity, str]]] = [
        (re.compile(pattern), kind, severity, message)
        for pattern, kind, severity, message in PATTERNS
    ]

    @classmethod
    def scan_content(cls, content: str) -> list[SecurityFinding]:
        """Scan content for banned constructs.

        Returns:
            list[SecurityFinding]: Findings in order of appearance per pattern.
        """
        findings: list[SecurityFinding] = []
        for pattern, kind, severity, message in cls._COMPILED:
            for match in pattern.finditer(content):
                line = content.count("\n", 0, match.start()) + 1
                line_start = content.rfind("\n", 0, match.start()) + 1
                findings.append(
                    SecurityFinding(
                        finding_type=kind,
                        matched_text=match.group(0),
                        line_number=line,
                        column=match.start() - line_start + 1,
                        severity=severity,
                        message=message,
                    )
                )
        return findings

    @classmethod
    def has_critical(cls, content: str) -> bool:
        """Quick check for any CRITICAL finding."""
        return any(f.severity is ValidationSeverity.CRITICAL for f in cls.scan_content(content))


def check_security(code: str, context: ValidationContext) -> ValidationResult:
    """Turn scanner findings into validation issues."""
    findings = SecurityScanner.scan_content(code)
    if not findings:
        return ValidationResult(success=True)
    issues = [
        ValidationIssue(
            message=f.message,
            severity=f.severity,
            line=f.line_number,
            column=f.column,
            stage="security",
        )
        for f in findings
    ]
    critical = any(f.severity is ValidationSeverity.CRITICAL for f in findings)
    error = (
        "Code contains critical security vulnerabilities"
        if critical
        else "Code contains disallowed constructs"
    )
    return ValidationResult.from_issues(issues, error=error, error_kind=ChangeErrorKind.SECURITY)


def security_stage() -> ValidationStage:
    """Stage rejecting banned constructs; only installed in strict mode."""
    return ValidationStage(
        name="security",
        severity=ValidationSeverity.CRITICAL,
        validate=check_security,
        error_kind=ChangeErrorKind.SECURITY,
    )
