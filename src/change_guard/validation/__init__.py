"""Validation stages and the pipeline that runs them."""

from change_guard.validation.pipeline import ValidationPipeline
from change_guard.validation.security import SecurityScanner, security_stage
from change_guard.validation.stages import ValidationStage, check_syntax, syntax_stage

__all__ = [
    "SecurityScanner",
    "ValidationPipeline",
    "ValidationStage",
    "check_syntax",
    "security_stage",
    "syntax_stage",
]
