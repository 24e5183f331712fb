"""Use case layer for the Learning context.

Re-export common use cases for convenient imports in tests.
"""

from .grading import (
    GradeSubmissionInput,
    GradeSubmissionUseCase,
    compose_prompt,
    parse_grade_completion,
)

__all__ = [
    "GradeSubmissionInput",
    "GradeSubmissionUseCase",
    "compose_prompt",
    "parse_grade_completion",
]
