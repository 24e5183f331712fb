"""Adapter factory helpers for the grading function.

Intent:
    Keep runtime adapters discoverable via dotted paths so the grading route
    can load them dynamically (mirrors `LEARNING_GRADING_ADAPTER`).

Exports:
    The individual modules expose a `build(config)` function returning an
    object that implements `GradingModelProtocol`.
"""

__all__ = ["gemini_grading", "stub_grading"]
