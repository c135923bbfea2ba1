"""Exceptions raised while turning model output into a ProductionResponse."""
from __future__ import annotations

from typing import List, Sequence


class ProductionResponseError(Exception):
    """Base exception for unusable generative-model output."""


class ParseError(ProductionResponseError):
    """No valid JSON object could be extracted from the model output."""


class SchemaViolation(ProductionResponseError):
    """The extracted object violates the production schema.

    ``issues`` holds one ``"<field.path>: <message>"`` entry per offending field.
    """

    def __init__(self, issues: Sequence[str]):
        self.issues: List[str] = list(issues)
        super().__init__(f"Model response validation failed: {'; '.join(self.issues)}")
