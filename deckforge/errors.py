"""
Exception hierarchy for deckforge.

Configuration errors are fatal and raised immediately. Collaborator errors
(GenerationError, ResponseContractError) are raised by single-unit calls and
captured as per-unit records by batch operations.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

from typing import List, Optional


class DeckforgeError(Exception):
    """Base class for all deckforge errors."""


class ConfigurationError(DeckforgeError):
    """Missing credential or invalid configuration value."""


class TemplateNotFoundError(DeckforgeError):
    """Raised when a template id is not in the library."""

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Template not found: {template_id}")


class GenerationError(DeckforgeError):
    """The generative collaborator call failed (transport, HTTP status, empty reply)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ResponseContractError(DeckforgeError):
    """The collaborator replied, but not with the JSON object the prompt required."""

    def __init__(self, message: str, issues: Optional[List[str]] = None):
        self.issues = list(issues or [])
        super().__init__(message)


class OutlineValidationError(DeckforgeError):
    """A drafted or loaded outline is structurally unusable."""

    def __init__(self, issues: List[str]):
        self.issues = list(issues)
        super().__init__("Invalid outline: " + "; ".join(self.issues))
