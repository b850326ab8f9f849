"""
Error Types
===========

Exceptions raised by the analysis pipeline.

Sparse data is NOT an error: too few accelerometer samples or no
matched GPS samples produce empty results. These exceptions are for
inputs that would otherwise corrupt persisted aggregates.
"""

from typing import List


class ConfigurationError(ValueError):
    """Raised when processor parameters are invalid."""
    pass


class RecordingValidationError(ValueError):
    """
    Raised when a recording fails entry-point validation.

    The whole batch is rejected; nothing is matched, detected or merged.

    Attributes:
        drive_id: Rejected drive
        errors: Individual problems found
    """

    def __init__(self, drive_id: str, errors: List[str]) -> None:
        self.drive_id = drive_id
        self.errors = list(errors)
        super().__init__(
            f"Recording {drive_id} failed validation:\n" + "\n".join(self.errors)
        )
