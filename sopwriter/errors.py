from __future__ import annotations


class SopValidationError(ValueError):
    """An SOP cannot be saved or exported as given."""

    TITLE_REQUIRED = "TITLE_REQUIRED"
    STEP_REQUIRED = "STEP_REQUIRED"

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class SopNotFound(LookupError):
    def __init__(self, sop_id: int) -> None:
        super().__init__(f"SOP not found: {sop_id}")
        self.sop_id = sop_id


class ExportFailed(RuntimeError):
    """A rendering backend failed; no output file was left behind."""

    def __init__(self, reason: str, path=None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.path = path
