# core/errors.py
"""
Error kinds raised by the job poller, batch pipeline and report aggregator.

- ValidationError: a required field is missing or empty (no remote call is made)
- RemoteCallError: transport or service-level failure
- ScratchConflictError: a scratch directory that must be fresh already exists
- ParseError: a persisted result file could not be read
- UnknownJobStateError: a remote status string outside the known vocabulary
"""


class MediaflowError(Exception):
    """Base class for every domain error."""


class ValidationError(MediaflowError):
    def __init__(self, message: str, fields=None):
        super().__init__(message)
        self.fields = list(fields or [])


class RemoteCallError(MediaflowError):
    def __init__(self, message: str, operation: str = ""):
        super().__init__(message)
        self.operation = operation


class ScratchConflictError(MediaflowError):
    def __init__(self, path):
        super().__init__(
            f"Directory '{path}' already exists. Remove it before starting a new run "
            f"so outputs from a previous run are not mixed in"
        )
        self.path = path


class ParseError(MediaflowError):
    def __init__(self, message: str, source=None):
        super().__init__(message)
        self.source = source


class UnknownJobStateError(MediaflowError):
    def __init__(self, kind, raw_state):
        super().__init__(f"Unknown status '{raw_state}' reported for {kind}")
        self.kind = kind
        self.raw_state = raw_state
