"""
Error classes for mrstream.

Two families:
- OrchestrationError: runtime conditions met while driving a job flow
  (destination collisions, engine failures, filesystem failures). The
  orchestrator catches these at its boundary and reports them.
- ProgramError: static authoring mistakes (bad join declarations, using a
  read-only tap as a sink, ...). These are never caught by mrstream and abort
  the process.
"""


class MRStreamError(Exception):
    """Base exception for mrstream."""
    pass


class OrchestrationError(MRStreamError):
    """Recoverable failure that aborts the remaining job flow."""
    pass


class DestinationExists(OrchestrationError):
    def __init__(self, location: str):
        super().__init__(f"Destination file exists: {location}")
        self.location = location


class SubmissionError(OrchestrationError):
    def __init__(self, step: str, returncode: int, detail: str = ""):
        msg = f"Step {step} failed with exit code {returncode}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.step = step
        self.returncode = returncode


class FileSystemError(OrchestrationError):
    pass


class ProgramError(MRStreamError):
    """Authoring error in a controller program. Not recovered."""
    pass


class UnknownSourceDataset(ProgramError):
    def __init__(self, path: str):
        super().__init__(f"Cannot identify current tap from filename: {path!r}")
        self.path = path


class UnknownDataset(ProgramError):
    def __init__(self, dataset: str):
        super().__init__(f"Cannot identify current tap in index: {dataset!r}")
        self.dataset = dataset


class ReadOnlyTap(ProgramError):
    pass


class CodecError(ProgramError):
    pass
