"""Exception types raised by the edit pipeline."""

from pathlib import Path


class ClipStudioError(Exception):
    """Base class for every error surfaced to a job's caller."""


class FFmpegNotFoundError(ClipStudioError, RuntimeError):
    pass


class ProbeError(ClipStudioError):
    """Raised when a source file cannot be opened or parsed by ffprobe."""

    def __init__(self, path: Path, detail: str = "") -> None:
        self.path = Path(path)
        self.detail = detail.strip()
        message = f"Could not probe {self.path}"
        if self.detail:
            message += f": {self.detail}"
        super().__init__(message)


class InvalidParameters(ClipStudioError, ValueError):
    """Raised before any subprocess runs when a request is malformed."""


class CompileError(ClipStudioError):
    pass


class TranscodeFailure(ClipStudioError):
    """An encoder stage exited non-zero; ``diagnostic`` holds its stderr tail."""

    def __init__(self, stage: str, returncode: int, diagnostic: str = "") -> None:
        self.stage = stage
        self.returncode = returncode
        self.diagnostic = diagnostic
        message = f"ffmpeg stage '{stage}' failed (rc={returncode})"
        if diagnostic:
            message += f": {diagnostic}"
        super().__init__(message)


class OutputMissing(TranscodeFailure):
    """The final stage reported success but left no usable output file."""

    def __init__(self, stage: str, path: Path) -> None:
        self.path = Path(path)
        super().__init__(stage, 0, f"output file {self.path} was not created or is empty")
