"""Exception hierarchy for the export pipeline.

Every error carries a human-readable message through ``str()`` so the
orchestrator can report it without knowing the concrete type.
"""


class ExportError(Exception):
    """Base class for all pipeline failures."""


class DirectoryCreationFailed(ExportError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"Failed to create output directory: {path}")


class ExportCancelled(ExportError):
    """Raised at a suspension point once cancellation was requested."""

    def __init__(self, completed: int = 0):
        self.completed = completed
        super().__init__("Export was cancelled.")


# ── Image compositing ────────────────────────────────────────────


class CompositorError(ExportError):
    pass


class ImageLoadFailed(CompositorError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"Failed to load image: {path}")


class ContextCreationFailed(CompositorError):
    def __init__(self, detail: str = ""):
        msg = "Failed to create rendering surface."
        super().__init__(f"{msg} {detail}".strip())


class CompositeCreationFailed(CompositorError):
    def __init__(self, detail: str = ""):
        msg = "Failed to create combined image."
        super().__init__(f"{msg} {detail}".strip())


class WriteFailed(CompositorError):
    def __init__(self, path, detail: str = ""):
        self.path = path
        msg = f"Failed to write output image: {path}"
        super().__init__(f"{msg} ({detail})" if detail else msg)


# ── Video assembly ───────────────────────────────────────────────


class VideoError(ExportError):
    pass


class NoFrames(VideoError):
    def __init__(self):
        super().__init__("No images found to include in the video.")


class WriterStartFailed(VideoError):
    def __init__(self, detail: str = "Unknown error"):
        super().__init__(f"Failed to start video writer: {detail}")


class PixelBufferFailed(VideoError):
    def __init__(self, detail: str = ""):
        msg = "Failed to create pixel buffer for frame."
        super().__init__(f"{msg} {detail}".strip())


class WriterFailed(VideoError):
    def __init__(self, detail: str):
        super().__init__(f"Video writer failed: {detail}")


# ── Export loading ───────────────────────────────────────────────


class ExportLoadError(ExportError):
    pass


class InvalidExportPath(ExportLoadError):
    def __init__(self, path):
        super().__init__(f"The selected path is not valid: {path}")


class DataFolderNotFound(ExportLoadError):
    def __init__(self, path):
        super().__init__(f"Could not find export data folder in {path}")


class MissingExportFile(ExportLoadError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing {name} file." if "." in name else f"Missing {name} folder.")


class ExportParseError(ExportLoadError):
    def __init__(self, detail: str):
        super().__init__(f"Failed to parse data: {detail}")
