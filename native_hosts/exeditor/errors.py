from __future__ import annotations


class EditorHostError(Exception):
    pass


class HostWarning(EditorHostError):
    """Validation failure reported to the extension as a `warn` frame."""


class PathOutsideRootError(HostWarning):
    def __init__(self, path: object, base: object) -> None:
        super().__init__(f"{path} is not a subdirectory of {base}.")
        self.path = path
        self.base = base


class FrameError(ValueError):
    """Malformed inbound frame (bad length or payload)."""
