from __future__ import annotations


class WorkspaceError(RuntimeError):
    """Base error for a single update; the message is shown to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthorizationError(WorkspaceError):
    """Workspace command from a user outside the allow-list."""


class ValidationError(WorkspaceError):
    """Malformed `:h` command."""


class PathViolation(WorkspaceError):
    """Traversal attempt or protected-file target."""


class NotFound(WorkspaceError):
    """Read, list or edit target does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"❌ File not found: {name}")
        self.name = name


class TextNotFound(WorkspaceError):
    """Edit text is not a literal substring of the file."""

    def __init__(self, filename: str, old_text: str) -> None:
        super().__init__(
            f'❌ Text not found in file: "{old_text}"\n\n'
            "Tip: Make sure the text matches exactly, including spaces and newlines."
        )
        self.filename = filename
        self.old_text = old_text
