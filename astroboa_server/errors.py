"""
Fatal error kinds raised by the installation and process-control steps.

Every step raises one of these; ``cli.main`` is the only place that turns
them into a message on stderr and an exit code.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional


class AstroboaError(Exception):
    """Base class of all fatal errors. Carries the process exit code."""
    exit_code = 1


class SettingsError(AstroboaError):
    """An environment variable holds a value of the wrong type."""


class PreconditionError(AstroboaError):
    """Unsupported OS, missing/wrong Java, or an existing installation."""


class TransferError(AstroboaError):
    """Network or filesystem failure while downloading a package."""


class ExtractionError(AstroboaError):
    """An archive could not be read or one of its entries could not be written."""


class SymlinkError(AstroboaError):
    """The stable alias to a versioned directory could not be created."""


class AccountError(AstroboaError):
    """Service group/user creation or ownership change failed."""


class ConfigStoreError(AstroboaError):
    """The persisted server configuration or login profile cannot be read or written."""


class ConsistencyError(AstroboaError):
    """Persisted state disagrees with the environment or the installation."""


class ProcessControlError(AstroboaError):
    """Server already running / not running, or an unclear shutdown result."""

    def __init__(self, message: str, output: Optional[str] = None):
        super().__init__(message)
        self.output = output


class TemplateRenderError(AstroboaError):
    SOURCE_CONTEXT_WINDOW = 2

    def __init__(self, original: Exception, template: str, context: Dict[str, Any],
                 line_number: Optional[int] = None, template_path: Optional[str] = None):
        super().__init__(str(original))
        self.original = original
        self.template = template
        self.context = context
        self.line_number = line_number
        self.template_path = template_path

    def source_listing(self) -> Optional[str]:
        """Numbered template lines around the failing line, or None if unknown."""
        if self.line_number is None:
            return None
        lines = self.template.split("\n")
        index = self.line_number - 1
        first = max(0, index - self.SOURCE_CONTEXT_WINDOW)
        last = min(len(lines), index + self.SOURCE_CONTEXT_WINDOW + 1)
        out: List[str] = []
        for n in range(first, last):
            out.append(f"{str(n + 1).rjust(3)}: {lines[n]}")
        return "\n".join(out)

    def __str__(self) -> str:
        where = self.template_path or "template"
        head = f"Failed to render {where} ({self.original!r})"
        if self.line_number is None:
            return head
        return f"{head} on line #{self.line_number}:\n\n{self.source_listing()}"
