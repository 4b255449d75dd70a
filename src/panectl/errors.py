"""Error taxonomy for panectl.

Every failure that touches the multiplexer is raised as one of these typed
exceptions. None of them means the controller is broken: "target not found"
is an ordinary, recoverable condition because panes can die at any time.
"""

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .core.address import PaneAddress


class PanectlError(Exception):
    """Base class for all panectl errors."""


class ParseError(PanectlError, ValueError):
    """Malformed pane address text.

    Attributes:
        text: The full text that was being parsed
        offending: The substring that made it invalid
    """

    def __init__(self, message: str, text: str, offending: str):
        super().__init__(f"{message}: {offending!r} in {text!r}")
        self.text = text
        self.offending = offending


class NotFoundError(PanectlError, LookupError):
    """A named target (session, window, pane, buffer) does not exist right now."""

    def __init__(self, kind: str, name: str, detail: str = ""):
        message = f"{kind} not found: {name}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.kind = kind
        self.name = name


class MultiplexerError(PanectlError):
    """A multiplexer command failed for a reason other than a missing target."""

    def __init__(self, command: str, returncode: int, stderr: str):
        super().__init__(f"{command} failed ({returncode}): {stderr.strip()}")
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class LayoutError(PanectlError):
    """A layout plan step could not be applied.

    Nothing created by earlier steps is rolled back.
    """

    def __init__(self, step_index: int, step: object, cause: str):
        super().__init__(f"layout step {step_index} ({step!r}) failed: {cause}")
        self.step_index = step_index
        self.step = step
        self.cause = cause


class TargetFailure(Enum):
    """Why a dispatch or capture against a pane failed."""

    TARGET_NOT_FOUND = "target_not_found"
    COMMAND_FAILED = "command_failed"


class DispatchError(PanectlError):
    """Input could not be delivered to a pane."""

    def __init__(self, reason: TargetFailure, address: "PaneAddress", detail: str = ""):
        super().__init__(f"dispatch to {address} failed: {reason.value} {detail}".rstrip())
        self.reason = reason
        self.address = address

    @property
    def target_not_found(self) -> bool:
        return self.reason is TargetFailure.TARGET_NOT_FOUND


class CaptureError(PanectlError):
    """Pane text or process state could not be read."""

    def __init__(self, reason: TargetFailure, address: "PaneAddress", detail: str = ""):
        super().__init__(f"capture of {address} failed: {reason.value} {detail}".rstrip())
        self.reason = reason
        self.address = address

    @property
    def target_not_found(self) -> bool:
        return self.reason is TargetFailure.TARGET_NOT_FOUND
