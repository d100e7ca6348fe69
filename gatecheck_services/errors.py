"""
UI-facing error payloads.

The inspector app and foreman console only need to know whether an error is
something the user can fix on the spot.  ``IncompleteChecklistError`` is the
only such case ("finish remaining items"); everything else is shown as a
generic failure with its machine-readable code.
"""

from __future__ import annotations

from dataclasses import dataclass

from gatecheck_kernel.exceptions import GateCheckKernelError, IncompleteChecklistError

GENERIC_FAILURE_CODE = "INTERNAL_ERROR"
GENERIC_FAILURE_MESSAGE = "The gate check could not be updated. Please try again."


@dataclass(frozen=True)
class ErrorPayload:
    code: str
    message: str
    actionable: bool = False
    pending_codes: tuple[str, ...] = ()


def error_payload(exc: BaseException) -> ErrorPayload:
    """Map an exception to the payload shown to the field user."""
    if isinstance(exc, IncompleteChecklistError):
        remaining = len(exc.pending_codes)
        return ErrorPayload(
            code=exc.code,
            message=f"Finish the remaining {remaining} checklist item(s) before completing.",
            actionable=True,
            pending_codes=tuple(exc.pending_codes),
        )
    if isinstance(exc, GateCheckKernelError):
        return ErrorPayload(code=exc.code, message=str(exc))
    return ErrorPayload(code=GENERIC_FAILURE_CODE, message=GENERIC_FAILURE_MESSAGE)
