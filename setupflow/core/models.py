from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Union

# Field names as they appear on the wire and in ValidationErrors
FIELD_ID = "id"
FIELD_CONFIRMATION_SECRET = "confirmationSecret"
REFERENCE_FIELDS = (FIELD_ID, FIELD_CONFIRMATION_SECRET)


@dataclass(frozen=True)
class SetupReference:
    """Validated, read-only identity of a pending setup."""
    id: str
    confirmationSecret: str


@dataclass
class ReferenceDraft:
    """In-progress reference, edited field by field."""
    id: str = ""
    confirmationSecret: str = ""

    def freeze(self) -> SetupReference:
        return SetupReference(id=self.id, confirmationSecret=self.confirmationSecret)


class ErrorCode(str, Enum):
    REQUIRED = "required"
    INVALID_FORMAT = "invalid_format"


@dataclass(frozen=True)
class FieldError:
    code: ErrorCode
    message: str


ValidationErrors = Dict[str, FieldError]


# --- SubmissionState (tagged variant) ---

@dataclass(frozen=True)
class Idle:
    name: str = field(default="idle", init=False)


@dataclass(frozen=True)
class Submitting:
    name: str = field(default="submitting", init=False)


@dataclass(frozen=True)
class Complete:
    name: str = field(default="complete", init=False)


@dataclass(frozen=True)
class Failed:
    message: str
    name: str = field(default="failed", init=False)


@dataclass(frozen=True)
class AwaitingRedirect:
    # Provider needs an extra authentication step hosted at `url`
    url: str
    name: str = field(default="awaiting_redirect", init=False)


SubmissionState = Union[Idle, Submitting, Complete, Failed, AwaitingRedirect]


def error_message(state: SubmissionState) -> Optional[str]:
    return state.message if isinstance(state, Failed) else None
