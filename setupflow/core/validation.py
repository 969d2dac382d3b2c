from typing import Union

from setupflow.core.models import (
    FIELD_CONFIRMATION_SECRET,
    FIELD_ID,
    ErrorCode,
    FieldError,
    ReferenceDraft,
    SetupReference,
    ValidationErrors,
)

SETUP_ID_PREFIX = "seti_"
SECRET_MARKER = "_secret_"

MSG_ID_REQUIRED = "Setup Intent ID is required"
MSG_ID_INVALID = "Invalid Setup Intent ID format"
MSG_SECRET_REQUIRED = "Client Secret is required"
MSG_SECRET_INVALID = "Invalid Client Secret format"


def validate(reference: Union[ReferenceDraft, SetupReference]) -> ValidationErrors:
    """
    Check both reference fields independently and collect every failure.
    An empty mapping means the reference is valid.
    """
    errors: ValidationErrors = {}

    if not reference.id.strip():
        errors[FIELD_ID] = FieldError(ErrorCode.REQUIRED, MSG_ID_REQUIRED)
    elif not reference.id.startswith(SETUP_ID_PREFIX):
        errors[FIELD_ID] = FieldError(ErrorCode.INVALID_FORMAT, MSG_ID_INVALID)

    if not reference.confirmationSecret.strip():
        errors[FIELD_CONFIRMATION_SECRET] = FieldError(ErrorCode.REQUIRED, MSG_SECRET_REQUIRED)
    elif SECRET_MARKER not in reference.confirmationSecret:
        errors[FIELD_CONFIRMATION_SECRET] = FieldError(ErrorCode.INVALID_FORMAT, MSG_SECRET_INVALID)

    return errors
