from typing import Callable

from setupflow.core.errors import UnknownFieldError
from setupflow.core.models import REFERENCE_FIELDS, ReferenceDraft, SetupReference, ValidationErrors
from setupflow.core.validation import validate
from setupflow.observability.logging import log


class ReferenceCollectionStage:
    """
    Screen A: owns the draft reference fields and their validation errors.
    Entirely synchronous; the only way forward is submit().
    """

    def __init__(self, draft: ReferenceDraft, on_advance: Callable[[SetupReference], None]):
        self.draft = draft
        self.errors: ValidationErrors = {}
        self._on_advance = on_advance

    def update_field(self, field: str, value: str) -> None:
        if field not in REFERENCE_FIELDS:
            raise UnknownFieldError(field)
        setattr(self.draft, field, value)
        # Clear only this field; full validation waits for submit()
        if field in self.errors:
            del self.errors[field]

    def submit(self) -> bool:
        errors = validate(self.draft)
        self.errors = errors
        if errors:
            log(
                event="reference_rejected",
                fields=sorted(errors.keys()),
                codes={k: v.code.value for k, v in errors.items()},
            )
            return False
        self._on_advance(self.draft.freeze())
        return True

    def view(self) -> dict:
        return {
            "stage": "collecting_reference",
            "fields": {"id": self.draft.id, "confirmationSecret": self.draft.confirmationSecret},
            "errors": {k: {"code": v.code.value, "message": v.message} for k, v in self.errors.items()},
        }
