"""
Workflow controller: the two-stage machine behind the setup flow.

    CollectingReference --submit()/advance--> CollectingPaymentDetails
    CollectingPaymentDetails --back()-------> CollectingReference (draft kept)
    any --reset()------------------------->  CollectingReference (empty draft)
    CollectingPaymentDetails --start_another() from Complete--> reset()

Transitions are reached through the stage handles: only the reference form can
advance, only the detail stage can go back. Callers never pick a transition that
the current stage does not hand out.
"""
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional, Union
from urllib.parse import urlencode

from setupflow.core.detail_stage import SecureDetailCollectionStage
from setupflow.core.models import ReferenceDraft, SetupReference
from setupflow.core.reference_stage import ReferenceCollectionStage
from setupflow.observability.logging import log
from setupflow.provider.base import PaymentProvider, RedirectPolicy

ProviderFactory = Callable[[SetupReference], PaymentProvider]


@dataclass(frozen=True)
class CollectingReference:
    form: ReferenceCollectionStage
    name: str = field(default="collecting_reference", init=False)


@dataclass(frozen=True)
class CollectingPaymentDetails:
    form: ReferenceCollectionStage
    details: SecureDetailCollectionStage
    name: str = field(default="collecting_payment_details", init=False)


WorkflowStage = Union[CollectingReference, CollectingPaymentDetails]


class WorkflowController:
    def __init__(
        self,
        provider_factory: ProviderFactory,
        *,
        return_url: str,
        redirect_policy: RedirectPolicy = RedirectPolicy.IF_REQUIRED,
        workflow_id: Optional[str] = None,
    ):
        self.workflow_id = workflow_id or uuid.uuid4().hex
        self.return_url = return_url
        self.redirect_policy = redirect_policy
        self._provider_factory = provider_factory
        self.draft = ReferenceDraft()
        self.stage: WorkflowStage = CollectingReference(self._new_form())

    @property
    def reference(self) -> Optional[SetupReference]:
        """Frozen reference held while collecting payment details, else None."""
        if isinstance(self.stage, CollectingPaymentDetails):
            return self.stage.details.reference
        return None

    @property
    def redirect_target(self) -> str:
        # The provider appends its own query; workflow_id lets the return handler find us
        sep = "&" if "?" in self.return_url else "?"
        return f"{self.return_url}{sep}{urlencode({'workflow_id': self.workflow_id})}"

    def _new_form(self) -> ReferenceCollectionStage:
        return ReferenceCollectionStage(self.draft, on_advance=self.advance)

    def advance(self, reference: SetupReference) -> None:
        # Handed to the reference form as its on_advance callback
        form = self.stage.form
        details = SecureDetailCollectionStage(
            reference,
            self._provider_factory(reference),
            return_url=self.redirect_target,
            redirect_policy=self.redirect_policy,
            on_back=self.back,
            on_start_another=self.reset,
        )
        self.stage = CollectingPaymentDetails(form=form, details=details)
        log(event="workflow_advanced", workflowId=self.workflow_id, setupId=reference.id)

    def back(self) -> None:
        # Handed to the detail stage; the draft behind the form is never touched
        self.stage.details.teardown()
        self.stage = CollectingReference(self.stage.form)
        log(event="workflow_back", workflowId=self.workflow_id)

    def reset(self) -> None:
        self.teardown()
        self.draft = ReferenceDraft()
        self.stage = CollectingReference(self._new_form())
        log(event="workflow_reset", workflowId=self.workflow_id)

    def teardown(self) -> None:
        if isinstance(self.stage, CollectingPaymentDetails):
            self.stage.details.teardown()

    def view(self) -> dict:
        if isinstance(self.stage, CollectingPaymentDetails):
            out = self.stage.details.view()
        else:
            out = self.stage.form.view()
        out["workflowId"] = self.workflow_id
        return out
