from typing import Callable, Optional

from setupflow.core.cancellation import CancellationToken
from setupflow.core.errors import StageConflictError
from setupflow.core.models import (
    AwaitingRedirect,
    Complete,
    Failed,
    Idle,
    SetupReference,
    SubmissionState,
    Submitting,
    error_message,
)
from setupflow.observability.logging import log
from setupflow.provider.base import PaymentProvider, RedirectPolicy

# Fallbacks when the provider error carries no message
PRESUBMIT_DEFAULT_MESSAGE = "An error occurred"
CONFIRM_DEFAULT_MESSAGE = "Setup failed"
UNEXPECTED_MESSAGE = "An unexpected error occurred"


class SecureDetailCollectionStage:
    """
    Screen B: hosts the provider's input capability and runs the two-phase confirmation.

    The stage only ever reads `reference`; the draft it was frozen from belongs to the controller.
    """

    def __init__(
        self,
        reference: SetupReference,
        provider: PaymentProvider,
        *,
        return_url: str,
        on_back: Callable[[], None],
        on_start_another: Callable[[], None],
        redirect_policy: RedirectPolicy = RedirectPolicy.IF_REQUIRED,
    ):
        self.reference = reference
        self.provider = provider
        self.return_url = return_url
        self.redirect_policy = redirect_policy
        self.state: SubmissionState = Idle()
        self.token = CancellationToken()
        self._in_flight = False
        self._on_back = on_back
        self._on_start_another = on_start_another

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def is_terminal(self) -> bool:
        return isinstance(self.state, (Complete, AwaitingRedirect))

    @property
    def can_submit(self) -> bool:
        return bool(self.provider.widget_ready) and not self._in_flight and not self.is_terminal

    async def confirm(self, token: Optional[CancellationToken] = None) -> SubmissionState:
        token = token or self.token
        if not self.can_submit or token.cancelled:
            log(
                event="confirm_skipped",
                setupId=self.reference.id,
                inFlight=self._in_flight,
                widgetReady=bool(self.provider.widget_ready),
                state=self.state.name,
            )
            return self.state

        self._in_flight = True
        self.state = Submitting()
        log(event="confirm_started", setupId=self.reference.id)

        try:
            submitted = await self.provider.pre_submit()
            if token.cancelled:
                self._dropped("pre_submit")
                return self.state
            if submitted.error is not None:
                self.state = Failed(submitted.error.message or PRESUBMIT_DEFAULT_MESSAGE)
                log(event="confirm_presubmit_failed", setupId=self.reference.id, code=submitted.error.code)
                return self.state

            result = await self.provider.confirm_setup(
                self.reference.confirmationSecret,
                self.return_url,
                self.redirect_policy,
            )
            if token.cancelled:
                self._dropped("confirm_setup")
                return self.state
            if result.error is not None:
                self.state = Failed(result.error.message or CONFIRM_DEFAULT_MESSAGE)
                log(event="confirm_failed", setupId=self.reference.id, code=result.error.code)
            elif result.outcome is not None and result.outcome.redirect_url:
                self.state = AwaitingRedirect(result.outcome.redirect_url)
                log(event="confirm_redirect", setupId=self.reference.id, status=result.outcome.status)
            else:
                self.state = Complete()
                log(event="confirm_complete", setupId=self.reference.id)
        except Exception as e:
            if token.cancelled:
                self._dropped("exception")
            else:
                self.state = Failed(UNEXPECTED_MESSAGE)
                log(
                    event="confirm_unexpected_error",
                    setupId=self.reference.id,
                    errorType=type(e).__name__,
                    error=str(e)[:300],
                )
        finally:
            self._in_flight = False
        return self.state

    def _dropped(self, phase: str) -> None:
        log(event="confirm_result_dropped", setupId=self.reference.id, phase=phase)

    def teardown(self) -> None:
        self.token.cancel()

    def back(self) -> None:
        self._on_back()

    def start_another(self) -> None:
        # Only offered from the success view
        if not isinstance(self.state, Complete):
            raise StageConflictError("start_another", self.state.name)
        self._on_start_another()

    def resolve_redirect(self, succeeded: bool, message: Optional[str] = None) -> bool:
        """
        Settle an AwaitingRedirect state once the browser comes back from the provider.

        A failed or abandoned authentication lands in Failed so the user can resubmit.
        Returns False when there was nothing waiting on a redirect.
        """
        if not isinstance(self.state, AwaitingRedirect) or self.token.cancelled:
            return False
        if succeeded:
            self.state = Complete()
        else:
            self.state = Failed(message or CONFIRM_DEFAULT_MESSAGE)
        log(event="redirect_resolved", setupId=self.reference.id, state=self.state.name)
        return True

    def view(self) -> dict:
        if isinstance(self.state, Complete):
            return {
                "stage": "collecting_payment_details",
                "setupId": self.reference.id,
                "state": self.state.name,
                "success": {
                    "title": "Payment Method Added!",
                    "detail": "Your payment method has been successfully set up and is ready to use.",
                    "action": "start_another",
                },
            }
        return {
            "stage": "collecting_payment_details",
            "setupId": self.reference.id,
            "state": self.state.name,
            "submitDisabled": not self.can_submit,
            "busy": isinstance(self.state, Submitting),
            "error": error_message(self.state),
            "redirectUrl": self.state.url if isinstance(self.state, AwaitingRedirect) else None,
        }
