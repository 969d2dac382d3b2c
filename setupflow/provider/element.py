from typing import List, Optional

from setupflow.provider.base import ProviderError, SubmitResult

PAYMENT_METHOD_PREFIX = "pm_"


class PaymentElement:
    """
    Server-side handle of the embedded payment element.

    Raw card fields never reach this process: the client-side element tokenizes them
    and we only receive the resulting payment method id.
    """

    def __init__(self, client_secret: str, *, layout: str = "tabs", payment_method_order: Optional[List[str]] = None):
        self.client_secret = client_secret
        self.layout = layout
        self.payment_method_order = payment_method_order or ["card"]
        self.mounted = False
        self.payment_method: Optional[str] = None
        self.payment_method_type: Optional[str] = None
        self._packaged: Optional[dict] = None

    def mount(self) -> None:
        self.mounted = True

    def unmount(self) -> None:
        self.mounted = False
        self._packaged = None

    def update(self, payment_method: str, payment_method_type: str = "card") -> None:
        self.payment_method = (payment_method or "").strip() or None
        self.payment_method_type = payment_method_type
        # Any edit invalidates a previous submit
        self._packaged = None

    @property
    def packaged(self) -> Optional[dict]:
        return self._packaged

    def submit(self) -> SubmitResult:
        """Validate collected input and package it for confirmation."""
        if not self.payment_method:
            return SubmitResult(error=ProviderError("Your payment details are incomplete.", code="incomplete", type="validation_error"))
        if not self.payment_method.startswith(PAYMENT_METHOD_PREFIX):
            return SubmitResult(error=ProviderError("Your payment details are invalid.", code="invalid", type="validation_error"))
        if self.payment_method_type not in self.payment_method_order:
            return SubmitResult(
                error=ProviderError(
                    f"Payment method type '{self.payment_method_type}' is not accepted here.",
                    code="payment_method_type_not_allowed",
                    type="validation_error",
                )
            )
        self._packaged = {"payment_method": self.payment_method}
        return SubmitResult()

    def options(self) -> dict:
        return {"layout": self.layout, "paymentMethodOrder": list(self.payment_method_order)}
