"""
Provider capability surface consumed by the detail stage.

Expected failures (bad card data, declined setup) come back as a ProviderError
inside the result object; anything raised is treated as unexpected.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


class RedirectPolicy(str, Enum):
    # Only leave the page when the provider flow needs it (e.g. 3DS challenge)
    IF_REQUIRED = "if_required"
    ALWAYS = "always"


@dataclass(frozen=True)
class ProviderError:
    message: str = ""
    code: Optional[str] = None
    type: Optional[str] = None


@dataclass(frozen=True)
class ConfirmationOutcome:
    status: str = "succeeded"
    redirect_url: Optional[str] = None


@dataclass(frozen=True)
class SubmitResult:
    error: Optional[ProviderError] = None


@dataclass(frozen=True)
class ConfirmResult:
    error: Optional[ProviderError] = None
    outcome: Optional[ConfirmationOutcome] = None


class PaymentProvider(Protocol):
    @property
    def widget_ready(self) -> bool:
        ...

    async def pre_submit(self) -> SubmitResult:
        ...

    async def confirm_setup(
        self, secret: str, redirect_target: str, redirect_policy: RedirectPolicy
    ) -> ConfirmResult:
        ...
