"""
Stripe adapter for the provider capability surface.

Client-side confirmation only: every call is authenticated with the publishable key
plus the SetupIntent client secret, the same way the browser SDK does it.

POST {STRIPE_API_BASE}/v1/setup_intents/{id}/confirm
GET  {STRIPE_API_BASE}/v1/setup_intents/{id}?client_secret=...
"""
from __future__ import annotations

import time
from typing import Optional
from urllib.parse import urlencode

import httpx

from setupflow.observability.logging import log
from setupflow.provider.base import (
    ConfirmationOutcome,
    ConfirmResult,
    ProviderError,
    RedirectPolicy,
    SubmitResult,
)
from setupflow.provider.element import PaymentElement
from setupflow.settings import settings

SECRET_MARKER = "_secret_"

_client: Optional[httpx.AsyncClient] = None


def get_client() -> httpx.AsyncClient:
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT_SEC)
    return _client


async def aclose_client() -> None:
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
    _client = None


def setup_intent_id_from_secret(secret: str) -> str:
    # seti_123_secret_abc -> seti_123
    return secret.split(SECRET_MARKER, 1)[0]


def _headers() -> dict:
    return {
        "Accept": "application/json",
        "Stripe-Version": settings.STRIPE_API_VERSION,
    }


def _provider_error(err) -> ProviderError:
    if not isinstance(err, dict):
        err = {}
    return ProviderError(
        message=str(err.get("message") or ""),
        code=err.get("code") or err.get("decline_code"),
        type=err.get("type"),
    )


def _return_url_with_status(return_url: str, setup_id: str, secret: str, status: str) -> str:
    query = urlencode({
        "setup_intent": setup_id,
        "setup_intent_client_secret": secret,
        "redirect_status": status,
    })
    sep = "&" if "?" in return_url else "?"
    return f"{return_url}{sep}{query}"


class StripeSetupProvider:
    def __init__(
        self,
        client_secret: str,
        *,
        publishable_key: Optional[str] = None,
        api_base: Optional[str] = None,
        element: Optional[PaymentElement] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.publishable_key = settings.STRIPE_PUBLISHABLE_KEY if publishable_key is None else publishable_key
        self.api_base = (api_base or settings.STRIPE_API_BASE).rstrip("/")
        self.element = element or PaymentElement(
            client_secret,
            layout=settings.ELEMENT_LAYOUT,
            payment_method_order=settings.payment_method_order(),
        )
        self._client = client
        # Input packaged by the last successful pre_submit, consumed by confirm_setup
        self._submitted: Optional[dict] = None

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or get_client()

    @property
    def widget_ready(self) -> bool:
        return bool(self.publishable_key) and self.element.mounted

    async def pre_submit(self) -> SubmitResult:
        result = self.element.submit()
        self._submitted = dict(self.element.packaged) if result.error is None else None
        return result

    async def confirm_setup(self, secret: str, redirect_target: str, redirect_policy: RedirectPolicy) -> ConfirmResult:
        packaged, self._submitted = self._submitted, None
        if packaged is None:
            raise RuntimeError("confirm_setup called before a successful pre_submit")

        setup_id = setup_intent_id_from_secret(secret)
        url = f"{self.api_base}/v1/setup_intents/{setup_id}/confirm"
        data = {
            "client_secret": secret,
            "return_url": redirect_target,
            "key": self.publishable_key,
            "use_stripe_sdk": "false",
            **packaged,
        }

        start = time.time()
        log(event="provider_request", setupId=setup_id, op="confirm_setup", policy=redirect_policy.value)
        resp = await self.client.post(url, headers=_headers(), data=data)
        elapsed_ms = int((time.time() - start) * 1000)
        body = resp.json()
        log(event="provider_response", setupId=setup_id, statusCode=int(resp.status_code), elapsedMs=elapsed_ms)

        if isinstance(body, dict) and "error" in body:
            return ConfirmResult(error=_provider_error(body["error"]))
        resp.raise_for_status()

        status = body.get("status")
        if status == "requires_action":
            next_action = body.get("next_action") or {}
            redirect = (next_action.get("redirect_to_url") or {}).get("url")
            if not redirect:
                return ConfirmResult(error=ProviderError(
                    "This setup needs an authentication step that cannot be completed here.",
                    code="unsupported_next_action",
                    type=next_action.get("type"),
                ))
            return ConfirmResult(outcome=ConfirmationOutcome(status=status, redirect_url=redirect))

        if status in ("succeeded", "processing"):
            redirect_url = None
            if redirect_policy == RedirectPolicy.ALWAYS:
                redirect_url = _return_url_with_status(redirect_target, setup_id, secret, status)
            return ConfirmResult(outcome=ConfirmationOutcome(status=status, redirect_url=redirect_url))

        if status == "requires_payment_method":
            return ConfirmResult(error=_provider_error(body.get("last_setup_error")))

        # canceled / unknown: no message, call site falls back to its default
        return ConfirmResult(error=ProviderError(code=str(status)))


async def retrieve_setup_intent(
    setup_id: str,
    client_secret: str,
    *,
    publishable_key: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> dict:
    """Fetch the client-visible SetupIntent; raises httpx.HTTPStatusError on non-2xx."""
    key = settings.STRIPE_PUBLISHABLE_KEY if publishable_key is None else publishable_key
    c = client or get_client()
    resp = await c.get(
        f"{settings.STRIPE_API_BASE}/v1/setup_intents/{setup_id}",
        headers=_headers(),
        params={"client_secret": client_secret, "key": key},
    )
    resp.raise_for_status()
    return resp.json()


def build_provider(reference) -> StripeSetupProvider:
    """Default provider factory: one element per frozen reference, mounted on entry."""
    provider = StripeSetupProvider(reference.confirmationSecret)
    provider.element.mount()
    return provider
