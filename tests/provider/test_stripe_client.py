import asyncio
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from unittest.mock import MagicMock
from setupflow.core.detail_stage import SecureDetailCollectionStage
from setupflow.provider.base import RedirectPolicy
from setupflow.provider.element import PaymentElement
from setupflow.provider.stripe_client import (
    StripeSetupProvider,
    build_provider,
    retrieve_setup_intent,
    setup_intent_id_from_secret,
)
from setupflow.core.models import Complete, SetupReference

SECRET = "seti_123_secret_abc"
RETURN_URL = "http://localhost:8000/setup-complete"
API_BASE = "https://stripe.test"


def make_provider(handler, *, publishable_key="pk_test_1", mounted=True):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    element = PaymentElement(SECRET)
    if mounted:
        element.mount()
    provider = StripeSetupProvider(
        SECRET, publishable_key=publishable_key, api_base=API_BASE, element=element, client=client
    )
    return provider


def json_handler(payload, status=200, seen=None):
    def handler(request: httpx.Request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=payload)
    return handler


def run_confirm(provider, policy=RedirectPolicy.IF_REQUIRED):
    async def go():
        submitted = await provider.pre_submit()
        assert submitted.error is None
        return await provider.confirm_setup(SECRET, RETURN_URL, policy)
    return asyncio.run(go())


def test_setup_intent_id_from_secret():
    assert setup_intent_id_from_secret(SECRET) == "seti_123"


def test_widget_ready_requires_key_and_mount():
    assert make_provider(json_handler({})).widget_ready is True
    assert make_provider(json_handler({}), publishable_key="").widget_ready is False
    assert make_provider(json_handler({}), mounted=False).widget_ready is False


def test_build_provider_mounts_element():
    provider = build_provider(SetupReference(id="seti_123", confirmationSecret=SECRET))
    assert provider.element.mounted is True
    assert provider.element.client_secret == SECRET


def test_presubmit_reports_incomplete_element():
    provider = make_provider(json_handler({}))
    result = asyncio.run(provider.pre_submit())
    assert result.error is not None
    assert result.error.code == "incomplete"
    assert result.error.message


def test_presubmit_rejects_non_tokenized_input():
    provider = make_provider(json_handler({}))
    provider.element.update("4242424242424242")
    result = asyncio.run(provider.pre_submit())
    assert result.error.code == "invalid"


def test_presubmit_rejects_type_outside_order():
    provider = make_provider(json_handler({}))
    provider.element.update("pm_123", "sepa_debit")
    result = asyncio.run(provider.pre_submit())
    assert result.error.code == "payment_method_type_not_allowed"


def test_confirm_requires_presubmit():
    provider = make_provider(json_handler({"status": "succeeded"}))
    with pytest.raises(RuntimeError):
        asyncio.run(provider.confirm_setup(SECRET, RETURN_URL, RedirectPolicy.IF_REQUIRED))


def test_element_update_invalidates_packaged_input():
    provider = make_provider(json_handler({}))
    provider.element.update("pm_1")
    asyncio.run(provider.pre_submit())
    assert provider.element.packaged == {"payment_method": "pm_1"}
    provider.element.update("pm_2")
    assert provider.element.packaged is None


def test_confirm_uses_input_captured_by_presubmit():
    seen = []
    provider = make_provider(json_handler({"id": "seti_123", "status": "succeeded"}, seen=seen))
    provider.element.update("pm_card_visa")

    async def go():
        await provider.pre_submit()
        provider.element.update("pm_card_mastercard")
        return await provider.confirm_setup(SECRET, RETURN_URL, RedirectPolicy.IF_REQUIRED)

    assert asyncio.run(go()).error is None
    assert parse_qs(seen[0].content.decode())["payment_method"] == ["pm_card_visa"]
    # One confirmation per pre_submit
    with pytest.raises(RuntimeError):
        asyncio.run(provider.confirm_setup(SECRET, RETURN_URL, RedirectPolicy.IF_REQUIRED))


def test_element_edit_while_confirming_does_not_break_submission():
    seen = []

    async def scenario():
        gate = asyncio.Event()

        async def handler(request: httpx.Request):
            seen.append(request)
            await gate.wait()
            return httpx.Response(200, json={"id": "seti_123", "status": "succeeded"})

        provider = make_provider(handler)
        provider.element.update("pm_card_visa")
        stage = SecureDetailCollectionStage(
            SetupReference(id="seti_123", confirmationSecret=SECRET),
            provider,
            return_url=RETURN_URL,
            on_back=MagicMock(),
            on_start_another=MagicMock(),
        )
        task = asyncio.ensure_future(stage.confirm())
        for _ in range(50):
            if seen:
                break
            await asyncio.sleep(0)
        provider.element.update("pm_card_mastercard")
        gate.set()
        return await task

    assert asyncio.run(scenario()) == Complete()
    assert parse_qs(seen[0].content.decode())["payment_method"] == ["pm_card_visa"]


def test_confirm_success_posts_expected_form():
    seen = []
    provider = make_provider(json_handler({"id": "seti_123", "status": "succeeded"}, seen=seen))
    provider.element.update("pm_card_visa")

    result = run_confirm(provider)

    assert result.error is None
    assert result.outcome.status == "succeeded"
    assert result.outcome.redirect_url is None

    req = seen[0]
    assert req.method == "POST"
    assert str(req.url) == f"{API_BASE}/v1/setup_intents/seti_123/confirm"
    form = parse_qs(req.content.decode())
    assert form["client_secret"] == [SECRET]
    assert form["return_url"] == [RETURN_URL]
    assert form["payment_method"] == ["pm_card_visa"]
    assert form["key"] == ["pk_test_1"]


def test_confirm_requires_action_returns_redirect():
    body = {
        "status": "requires_action",
        "next_action": {"type": "redirect_to_url", "redirect_to_url": {"url": "https://hooks.stripe.com/3ds/x"}},
    }
    provider = make_provider(json_handler(body))
    provider.element.update("pm_card_3ds")

    result = run_confirm(provider)

    assert result.error is None
    assert result.outcome.redirect_url == "https://hooks.stripe.com/3ds/x"


def test_confirm_requires_action_without_redirect_is_error():
    body = {"status": "requires_action", "next_action": {"type": "use_stripe_sdk"}}
    provider = make_provider(json_handler(body))
    provider.element.update("pm_x")
    result = run_confirm(provider)
    assert result.error.code == "unsupported_next_action"


def test_confirm_always_policy_redirects_to_return_url():
    provider = make_provider(json_handler({"status": "succeeded"}))
    provider.element.update("pm_card_visa")

    result = run_confirm(provider, RedirectPolicy.ALWAYS)

    parsed = urlparse(result.outcome.redirect_url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == RETURN_URL
    q = parse_qs(parsed.query)
    assert q["setup_intent"] == ["seti_123"]
    assert q["redirect_status"] == ["succeeded"]


def test_confirm_error_payload_maps_to_provider_error():
    body = {"error": {"type": "card_error", "code": "card_declined", "message": "Your card was declined."}}
    provider = make_provider(json_handler(body, status=402))
    provider.element.update("pm_card_chargeDeclined")

    result = run_confirm(provider)

    assert result.outcome is None
    assert result.error.message == "Your card was declined."
    assert result.error.code == "card_declined"
    assert result.error.type == "card_error"


def test_confirm_requires_payment_method_uses_last_setup_error():
    body = {"status": "requires_payment_method", "last_setup_error": {"message": "Authentication failed."}}
    provider = make_provider(json_handler(body))
    provider.element.update("pm_x")
    result = run_confirm(provider)
    assert result.error.message == "Authentication failed."


def test_confirm_unknown_status_has_no_message():
    provider = make_provider(json_handler({"status": "canceled"}))
    provider.element.update("pm_x")
    result = run_confirm(provider)
    assert result.error.message == ""
    assert result.error.code == "canceled"


def test_confirm_server_error_without_error_body_raises():
    def handler(request):
        return httpx.Response(500, json={"unexpected": True})
    provider = make_provider(handler)
    provider.element.update("pm_x")
    with pytest.raises(httpx.HTTPStatusError):
        run_confirm(provider)


def test_retrieve_setup_intent_passes_secret_and_key():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "seti_123", "status": "succeeded"})

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await retrieve_setup_intent("seti_123", SECRET, publishable_key="pk_test_1", client=client)

    intent = asyncio.run(go())
    assert intent["status"] == "succeeded"
    params = dict(seen[0].url.params)
    assert params == {"client_secret": SECRET, "key": "pk_test_1"}
    assert seen[0].url.path == "/v1/setup_intents/seti_123"
