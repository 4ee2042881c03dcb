"""ProxyForwarder: request shaping, failure classification and capture."""

import json

import httpx
import respx

from mockproxy.core.models import ServingMode
from mockproxy.core.state import ModeController
from mockproxy.services.proxy import ProxyForwarder, encode_body

from conftest import UPSTREAM, make_request


def forwarder_for(controller=None, **kwargs):
    return ProxyForwarder(UPSTREAM, controller or ModeController(ServingMode.FULL_PROXY), **kwargs)


@respx.mock
async def test_get_is_forwarded_without_body_or_inbound_host():
    route = respx.get(f"{UPSTREAM}/items").mock(
        return_value=httpx.Response(200, content=b'{"a":1}', headers={"Content-Type": "application/json"})
    )
    forwarder = forwarder_for()
    response = await forwarder.forward(make_request("GET", "/items", headers={"Host": "localhost:3000", "X-Trace": "t1"}))
    await forwarder.aclose()

    sent = route.calls.last.request
    assert sent.headers["host"] == "upstream.test"
    assert sent.headers["x-trace"] == "t1"
    assert sent.content == b""

    assert response.ok
    assert response.status == 200
    assert response.body == b'{"a":1}'
    assert response.headers["content-type"] == "application/json"
    assert response.source == "Proxy"


@respx.mock
async def test_query_string_is_forwarded():
    route = respx.get(f"{UPSTREAM}/search", params={"q": "x"}).mock(return_value=httpx.Response(200))
    forwarder = forwarder_for()
    await forwarder.forward(make_request("GET", "/search", query="q=x"))
    await forwarder.aclose()

    assert route.called


@respx.mock
async def test_structured_body_is_sent_as_json():
    route = respx.post(f"{UPSTREAM}/orders").mock(return_value=httpx.Response(201))
    forwarder = forwarder_for()
    response = await forwarder.forward(make_request("POST", "/orders", body={"b": 2, "a": 1}))
    await forwarder.aclose()

    assert json.loads(route.calls.last.request.content) == {"b": 2, "a": 1}
    assert response.status == 201


@respx.mock
async def test_bodiless_post_is_forwarded_without_body():
    route = respx.post(f"{UPSTREAM}/orders").mock(return_value=httpx.Response(201))
    forwarder = forwarder_for()
    await forwarder.forward(make_request("POST", "/orders"))
    await forwarder.aclose()

    assert route.calls.last.request.content == b""


def test_encode_body_rules():
    assert encode_body(make_request("GET", "/", body={"a": 1})) is None
    assert encode_body(make_request("PUT", "/", body="plain")) == b"plain"
    assert encode_body(make_request("DELETE", "/")) is None


@respx.mock
async def test_timeout_is_counted_toward_breaker():
    respx.get(f"{UPSTREAM}/slow").mock(side_effect=httpx.ReadTimeout)
    controller = ModeController(ServingMode.MOCK_FIRST)
    forwarder = forwarder_for(controller)

    response = await forwarder.forward(make_request("GET", "/slow"))
    await forwarder.aclose()

    assert response.error == "timeout"
    assert response.status == 504
    assert json.loads(response.body) == {"error": "timeout"}
    assert controller.consecutive_timeouts == 1


@respx.mock
async def test_transport_error_is_not_counted():
    respx.get(f"{UPSTREAM}/down").mock(side_effect=httpx.ConnectError)
    controller = ModeController(ServingMode.MOCK_FIRST)
    forwarder = forwarder_for(controller)

    response = await forwarder.forward(make_request("GET", "/down"))
    await forwarder.aclose()

    assert response.error == "ConnectError"
    assert response.status == 502
    assert controller.consecutive_timeouts == 0


@respx.mock
async def test_non_timeout_failure_does_not_reset_counter():
    respx.get(f"{UPSTREAM}/slow").mock(side_effect=httpx.ConnectTimeout)
    respx.get(f"{UPSTREAM}/down").mock(side_effect=httpx.ConnectError)
    controller = ModeController(ServingMode.MOCK_FIRST)
    forwarder = forwarder_for(controller)

    await forwarder.forward(make_request("GET", "/slow"))
    await forwarder.forward(make_request("GET", "/slow"))
    await forwarder.forward(make_request("GET", "/down"))
    assert controller.consecutive_timeouts == 2
    assert controller.mode is ServingMode.MOCK_FIRST

    await forwarder.forward(make_request("GET", "/slow"))
    await forwarder.aclose()
    assert controller.mode is ServingMode.FULL_MOCK
    assert controller.consecutive_timeouts == 0


@respx.mock
async def test_successful_response_does_not_reset_counter():
    respx.get(f"{UPSTREAM}/slow").mock(side_effect=httpx.ReadTimeout)
    respx.get(f"{UPSTREAM}/ok").mock(return_value=httpx.Response(200))
    controller = ModeController(ServingMode.MOCK_FIRST)
    forwarder = forwarder_for(controller)

    await forwarder.forward(make_request("GET", "/slow"))
    await forwarder.forward(make_request("GET", "/ok"))
    await forwarder.aclose()
    assert controller.consecutive_timeouts == 1


@respx.mock
async def test_capture_on_200(store, fixture_root):
    respx.get(f"{UPSTREAM}/items").mock(
        return_value=httpx.Response(200, content=b'{"a":1}', headers={"Content-Type": "application/json"})
    )
    forwarder = forwarder_for(store=store, capture_enabled=True)
    await forwarder.forward(make_request("GET", "/items"))
    await forwarder.aclose()

    headers = json.loads((fixture_root / "public" / "items.headers.json").read_text())
    assert headers["status"] == 200
    assert headers["content-type"] == "application/json"
    assert "content-length" not in headers
    assert (fixture_root / "public" / "items.data.raw").read_bytes() == b'{"a":1}'


@respx.mock
async def test_no_capture_for_non_200(store, fixture_root):
    respx.get(f"{UPSTREAM}/missing").mock(return_value=httpx.Response(404, content=b"nope"))
    forwarder = forwarder_for(store=store, capture_enabled=True)
    response = await forwarder.forward(make_request("GET", "/missing"))
    await forwarder.aclose()

    assert response.status == 404
    assert not (fixture_root / "public").exists()


@respx.mock
async def test_no_capture_when_disabled(store, fixture_root):
    respx.get(f"{UPSTREAM}/items").mock(return_value=httpx.Response(200, content=b"[]"))
    forwarder = forwarder_for(store=store, capture_enabled=False)
    await forwarder.forward(make_request("GET", "/items"))
    await forwarder.aclose()

    assert not (fixture_root / "public").exists()
