"""Tests for the GraphQL transport."""

from __future__ import annotations
import json
import httpx
import pytest
import respx
from lirt.errors import (
    AuthenticationError,
    PartialAPIError,
    RateLimitError,
    TransportError,
)
from lirt.transport import GraphQLClient, GraphQLResult, operation_name


ENDPOINT = "https://linear.test/graphql"
API_KEY = "lin_api_transport_test_key_0000000000"
VIEWER = "query Viewer { viewer { id } }"


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def client(sleeps: list[float]) -> GraphQLClient:
    return GraphQLClient(API_KEY, endpoint=ENDPOINT, sleep=sleeps.append)


def test_key_is_sent_as_bearer_header_only(client: GraphQLClient) -> None:
    with respx.mock(assert_all_called=True) as router:
        route = router.post(ENDPOINT).mock(
            return_value=httpx.Response(200, json={"data": {"viewer": {"id": "u1"}}})
        )
        result = client.query(VIEWER, {"first": 1})

    assert result.data == {"viewer": {"id": "u1"}}
    request = route.calls.last.request
    assert request.headers["Authorization"] == f"Bearer {API_KEY}"
    assert request.headers["User-Agent"].startswith("lirt/")
    body = request.content.decode()
    assert API_KEY not in body
    assert json.loads(body) == {"query": VIEWER, "variables": {"first": 1}}


def test_empty_key_is_rejected() -> None:
    with pytest.raises(AuthenticationError):
        GraphQLClient("", endpoint=ENDPOINT)


def test_null_data_without_errors_is_an_empty_result(client: GraphQLClient) -> None:
    with respx.mock() as router:
        router.post(ENDPOINT).mock(
            return_value=httpx.Response(200, json={"data": None})
        )
        result = client.query(VIEWER)

    assert result == GraphQLResult()
    assert result.empty


def test_errors_with_data_raise_partial_error(client: GraphQLClient) -> None:
    body = {
        "data": {"viewer": None},
        "errors": [
            {"message": "Entity not found", "extensions": {"code": "ENTITY_NOT_FOUND"}}
        ],
    }
    with respx.mock() as router:
        router.post(ENDPOINT).mock(return_value=httpx.Response(200, json=body))
        with pytest.raises(PartialAPIError) as excinfo:
            client.query(VIEWER)

    error = excinfo.value
    assert error.data == {"viewer": None}
    assert error.codes == ["ENTITY_NOT_FOUND"]
    assert error.not_found
    assert "Entity not found" in str(error)


def test_partial_error_not_found_requires_every_error(client: GraphQLClient) -> None:
    body = {
        "errors": [
            {"message": "Entity not found"},
            {"message": "Argument invalid", "extensions": {"code": "INVALID_INPUT"}},
        ]
    }
    with respx.mock() as router:
        router.post(ENDPOINT).mock(return_value=httpx.Response(400, json=body))
        with pytest.raises(PartialAPIError) as excinfo:
            client.query(VIEWER)

    assert not excinfo.value.not_found
    assert len(excinfo.value.messages) == 2


def test_rate_limit_is_retried_after_requested_delay(
    client: GraphQLClient, sleeps: list[float]
) -> None:
    with respx.mock() as router:
        route = router.post(ENDPOINT).mock(
            side_effect=[
                httpx.Response(429, headers={"Retry-After": "2"}),
                httpx.Response(200, json={"data": {"viewer": {"id": "u1"}}}),
            ]
        )
        result = client.query(VIEWER)

    assert result.data["viewer"]["id"] == "u1"
    assert route.call_count == 2
    assert sleeps == [2.0]


def test_structured_rate_limit_error_is_retried(
    client: GraphQLClient, sleeps: list[float]
) -> None:
    limited = {
        "errors": [{"message": "Rate limited", "extensions": {"code": "RATELIMITED"}}]
    }
    with respx.mock() as router:
        router.post(ENDPOINT).mock(
            side_effect=[
                httpx.Response(400, json=limited),
                httpx.Response(200, json={"data": {"viewer": {"id": "u1"}}}),
            ]
        )
        client.query(VIEWER)

    assert sleeps == [1.0]


def test_retry_delay_is_capped(client: GraphQLClient, sleeps: list[float]) -> None:
    with respx.mock() as router:
        router.post(ENDPOINT).mock(
            side_effect=[
                httpx.Response(429, headers={"Retry-After": "3600"}),
                httpx.Response(200, json={"data": {}}),
            ]
        )
        client.query(VIEWER)

    assert sleeps == [60.0]


def test_rate_limit_exhaustion_raises(
    client: GraphQLClient, sleeps: list[float]
) -> None:
    with respx.mock() as router:
        route = router.post(ENDPOINT).mock(
            return_value=httpx.Response(429, headers={"Retry-After": "5"})
        )
        with pytest.raises(RateLimitError) as excinfo:
            client.query(VIEWER)

    assert route.call_count == 3
    assert sleeps == [5.0, 5.0]
    assert excinfo.value.retry_after == 5.0


@pytest.mark.parametrize("status", [401, 403])
def test_rejected_key_is_an_authentication_error(
    client: GraphQLClient, status: int
) -> None:
    with respx.mock() as router:
        router.post(ENDPOINT).mock(return_value=httpx.Response(status, json={}))
        with pytest.raises(AuthenticationError) as excinfo:
            client.query(VIEWER)

    assert API_KEY not in str(excinfo.value)


def test_structured_authentication_error(client: GraphQLClient) -> None:
    body = {
        "errors": [
            {
                "message": "Authentication required",
                "extensions": {"code": "AUTHENTICATION_ERROR"},
            }
        ]
    }
    with respx.mock() as router:
        router.post(ENDPOINT).mock(return_value=httpx.Response(200, json=body))
        with pytest.raises(AuthenticationError):
            client.query(VIEWER)


def test_timeout_is_a_transport_error(client: GraphQLClient) -> None:
    with respx.mock() as router:
        router.post(ENDPOINT).mock(side_effect=httpx.ReadTimeout("timed out"))
        with pytest.raises(TransportError, match="timed out"):
            client.query(VIEWER)


def test_connection_error_is_a_transport_error(client: GraphQLClient) -> None:
    with respx.mock() as router:
        router.post(ENDPOINT).mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(TransportError):
            client.query(VIEWER)


def test_server_error_without_body_carries_status(client: GraphQLClient) -> None:
    with respx.mock() as router:
        router.post(ENDPOINT).mock(return_value=httpx.Response(502, text="Bad gateway"))
        with pytest.raises(TransportError) as excinfo:
            client.query(VIEWER)

    assert excinfo.value.status_code == 502


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json=[1, 2]),
        httpx.Response(200, json={"data": "nope"}),
    ],
)
def test_malformed_bodies_are_transport_errors(
    client: GraphQLClient, response: httpx.Response
) -> None:
    with respx.mock() as router:
        router.post(ENDPOINT).mock(return_value=response)
        with pytest.raises(TransportError):
            client.query(VIEWER)


def test_operation_name() -> None:
    assert operation_name(VIEWER) == "Viewer"
    assert operation_name("mutation CreateIssue($x: Int) { a }") == "CreateIssue"
    assert operation_name("{ viewer { id } }") == "anonymous"


def test_client_is_a_context_manager() -> None:
    with GraphQLClient(API_KEY, endpoint=ENDPOINT) as client:
        assert client.endpoint == ENDPOINT
