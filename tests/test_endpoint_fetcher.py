"""
Test ordered RPC endpoint failover.
"""

import pytest

from fee_claimer.core.exceptions import AccessDenied, EndpointUnavailable, NetworkTimeout, RateLimited, RpcFailureKind
from fee_claimer.services.endpoint_fetcher import EndpointFailoverFetcher

from conftest import FakeConnectionFactory, make_fee


ENDPOINTS = ["https://one.rpc", "https://two.rpc", "https://three.rpc", "https://four.rpc"]


class ScriptedQuery:
    """Per-endpoint answers: an exception to raise or a list of snapshots."""

    def __init__(self, answers):
        self.answers = answers
        self.endpoints = []

    async def __call__(self, connection):
        self.endpoints.append(connection.endpoint)
        answer = self.answers.get(connection.endpoint, [])
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.mark.asyncio
async def test_first_answering_endpoint_wins():
    """Earlier failures are skipped and later endpoints never contacted."""
    third = [make_fee(partner_base=5)]
    query = ScriptedQuery({
        ENDPOINTS[0]: AccessDenied("403"),
        ENDPOINTS[1]: NetworkTimeout("timed out"),
        ENDPOINTS[2]: third,
        ENDPOINTS[3]: [make_fee(), make_fee()],
    })
    factory = FakeConnectionFactory()
    fetcher = EndpointFailoverFetcher(ENDPOINTS, connection_factory=factory)

    completed = await fetcher.fetch(query)

    assert completed.endpoint == ENDPOINTS[2]
    assert completed.snapshots == third
    assert query.endpoints == ENDPOINTS[:3]


@pytest.mark.asyncio
async def test_each_attempt_uses_fresh_connection():
    query = ScriptedQuery({ENDPOINTS[0]: RateLimited("429")})
    factory = FakeConnectionFactory()
    fetcher = EndpointFailoverFetcher(ENDPOINTS[:2], connection_factory=factory)

    await fetcher.fetch(query)

    assert factory.opened == ENDPOINTS[:2]
    assert factory.closed == ENDPOINTS[:2]
    assert factory.connections[0] is not factory.connections[1]


@pytest.mark.asyncio
async def test_all_endpoints_fail_with_last_error_kind():
    query = ScriptedQuery({
        ENDPOINTS[0]: RateLimited("429"),
        ENDPOINTS[1]: AccessDenied("403 Access forbidden"),
    })
    fetcher = EndpointFailoverFetcher(ENDPOINTS[:2], connection_factory=FakeConnectionFactory())

    with pytest.raises(EndpointUnavailable) as exc_info:
        await fetcher.fetch(query)

    assert exc_info.value.kind == RpcFailureKind.ACCESS_DENIED
    assert isinstance(exc_info.value.last_error, AccessDenied)
    assert exc_info.value.__cause__ is exc_info.value.last_error


@pytest.mark.asyncio
async def test_generic_last_failure():
    query = ScriptedQuery({ENDPOINTS[0]: ValueError("unexpected payload")})
    fetcher = EndpointFailoverFetcher(ENDPOINTS[:1], connection_factory=FakeConnectionFactory())

    with pytest.raises(EndpointUnavailable) as exc_info:
        await fetcher.fetch(query)

    assert exc_info.value.kind == RpcFailureKind.GENERIC


@pytest.mark.asyncio
async def test_empty_endpoint_list_fails():
    fetcher = EndpointFailoverFetcher([], connection_factory=FakeConnectionFactory())

    with pytest.raises(EndpointUnavailable) as exc_info:
        await fetcher.fetch(ScriptedQuery({}))

    assert exc_info.value.kind == RpcFailureKind.GENERIC


@pytest.mark.asyncio
async def test_empty_result_is_a_success(gate):
    """An endpoint answering with no pools still wins."""
    fetcher = EndpointFailoverFetcher(ENDPOINTS, connection_factory=FakeConnectionFactory(), gate=gate)

    completed = await fetcher.fetch(ScriptedQuery({}))

    assert completed.endpoint == ENDPOINTS[0]
    assert completed.snapshots == []
