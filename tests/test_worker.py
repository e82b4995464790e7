"""Fetch unit: one request/response exchange, reported under the lock."""

import asyncio
import gzip

import pytest

from ratepoll.cycle import Countdown
from ratepoll.errors import DecodeError, RequestBuildError, TransportError
from ratepoll.fetcher import RawResponse
from ratepoll.worker import FetchUnit
from tests.fakes import FakeFetcher, gzip_response, rates_payload


def _unit(fetcher, diagnostics, countdown, index=0):
    lock = asyncio.Lock()
    diagnostics.lock = lock
    return FetchUnit(index, fetcher, diagnostics, lock, countdown)


@pytest.mark.asyncio
async def test_gzip_json_end_to_end_reports_out_of_scope_dates(diagnostics):
    body = rates_payload(("2024-03-05", 4.6), ("2024-03-06", 4.4), ("2024-03-07", 4.8))
    fetcher = FakeFetcher(response=gzip_response(body))
    countdown = Countdown(1)

    await _unit(fetcher, diagnostics, countdown, index=3).run()

    reports = diagnostics.of("report")
    assert len(reports) == 1
    outcome = reports[0][1]
    assert outcome.index == 3
    assert outcome.status_code == 200
    assert outcome.content_type.startswith("application/json")
    assert outcome.json_valid is True
    assert outcome.out_of_scope_dates == ["6/3/2024", "7/3/2024"]
    assert outcome.elapsed == pytest.approx(0.012)
    assert countdown.remaining == 0
    assert diagnostics.unlocked_calls == []


@pytest.mark.asyncio
async def test_uncompressed_body_is_accepted(diagnostics):
    response = RawResponse(200, headers={"Content-Type": "application/json"},
                           body=rates_payload(("2024-01-02", 4.3)))
    countdown = Countdown(1)

    await _unit(FakeFetcher(response=response), diagnostics, countdown).run()

    assert diagnostics.of("report")[0][1].out_of_scope_dates == ["2/1/2024"]


@pytest.mark.asyncio
@pytest.mark.parametrize("fetcher, error_type", [
    (FakeFetcher(build_raises=RequestBuildError("bad url")), RequestBuildError),
    (FakeFetcher(raises=TransportError("connection reset")), TransportError),
    (FakeFetcher(raises=RuntimeError("boom")), RuntimeError),
])
async def test_failures_are_logged_and_release_countdown(diagnostics, fetcher, error_type):
    countdown = Countdown(1)

    await _unit(fetcher, diagnostics, countdown, index=5).run()

    assert diagnostics.names() == ["failure"]
    _, index, error = diagnostics.events[0]
    assert index == 5
    assert isinstance(error, error_type)
    assert countdown.remaining == 0
    assert diagnostics.unlocked_calls == []


@pytest.mark.asyncio
async def test_corrupt_gzip_is_a_unit_failure(diagnostics):
    response = RawResponse(200, headers={"Content-Encoding": "gzip"}, body=b"not gzip at all")
    countdown = Countdown(1)

    await _unit(FakeFetcher(response=response), diagnostics, countdown).run()

    assert diagnostics.of("failure")[0][2].stage == "decompress"
    assert countdown.remaining == 0


@pytest.mark.asyncio
async def test_invalid_payload_is_a_decode_failure(diagnostics):
    response = RawResponse(200, headers={"Content-Encoding": "gzip"},
                           body=gzip.compress(b"<html>maintenance</html>"))
    countdown = Countdown(1)

    await _unit(FakeFetcher(response=response), diagnostics, countdown).run()

    assert isinstance(diagnostics.of("failure")[0][2], DecodeError)
    assert countdown.remaining == 0


@pytest.mark.asyncio
async def test_cancelled_unit_still_releases_countdown(diagnostics):
    countdown = Countdown(1)
    task = asyncio.create_task(_unit(FakeFetcher(delay=10), diagnostics, countdown).run())
    await asyncio.sleep(0.01)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert countdown.remaining == 0
    assert diagnostics.events == []
