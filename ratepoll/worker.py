"""
Implements the pipeline for a single fetch unit:
- build request → perform → decompress → validate → decode → filter → report.

Every error stays inside the unit. The countdown is released no matter how
the unit ends, so the coordinator never waits on a unit that already died.
"""

from typing import List

from ratepoll.fetcher import decompress
from ratepoll.rates import decode_summary, is_valid_json, rates_out_of_scope


class FetchOutcome:
    def __init__(
        self,
        index: int,
        elapsed: float,
        status_code: int,
        content_type: str,
        json_valid: bool,
        out_of_scope_dates: List[str] = None,
    ):
        """Diagnostics produced by one fetch unit, logged once and discarded."""
        self.index = index
        self.elapsed = elapsed
        self.status_code = status_code
        self.content_type = content_type
        self.json_valid = json_valid
        self.out_of_scope_dates = out_of_scope_dates or []


class FetchUnit:
    """One concurrent worker of a cycle."""

    def __init__(self, index: int, fetcher, diagnostics, print_lock, countdown,
                 rate_floor: float = 4.5, rate_ceiling: float = 4.7):
        self.index = index
        self.fetcher = fetcher
        self.diagnostics = diagnostics
        self.print_lock = print_lock
        self.countdown = countdown
        self.rate_floor = rate_floor
        self.rate_ceiling = rate_ceiling

    async def run(self):
        """Fetch, report under the print lock, and release the countdown."""
        try:
            outcome = await self._fetch()
        except Exception as e:
            async with self.print_lock:
                self.diagnostics.unit_failure(self.index, e)
        else:
            async with self.print_lock:
                self.diagnostics.unit_report(outcome)
        finally:
            self.countdown.done()

    async def _fetch(self) -> FetchOutcome:
        request = self.fetcher.build_request()
        response = await self.fetcher.perform(request)

        content = decompress(response.body, response.content_encoding)
        json_valid = is_valid_json(content)
        summary = decode_summary(content)

        return FetchOutcome(
            index=self.index,
            elapsed=response.elapsed,
            status_code=response.status_code,
            content_type=response.content_type,
            json_valid=json_valid,
            out_of_scope_dates=rates_out_of_scope(summary, self.rate_floor, self.rate_ceiling),
        )
