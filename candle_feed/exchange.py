"""
Exchange REST adapter (BitMEX-style /trade/bucketed and /trade endpoints).

Every request carries a timeout and is retried with bounded exponential
backoff on network errors, rate limits, server errors and garbled bodies.
Anything still failing surfaces as FetchFailure.
"""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from .errors import FetchFailure
from .logs import c_desc, c_var, log_warn
from .models import BucketedBar, Trade

# ----------------------------------------------------------------------
# Constants
# ----------------------------------------------------------------------
API_URL = "https://www.bitmex.com/api/v1"
DEFAULT_SYMBOL = "XBTUSD"
USER_AGENT = "CandleFeed/0.1"
HEADERS = {"User-Agent": USER_AGENT}

MAX_TRADES = 200
TRADE_COLUMNS = ["timestamp", "size", "price"]

HTTP_TIMEOUT_SECONDS = 10
FETCH_MAX_ATTEMPTS = 3
BACKOFF_INITIAL_SECONDS = 0.5
BACKOFF_MAX_SECONDS = 4.0


class ExchangeClient:
    """
    Thin client pinned to a single symbol.

    Bucketed bars and trades are fetched from two threads on every live
    tick, so each endpoint owns its own requests.Session. An injected
    `trades_session` defaults to the injected `session`; `sleep` is
    injectable too so tests run without a network.
    """

    def __init__(
        self,
        symbol: str = DEFAULT_SYMBOL,
        api_url: str = API_URL,
        *,
        session: Optional[requests.Session] = None,
        trades_session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        max_attempts: int = FETCH_MAX_ATTEMPTS,
        backoff_initial: float = BACKOFF_INITIAL_SECONDS,
        backoff_max: float = BACKOFF_MAX_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        verbose: bool = False,
    ):
        self.symbol = symbol
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.trades_session = trades_session or session or requests.Session()
        for s in (self.session, self.trades_session):
            s.headers.update(HEADERS)
        self.timeout = timeout
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self._sleep = sleep
        self.verbose = verbose

    # -----------------------------
    # Endpoints
    # -----------------------------
    def get_bucketed_bars(
        self, bin_size: str, *, partial: bool, count: int, reverse: bool = True
    ) -> List[BucketedBar]:
        params = {
            "binSize": bin_size,
            "partial": "true" if partial else "false",
            "symbol": self.symbol,
            "count": int(count),
            "reverse": "true" if reverse else "false",
        }
        rows = self._get_json(self.session, "trade/bucketed", params)
        return [BucketedBar.from_row(r) for r in rows]

    def get_recent_trades(self, count: int = MAX_TRADES, *, reverse: bool = True) -> List[Trade]:
        params = {
            "symbol": self.symbol,
            "columns": json.dumps(TRADE_COLUMNS),
            "count": int(count),
            "reverse": "true" if reverse else "false",
        }
        rows = self._get_json(self.trades_session, "trade", params)
        return [Trade.from_row(r) for r in rows]

    def close(self) -> None:
        self.session.close()
        if self.trades_session is not self.session:
            self.trades_session.close()

    # -----------------------------
    # Transport
    # -----------------------------
    def _get_json(self, session: requests.Session, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        url = f"{self.api_url}/{path}"
        delay = self.backoff_initial
        last_error = "no attempt made"
        last_status: Optional[int] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = session.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as e:
                last_error = f"network error: {e}"
                last_status = None
            else:
                last_status = resp.status_code
                if resp.status_code == 200:
                    try:
                        data = resp.json()
                    except ValueError as e:
                        last_error = f"failed to decode JSON response: {e}"
                    else:
                        if not isinstance(data, list):
                            raise FetchFailure(
                                f"Unexpected payload from {url}: {str(data)[:200]}", url=url, status=200
                            )
                        return data
                elif resp.status_code == 429 or resp.status_code >= 500:
                    last_error = f"HTTP {resp.status_code}"
                else:
                    raise FetchFailure(
                        f"HTTP {resp.status_code} from {url}: {resp.text[:200]}",
                        url=url,
                        status=resp.status_code,
                    )

            if attempt < self.max_attempts:
                if self.verbose:
                    log_warn(f"GET {c_var(path)} failed ({c_desc(last_error)}). "
                             f"Retrying in {c_var(f'{delay:g}s')}...")
                self._sleep(delay)
                delay = min(self.backoff_max, delay * 2)

        raise FetchFailure(
            f"GET {url} failed after {self.max_attempts} attempts: {last_error}",
            url=url,
            status=last_status,
        )
