"""Client for an OpenTDB-compatible trivia question API.

Handles retries with exponential backoff, the API's session tokens, URL-encoded
payloads, a short result cache and coalescing of identical concurrent requests.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote

import httpx
from pydantic import ValidationError

from .errors import TriviaAPIError
from .schemas import QuizConfig, TriviaQuestion

logger = logging.getLogger(__name__)

# OpenTDB response codes
RESPONSE_OK = 0
RESPONSE_NO_RESULTS = 1
RESPONSE_INVALID_PARAMETER = 2
RESPONSE_TOKEN_NOT_FOUND = 3
RESPONSE_TOKEN_EMPTY = 4
RESPONSE_RATE_LIMIT = 5

_RESPONSE_MESSAGES = {
    RESPONSE_NO_RESULTS: "Not enough questions for this configuration",
    RESPONSE_INVALID_PARAMETER: "Invalid quiz configuration",
    RESPONSE_RATE_LIMIT: "Trivia API rate limit reached, try again shortly",
}

CacheKey = Tuple[int, int, str, bool]


def _should_retry(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code <= 599


def _decode(value: str) -> str:
    return unquote(value)


class TriviaClient:
    def __init__(
        self,
        base_url: str = "https://opentdb.com",
        retries: int = 4,
        backoff_base: float = 0.6,
        backoff_max: float = 5.0,
        jitter: float = 0.25,
        cache_ttl: float = 60.0,
        token_retry_interval: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.retries = retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.jitter = jitter
        self.cache_ttl = cache_ttl
        self.token_retry_interval = token_retry_interval
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=10.0)
        self._sleep = sleep

        self._token: Optional[str] = None
        self._token_failed_at: Optional[float] = None
        self._token_lock = asyncio.Lock()
        self._cache: Dict[CacheKey, Tuple[float, List[TriviaQuestion]]] = {}
        self._in_flight: Dict[CacheKey, "asyncio.Task[List[TriviaQuestion]]"] = {}

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # HTTP with retry
    # ------------------------------------------------------------------

    def _backoff(self, attempt: int) -> float:
        delay = min(self.backoff_max, self.backoff_base * (2 ** attempt))
        return delay + random.uniform(0, self.jitter)

    def _retry_after(self, response: httpx.Response) -> Optional[float]:
        header = response.headers.get("Retry-After")
        if not header:
            return None
        try:
            seconds = float(header)
        except ValueError:
            return None
        return min(self.backoff_max, max(0.0, seconds))

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        last_error: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            try:
                response = await self._http.get(path, params=params)
            except httpx.TransportError as exc:
                last_error = exc
                logger.warning("Trivia API request failed (attempt %d): %s", attempt + 1, exc)
                if attempt < self.retries:
                    await self._sleep(self._backoff(attempt))
                continue

            if _should_retry(response.status_code) and attempt < self.retries:
                logger.warning(
                    "Trivia API returned %d (attempt %d), retrying", response.status_code, attempt + 1
                )
                delay = self._retry_after(response)
                await self._sleep(delay if delay is not None else self._backoff(attempt))
                continue
            if response.is_error:
                raise TriviaAPIError(f"Trivia API failed ({response.status_code})")
            try:
                body = response.json()
            except ValueError as exc:
                raise TriviaAPIError("Invalid response from trivia API") from exc
            if not isinstance(body, dict):
                raise TriviaAPIError("Invalid response from trivia API")
            return body

        raise TriviaAPIError("Could not reach the trivia API") from last_error

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    async def _get_token(self) -> Optional[str]:
        """Return the session token, requesting one if needed. ``None`` on failure.

        After a failed request no new one is attempted for ``token_retry_interval``.
        """
        async with self._token_lock:
            if self._token is not None:
                return self._token
            if (
                self._token_failed_at is not None
                and time.monotonic() - self._token_failed_at < self.token_retry_interval
            ):
                return None
            try:
                body = await self._get_json("/api_token.php", {"command": "request"})
            except TriviaAPIError:
                logger.warning("Could not obtain a trivia session token, continuing without")
                body = {}
            if body.get("response_code") == RESPONSE_OK and body.get("token"):
                self._token = str(body["token"])
                self._token_failed_at = None
            else:
                self._token_failed_at = time.monotonic()
            return self._token

    def reset_token(self) -> None:
        self._token = None

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    async def fetch_questions(self, config: Optional[QuizConfig] = None) -> List[TriviaQuestion]:
        config = config or QuizConfig()
        # Served from cache before any token round trip
        for has_token in (True, False):
            cached = self._cached((config.amount, config.category, config.difficulty, has_token))
            if cached is not None:
                return cached

        token = await self._get_token()
        key: CacheKey = (config.amount, config.category, config.difficulty, token is not None)

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(config, token, key))
            self._in_flight[key] = task
            task.add_done_callback(lambda _t: self._in_flight.pop(key, None))
        return list(await asyncio.shield(task))

    def _cached(self, key: CacheKey) -> Optional[List[TriviaQuestion]]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, questions = entry
        if time.monotonic() - stored_at > self.cache_ttl:
            del self._cache[key]
            return None
        return list(questions)

    async def _load(self, config: QuizConfig, token: Optional[str], key: CacheKey) -> List[TriviaQuestion]:
        params: Dict[str, Any] = {"amount": config.amount, "type": "multiple", "encode": "url3986"}
        if config.category:
            params["category"] = config.category
        if config.difficulty != "any":
            params["difficulty"] = config.difficulty
        if token:
            params["token"] = token

        body = await self._get_json("/api.php", params)
        code = body.get("response_code")
        if code in (RESPONSE_TOKEN_NOT_FOUND, RESPONSE_TOKEN_EMPTY) and token:
            logger.info("Trivia session token rejected (code %s), retrying without it", code)
            self.reset_token()
            params.pop("token", None)
            body = await self._get_json("/api.php", params)
            code = body.get("response_code")

        results = body.get("results")
        if code != RESPONSE_OK or not isinstance(results, list):
            raise TriviaAPIError(_RESPONSE_MESSAGES.get(code, "Invalid response from trivia API"))

        try:
            questions = [self._decode_question(item) for item in results]
        except (KeyError, TypeError, ValidationError) as exc:
            raise TriviaAPIError("Invalid response from trivia API") from exc

        self._cache[key] = (time.monotonic(), questions)
        return questions

    @staticmethod
    def _decode_question(item: Dict[str, Any]) -> TriviaQuestion:
        return TriviaQuestion(
            category=_decode(item["category"]),
            type=_decode(item["type"]),
            difficulty=_decode(item["difficulty"]),
            question=_decode(item["question"]),
            correct_answer=_decode(item["correct_answer"]),
            incorrect_answers=[_decode(a) for a in item["incorrect_answers"]],
        )


__all__ = ["TriviaClient"]
