"""Generic HTTP transport: compress, POST, classify, retry."""

from __future__ import annotations

import gzip
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Mapping

import requests
from tenacity import RetryCallState

from shipline.common.errors import RetryableTransportError, TransportError
from shipline.common.http import HttpClient, TimeoutConfig
from shipline.common.logging import log_event
from shipline.transport.buffer import TransportBuffer
from shipline.transport.retry import RetryPolicy, build_retrying

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    SUCCESS = "SUCCESS"
    RETRYABLE_FAILURE = "RETRYABLE_FAILURE"
    FATAL_FAILURE = "FATAL_FAILURE"


@dataclass(frozen=True)
class DeliveryOutcome:
    kind: OutcomeKind
    reason: str | None = None
    status_code: int | None = None
    attempts: int = 1
    cause: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @classmethod
    def success(cls, status_code: int | None = None) -> "DeliveryOutcome":
        return cls(OutcomeKind.SUCCESS, status_code=status_code)

    @classmethod
    def retryable(
        cls,
        reason: str,
        *,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> "DeliveryOutcome":
        return cls(OutcomeKind.RETRYABLE_FAILURE, reason=reason, status_code=status_code, cause=cause)

    @classmethod
    def fatal(
        cls,
        reason: str,
        *,
        attempts: int = 1,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> "DeliveryOutcome":
        return cls(
            OutcomeKind.FATAL_FAILURE,
            reason=reason,
            status_code=status_code,
            attempts=attempts,
            cause=cause,
        )


class HttpTransport:
    """POSTs a whole batch to one URL.

    A batch is delivered atomically or not at all. ``send_batch`` returns a
    SUCCESS outcome or raises ``TransportError`` carrying a FATAL_FAILURE
    outcome once the retry budget is spent.
    """

    uncompressed_content_type = "text/plain; charset=utf-8"

    def __init__(
        self,
        client: HttpClient,
        url: str,
        *,
        use_gzip: bool = False,
        retries: int = 0,
        retry_delay_ms: int = 1000,
        headers: Mapping[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.url = url
        self.use_gzip = use_gzip
        self.retry_policy = RetryPolicy(retries=retries, retry_delay_ms=retry_delay_ms)
        self.headers = dict(headers or {})
        self.auth = auth
        self.timeout = timeout
        self.sleep = sleep

    def _request_headers(self) -> dict[str, str]:
        out = dict(self.headers)
        if self.use_gzip:
            out["Content-Type"] = "application/octet-stream"
            out["Content-Encoding"] = "gzip"
            out["Accept-Encoding"] = "gzip"
        else:
            out["Content-Type"] = self.uncompressed_content_type
        return out

    def encode_payload(self, raw: bytes) -> bytes:
        if self.use_gzip:
            return gzip.compress(raw)
        return raw

    def request_params(self, partitions: Mapping[str, str] | None) -> dict[str, Any] | None:
        return None

    def attempt(self, raw: bytes, params: dict[str, Any] | None = None) -> DeliveryOutcome:
        """Make exactly one call and classify it. Never raises for I/O errors."""
        try:
            response = self.client.post(
                self.url,
                data=self.encode_payload(raw),
                headers=self._request_headers(),
                params=params,
                auth=self.auth,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            return DeliveryOutcome.retryable(f"failed to make call: {exc}", cause=exc)

        try:
            try:
                response_string = response.text
            except requests.RequestException as exc:
                return DeliveryOutcome.retryable(
                    f"http transport call failed because {response.reason}",
                    status_code=response.status_code,
                    cause=exc,
                )
        finally:
            # Always release the connection, otherwise it blocks future requests.
            response.close()

        return self.check_response(response, response_string)

    def check_response(self, response: requests.Response, response_string: str) -> DeliveryOutcome:
        """Classify a fully read response. Override for destination-specific rules.

        The connection has already been released when this is called.
        """
        if response.status_code == 200:
            return DeliveryOutcome.success(status_code=response.status_code)

        return DeliveryOutcome.retryable(
            f'http transport call failed because "{response.reason}" '
            f'payload response "{response_string}"',
            status_code=response.status_code,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        log_event(
            logger,
            f"transport attempt failed, retrying: {error}",
            level=logging.WARNING,
            event="TRANSPORT_RETRY",
            status="retry",
            attempt=retry_state.attempt_number,
            duration_ms=int(retry_state.next_action.sleep * 1000) if retry_state.next_action else None,
            error_code=getattr(error, "error_code", None),
        )

    def send_batch(
        self,
        batch: TransportBuffer | bytes,
        partitions: Mapping[str, str] | None = None,
    ) -> DeliveryOutcome:
        raw = batch.payload() if isinstance(batch, TransportBuffer) else batch
        params = self.request_params(partitions)
        attempts = 0

        def _send_once() -> DeliveryOutcome:
            nonlocal attempts
            attempts += 1
            outcome = self.attempt(raw, params)
            if outcome.kind is OutcomeKind.RETRYABLE_FAILURE:
                raise RetryableTransportError(outcome.reason or "retryable failure", outcome=outcome) from outcome.cause
            if outcome.kind is OutcomeKind.FATAL_FAILURE:
                raise TransportError(outcome.reason or "fatal failure", outcome=outcome) from outcome.cause
            return outcome

        retrying = build_retrying(self.retry_policy, sleep=self.sleep, before_sleep=self._log_retry)
        try:
            outcome = retrying(_send_once)
        except RetryableTransportError as exc:
            log_event(
                logger,
                f"transport failed after {attempts} tries.",
                level=logging.WARNING,
                event="TRANSPORT_EXHAUSTED",
                status="error",
                attempt=attempts,
                error_code=exc.error_code,
            )
            last = exc.outcome
            raise TransportError(
                f"transport failed after {attempts} tries: {exc}",
                outcome=DeliveryOutcome.fatal(
                    str(exc),
                    attempts=attempts,
                    status_code=last.status_code if last else None,
                    cause=exc,
                ),
            ) from exc
        except TransportError as exc:
            if exc.outcome is not None:
                exc.outcome = replace(exc.outcome, attempts=attempts)
            raise
        except Exception as exc:
            raise TransportError(
                f"unexpected transport failure: {exc}",
                outcome=DeliveryOutcome.fatal(str(exc), attempts=attempts, cause=exc),
            ) from exc

        return replace(outcome, attempts=attempts)
