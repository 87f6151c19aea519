from __future__ import annotations

import json
import logging
from typing import Any, BinaryIO, Mapping, Optional

import requests
from tqdm.auto import tqdm

from ..errors import (
    ERR_API_CLIENT_DO,
    ERR_API_CLIENT_DO_AND_PARSE,
    ERR_API_CLIENT_DO_AND_STREAM,
    APIResponseError,
    DecodeError,
    Diagnostic,
    TransportError,
)
from .response import APIResponse, decode_envelope

log = logging.getLogger(__name__)


# Versioned API prefix appended to the endpoint host.
API_BASE_URI = "/web/api/v2.1"

USER_AGENT = "SentinelOne-Singularity-Terraform-Provider"


class TokenMaskFilter(logging.Filter):
    """Replaces every registered API token with *** in any record that reaches the filter."""

    def __init__(self, *secrets: str, mask: str = "***"):
        super().__init__()
        self.secrets = {s for s in secrets if s}
        self.mask = mask

    def add(self, secret: str) -> None:
        if secret:
            self.secrets.add(secret)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        msg = record.getMessage()
        masked = msg
        for secret in self.secrets:
            masked = masked.replace(secret, self.mask)
        if masked != msg:
            record.msg = masked
            record.args = None
        return True


# One filter per process; each client registers its token on it.
_mask_filter = TokenMaskFilter()
log.addFilter(_mask_filter)


def build_base_url(api_endpoint: str) -> str:
    host = api_endpoint.strip()
    if host.startswith("https://"):
        host = host[len("https://"):]
    return f"https://{host.rstrip('/')}{API_BASE_URI}"


class APIClient:
    """
    HTTP client for the management console REST API.

    Construct once per process and pass it to whatever needs it. The session is
    injectable so that tests can substitute a fake transport.
    """

    def __init__(
        self,
        api_token: str,
        api_endpoint: str,
        *,
        timeout_s: float = 60,
        chunk_size: int = 1024 * 1024,
        show_progress: bool = False,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = build_base_url(api_endpoint)
        self.timeout_s = timeout_s
        self.chunk_size = chunk_size
        self.show_progress = show_progress
        self.session = session if session is not None else requests.Session()
        self._api_token = api_token

        # Logger filters do not see records from other loggers; cli.py also attaches
        # this filter to the root handlers.
        _mask_filter.add(api_token)
        self.mask_filter = _mask_filter

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"ApiToken {self._api_token}",
            "Content-Type": "application/json",
            "Accept": "application/json, application/octet-stream",
            "User-Agent": USER_AGENT,
        }

    def url(self, uri: str) -> str:
        return f"{self.base_url}/{uri.lstrip('/')}"

    def execute(
        self,
        method: str,
        uri: str,
        query_params: Optional[Mapping[str, str]] = None,
        body: Optional[Mapping[str, Any]] = None,
        *,
        stream: bool = False,
    ) -> requests.Response:
        """
        Issue one request and classify the outcome.

        Status >= 400 raises APIResponseError (one diagnostic per structured API error,
        or a single generic one). Network failures raise TransportError. Otherwise the
        response is returned with its body unread.
        """
        url = self.url(uri)

        # No body at all when there is nothing to send, never an empty JSON document.
        data = json.dumps(dict(body)) if body else None
        params = dict(query_params) if query_params else None

        log.debug(
            "executing REST API query method=%s url=%s query_params=%s",
            method,
            url,
            params,
        )
        try:
            r = self.session.request(
                method,
                url,
                params=params,
                data=data,
                headers=self._headers(),
                timeout=self.timeout_s,
                stream=stream,
            )
        except requests.RequestException as e:
            msg = (
                "An unexpected error occurred while executing a request to the API Server.\n\n"
                f"Error: {e}\nURL: {url}\nMethod: {method}"
            )
            log.error(msg, extra={"internal_error_code": ERR_API_CLIENT_DO})
            raise TransportError(msg) from e

        if r.status_code >= 400:
            try:
                raw = r.content
            except requests.RequestException as e:
                msg = (
                    "An unexpected error occurred while reading the response from the API Server.\n\n"
                    f"Error: {e}\nURL: {url}\nMethod: {method}\nHTTP Status Code: {r.status_code}"
                )
                log.error(msg, extra={"internal_error_code": ERR_API_CLIENT_DO})
                raise APIResponseError(msg, status_code=r.status_code) from e
            finally:
                r.close()
            raise self._error_from_body(method, url, r.status_code, raw)

        log.debug("response received method=%s url=%s status_code=%d", method, url, r.status_code)
        return r

    def _error_from_body(
        self, method: str, url: str, status_code: int, raw: bytes
    ) -> APIResponseError:
        text = raw.decode("utf-8", errors="replace")
        try:
            errors = decode_envelope(raw).errors
        except DecodeError:
            errors = ()

        if not errors:
            msg = (
                "The request to the API server returned a non-successful error code.\n\n"
                f"URL: {url}\nMethod: {method}\nHTTP Status Code: {status_code}\nResponse: {text}\n"
            )
            log.error(msg, extra={"internal_error_code": ERR_API_CLIENT_DO})
            return APIResponseError(msg, status_code=status_code)

        diags: list[Diagnostic] = []
        for e in errors:
            msg = (
                "The request to the API server returned a non-successful error code.\n\n"
                f"URL: {url}\nMethod: {method}\nHTTP Status Code: {status_code}\n"
                f"API Code: {e.code}\nSummary: {e.title}\nDetails: {e.detail}"
            )
            log.error(msg, extra={"internal_error_code": ERR_API_CLIENT_DO})
            diags.append(Diagnostic(APIResponseError.summary, msg))
        return APIResponseError(status_code=status_code, diagnostics=diags)

    def _do_and_parse(
        self,
        method: str,
        uri: str,
        query_params: Optional[Mapping[str, str]] = None,
        body: Optional[Mapping[str, Any]] = None,
    ) -> APIResponse:
        r = self.execute(method, uri, query_params, body)
        try:
            raw = r.content
        except requests.RequestException as e:
            msg = (
                "An unexpected error occurred while reading the response from the API Server.\n\n"
                f"Error: {e}\nURL: {self.url(uri)}\nMethod: {method}\nHTTP Status Code: {r.status_code}"
            )
            log.error(msg, extra={"internal_error_code": ERR_API_CLIENT_DO_AND_PARSE})
            raise APIResponseError(msg, status_code=r.status_code) from e
        finally:
            r.close()

        try:
            return decode_envelope(raw)
        except DecodeError as e:
            msg = f"{e.detail}\nURL: {self.url(uri)}\nMethod: {method}\nHTTP Status Code: {r.status_code}"
            log.error(msg, extra={"internal_error_code": ERR_API_CLIENT_DO_AND_PARSE})
            raise DecodeError(msg) from e

    def get(self, uri: str, query_params: Optional[Mapping[str, str]] = None) -> APIResponse:
        return self._do_and_parse("GET", uri, query_params)

    def post(self, uri: str, body: Optional[Mapping[str, Any]] = None) -> APIResponse:
        return self._do_and_parse("POST", uri, None, body)

    def put(self, uri: str, body: Optional[Mapping[str, Any]] = None) -> APIResponse:
        return self._do_and_parse("PUT", uri, None, body)

    def patch(self, uri: str, body: Optional[Mapping[str, Any]] = None) -> APIResponse:
        return self._do_and_parse("PATCH", uri, None, body)

    def delete(self, uri: str, body: Optional[Mapping[str, Any]] = None) -> APIResponse:
        return self._do_and_parse("DELETE", uri, None, body)

    def get_stream(
        self,
        uri: str,
        writer: BinaryIO,
        query_params: Optional[Mapping[str, str]] = None,
        *,
        desc: Optional[str] = None,
    ) -> int:
        """Stream a binary response body into `writer` chunk by chunk. Returns bytes written."""
        r = self.execute("GET", uri, query_params, stream=True)
        total = r.headers.get("Content-Length")
        total_i = int(total) if total and total.isdigit() else None

        written = 0
        try:
            with tqdm(
                total=total_i,
                unit="B",
                unit_scale=True,
                unit_divisor=1024,
                desc=desc,
                leave=False,
                disable=not self.show_progress,
            ) as pbar:
                for chunk in r.iter_content(chunk_size=self.chunk_size):
                    if not chunk:
                        continue
                    writer.write(chunk)
                    written += len(chunk)
                    pbar.update(len(chunk))
        except requests.RequestException as e:
            msg = (
                "An unexpected error occurred while attempting to read a response from the API Server.\n\n"
                f"Error: {e}\nURL: {self.url(uri)}\nMethod: GET\nHTTP Status Code {r.status_code}"
            )
            log.error(msg, extra={"internal_error_code": ERR_API_CLIENT_DO_AND_STREAM})
            raise APIResponseError(msg, status_code=r.status_code) from e
        finally:
            r.close()
        return written
