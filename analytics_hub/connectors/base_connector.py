"""
Base connector class for the Google APIs

Every connector acts on behalf of the signed-in user: it wraps the user's
OAuth access token in ``google.oauth2.credentials.Credentials`` and runs the
(blocking) Google client calls in a worker thread so several fetches can be
awaited together. The discovery service is shared, but each request is
executed over its own ``httplib2.Http``.
"""
from typing import Any, Callable, Optional
import asyncio
import time

import google_auth_httplib2
import httplib2
from google.api_core.exceptions import GoogleAPICallError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from analytics_hub.utils.logger import log

# Seconds before a single upstream request is abandoned
API_TIMEOUT = 60


class UpstreamAPIError(Exception):
    """Non-2xx response from an upstream API"""

    def __init__(self, status_code: int, message: str, source: str = ""):
        self.status_code = status_code
        self.message = message
        self.source = source
        prefix = f"{source} API error" if source else "API error"
        super().__init__(f"{prefix} {status_code}: {message}")

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)


def user_credentials(access_token: str) -> Credentials:
    """Credentials carrying only a bearer token; refresh is handled by the OAuth service"""
    return Credentials(token=access_token)


def _http_error_reason(error: HttpError) -> str:
    reason = getattr(error, "reason", None)
    if not reason and hasattr(error, "_get_reason"):
        reason = error._get_reason()
    return reason or "Request failed"


class BaseConnector:
    """
    Base class for the user-scoped Google API connectors

    Subclasses using a discovery-based API set ``API_NAME`` / ``API_VERSION``;
    a pre-built ``service`` may be passed in instead (tests do this).
    """

    API_NAME = ""
    API_VERSION = ""

    def __init__(
        self,
        name: str,
        access_token: Optional[str] = None,
        credentials: Optional[Credentials] = None,
        service: Any = None,
    ):
        self.name = name
        self.credentials = credentials or (user_credentials(access_token) if access_token else None)
        self.service = service

    def connect(self) -> Any:
        """Build the discovery client for ``API_NAME``/``API_VERSION``"""
        if self.service is None:
            self.service = build(
                self.API_NAME,
                self.API_VERSION,
                credentials=self.credentials,
                cache_discovery=False,
            )
            log.debug(f"Built {self.API_NAME} {self.API_VERSION} client for {self.name}")
        return self.service

    async def _call(self, operation: Callable[[], Any], operation_name: str = "request") -> Any:
        """
        Run a blocking client call in a worker thread.

        HTTP and gRPC failures are re-raised as UpstreamAPIError carrying the
        upstream status code.
        """
        start_time = time.time()
        try:
            result = await asyncio.to_thread(operation)
        except HttpError as e:
            status = int(getattr(e.resp, "status", 500) or 500)
            message = _http_error_reason(e)
            log.error(f"{self.name} {operation_name} failed with {status}: {message}")
            raise UpstreamAPIError(status, message, self.name) from e
        except GoogleAPICallError as e:
            status = int(e.code or 500)
            log.error(f"{self.name} {operation_name} failed with {status}: {e.message}")
            raise UpstreamAPIError(status, e.message, self.name) from e

        log.debug(f"{self.name} {operation_name} completed in {time.time() - start_time:.2f}s")
        return result

    def _authorized_http(self) -> Optional[google_auth_httplib2.AuthorizedHttp]:
        """Fresh authorized transport; httplib2.Http must not be shared between threads"""
        if self.credentials is None:
            return None
        return google_auth_httplib2.AuthorizedHttp(
            self.credentials,
            http=httplib2.Http(timeout=API_TIMEOUT),
        )

    async def _execute(self, request: Any, operation_name: str = "request") -> Any:
        """Execute a googleapiclient ``HttpRequest`` on its own transport"""
        http = self._authorized_http()
        if http is None:
            return await self._call(request.execute, operation_name)
        return await self._call(lambda: request.execute(http=http), operation_name)
