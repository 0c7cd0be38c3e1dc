"""Exotel REST API client"""

from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional, Tuple
from urllib.parse import urljoin
from zoneinfo import ZoneInfo

import httpx
import structlog

from callsync.config import settings
from callsync.errors import ProviderAuthError, ProviderError, ProviderUnavailableError
from callsync.models.provider import ProviderSettings

logger = structlog.get_logger()


class ExotelClient:
    """Authenticated requests against one organization's Exotel account"""

    def __init__(
        self,
        provider_settings: ProviderSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider_settings = provider_settings
        self.subdomain = provider_settings.subdomain or settings.exotel_default_subdomain
        self.account_sid = provider_settings.account_sid
        self.transport = transport

    @property
    def host_url(self) -> str:
        return f"https://{self.subdomain}"

    @property
    def account_url(self) -> str:
        return f"{self.host_url}/v1/Accounts/{self.account_sid}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            auth=(self.provider_settings.api_key, self.provider_settings.api_token),
            timeout=settings.exotel_request_timeout,
            transport=self.transport,
        )

    async def _send(self, client: httpx.AsyncClient, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderUnavailableError(f"Exotel request timed out: {e}") from e
        except httpx.TransportError as e:
            raise ProviderUnavailableError(f"Exotel unreachable: {e}") from e

        if response.status_code in (401, 403):
            raise ProviderAuthError(
                f"Exotel rejected credentials for account {self.account_sid}",
                status_code=response.status_code,
            )
        if response.status_code >= 500:
            raise ProviderUnavailableError(
                f"Exotel returned {response.status_code}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise ProviderError(
                f"Exotel returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    def _window_filter(self, since: datetime, until: Optional[datetime]) -> str:
        """DateCreated filter, expressed in the account's local time"""
        def local(value: datetime) -> str:
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            value = value.astimezone(ZoneInfo(settings.exotel_timezone))
            return value.strftime("%Y-%m-%d %H:%M:%S")

        window = f"gte:{local(since)}"
        if until is not None:
            window += f";lte:{local(until)}"
        return window

    async def list_calls(
        self,
        since: datetime,
        until: Optional[datetime] = None,
        page_size: Optional[int] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield every call created inside the window, following pagination"""
        url = f"{self.account_url}/Calls.json"
        params: Optional[Dict[str, Any]] = {
            "DateCreated": self._window_filter(since, until),
            "PageSize": page_size or settings.exotel_page_size,
            "SortBy": "DateCreated:asc",
        }

        async with self._client() as client:
            for page in range(settings.exotel_max_pages):
                response = await self._send(client, "GET", url, params=params)
                data = response.json()
                calls = data.get("Calls") or []

                logger.debug(
                    "Exotel calls page",
                    account_sid=self.account_sid,
                    page=page,
                    count=len(calls),
                )

                for call in calls:
                    yield call

                next_page = (data.get("Metadata") or {}).get("NextPageUri")
                if not next_page or not calls:
                    return
                # NextPageUri already carries the query string
                url = urljoin(self.host_url, next_page)
                params = None

            logger.warning(
                "Exotel pagination limit reached",
                account_sid=self.account_sid,
                max_pages=settings.exotel_max_pages,
            )

    async def fetch_recording(self, recording_url: str) -> Tuple[bytes, str]:
        """Download a recording; returns audio bytes and content type"""
        async with self._client() as client:
            response = await self._send(client, "GET", recording_url, follow_redirects=True)
        content_type = response.headers.get("content-type", "audio/mpeg")
        return response.content, content_type

    async def connect_call(
        self,
        from_number: str,
        to_number: str,
        status_callback: str,
    ) -> Dict[str, Any]:
        """Bridge the agent (``from_number``) to a customer (``to_number``)"""
        data = {
            "From": from_number,
            "To": to_number,
            "CallerId": self.provider_settings.caller_id or "",
            "CallType": "trans",
            "Record": "true" if self.provider_settings.call_recording_enabled else "false",
            "StatusCallback": status_callback,
            "StatusCallbackEvents[0]": "terminal",
            "StatusCallbackEvents[1]": "answered",
        }
        async with self._client() as client:
            response = await self._send(client, "POST", f"{self.account_url}/Calls/connect.json", data=data)
        payload = response.json()
        call = payload.get("Call")
        if not call or not call.get("Sid"):
            raise ProviderError("Exotel connect response carried no call Sid")
        return call


def get_exotel_client_factory():
    """FastAPI dependency returning the provider client constructor"""
    return ExotelClient
