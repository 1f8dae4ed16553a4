"""
HTTP transport for Device Connect style managers.

Requests go to the manager's REST API over HTTP; events arrive on a
Server-Sent Events (SSE) stream keyed by a session key.

Usage:
    from dcwatch.transport.http import HttpTransport

    transport = HttpTransport(manager_url="http://localhost:4035", origin="my-app")
    result = await transport.check_availability()
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

import httpx
from pydantic import ValidationError

from ..exceptions import TransportError
from ..models import CapabilityListManifest, ProfileMapManifest, SubscriptionTarget
from .base import ChannelCallbacks, EventCallback, Result, Transport

logger = logging.getLogger(__name__)

ORIGIN_HEADER = "X-GotAPI-Origin"
RESULT_OK = 0


class HttpTransport(Transport):
    """
    Transport that talks to the manager over HTTP.

    This transport:
    - Uses plain GET/PUT/DELETE requests for availability, discovery,
      service information and event registration
    - Uses an SSE stream for event delivery
    - Never reconnects the event stream on its own; failures are reported
      through the channel callbacks

    Attributes:
        manager_url: Base URL of the manager
        origin: Origin sent with every request
        session_key: Key tying event registrations to the SSE stream
    """

    def __init__(
        self,
        manager_url: str = "http://localhost:4035",
        origin: str = "dcwatch",
        manifest_shape: Literal["profile_map", "capability_list"] = "profile_map",
        timeout: float = 10.0,
        session_key: Optional[str] = None,
        api: str = "gotapi",
    ):
        """
        Initialize the HttpTransport.

        Args:
            manager_url: Base URL of the manager (e.g., "http://localhost:4035")
            origin: Application origin sent in the X-GotAPI-Origin header
            manifest_shape: Which service-information shape the manager emits
            timeout: Timeout for request/response calls (seconds)
            session_key: Event session key (auto-generated if not provided)
            api: API name prefix for every request path
        """
        self.manager_url = manager_url.rstrip("/")
        self.origin = origin
        self.manifest_shape = manifest_shape
        self.timeout = timeout
        self.session_key = session_key or f"dcwatch-{str(uuid4())[:8]}"
        self.api = api

        self._http_client: Optional[httpx.AsyncClient] = None
        self._callbacks: Optional[ChannelCallbacks] = None
        self._stream_task: Optional[asyncio.Task] = None
        self._connected = False
        # target -> callback for events of that target
        self._event_callbacks: Dict[SubscriptionTarget, EventCallback] = {}

    @property
    def is_connected(self) -> bool:
        """Check if the event stream is connected."""
        return self._connected

    # =========================================================================
    # Request/response calls
    # =========================================================================

    async def check_availability(self) -> Result:
        return await self._request("GET", f"/{self.api}/availability")

    async def list_services(self) -> Result:
        result = await self._request("GET", f"/{self.api}/servicediscovery")
        if not result.ok:
            return result
        services = result.data.get("services")
        if not isinstance(services, list):
            return Result.failure("Service discovery response has no services list")
        return Result.success(services)

    async def get_capabilities(self, service_id: str) -> Result:
        result = await self._request(
            "GET",
            f"/{self.api}/serviceinformation",
            params={"serviceId": service_id},
        )
        if not result.ok:
            return result
        return self._parse_manifest(result.data)

    def _parse_manifest(self, body: Dict[str, Any]) -> Result:
        """Build the manifest variant this manager is configured to emit."""
        try:
            if self.manifest_shape == "profile_map":
                support_apis = body.get("supportApis")
                if not isinstance(support_apis, dict):
                    return Result.failure("Service information has no supportApis map")
                return Result.success(ProfileMapManifest(profiles=support_apis))

            supports = body.get("supports")
            if not isinstance(supports, list):
                return Result.failure("Service information has no supports list")
            return Result.success(CapabilityListManifest(supports=supports))
        except ValidationError as e:
            return Result.failure(f"Invalid service information: {e}")

    async def subscribe(
        self,
        target: SubscriptionTarget,
        params: Dict[str, str],
        callback: EventCallback,
    ) -> Result:
        query = {"serviceId": target.service_id, "sessionKey": self.session_key}
        query.update(params)
        result = await self._request("PUT", target.path, params=query)
        if result.ok:
            self._event_callbacks[target] = callback
            logger.debug(f"Registered event {target.path} for service {target.service_id}")
        return result

    async def unsubscribe(self, target: SubscriptionTarget) -> Result:
        self._event_callbacks.pop(target, None)
        return await self._request(
            "DELETE",
            target.path,
            params={"serviceId": target.service_id, "sessionKey": self.session_key},
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
    ) -> Result:
        """Send a request and map the manager's response to a Result."""
        client = await self._ensure_http_client()
        url = f"{self.manager_url}{path}"

        try:
            response = await client.request(
                method,
                url,
                params=params,
                headers={ORIGIN_HEADER: self.origin},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            return Result.failure(f"{method} {path} failed: {e}")

        if response.status_code != 200:
            return Result.failure(
                f"{method} {path} returned HTTP {response.status_code}",
                error_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            return Result.failure(f"{method} {path} returned invalid JSON")

        if not isinstance(body, dict):
            return Result.failure(f"{method} {path} returned unexpected body")

        if body.get("result") != RESULT_OK:
            return Result.failure(
                body.get("errorMessage") or f"{method} {path} reported an error",
                error_code=body.get("errorCode"),
            )
        return Result.success(body)

    # =========================================================================
    # SSE event channel
    # =========================================================================

    async def open_event_channel(self, callbacks: ChannelCallbacks) -> None:
        if self._stream_task and not self._stream_task.done():
            logger.warning("Event channel already open")
            return

        self._callbacks = callbacks
        self._stream_task = asyncio.create_task(self._run_stream())

    async def close_event_channel(self) -> None:
        if self._stream_task is None:
            return

        task = self._stream_task
        self._stream_task = None
        was_running = not task.done()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        self._connected = False
        self._event_callbacks.clear()
        if was_running and self._callbacks:
            await self._callbacks.on_close()

    async def _run_stream(self) -> None:
        """Run the SSE stream once and report how it ended."""
        callbacks = self._callbacks or ChannelCallbacks()
        try:
            await self._stream_events()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._connected = False
            logger.warning(f"Event stream failed: {e}")
            if isinstance(e, httpx.HTTPError):
                await callbacks.on_error(TransportError(f"Event stream failed: {e}"))
            else:
                await callbacks.on_error(e)
            return

        self._connected = False
        await callbacks.on_close()

    async def _stream_events(self) -> None:
        """
        Connect to the SSE stream and process events.
        """
        client = await self._ensure_http_client()
        url = f"{self.manager_url}/{self.api}/events"

        logger.info(f"Connecting to event stream: {url}")

        async with client.stream(
            "GET",
            url,
            params={"sessionKey": self.session_key},
            headers={ORIGIN_HEADER: self.origin},
        ) as response:
            if response.status_code != 200:
                raise TransportError(f"Event stream connection failed: {response.status_code}")

            event_type = None
            data_lines: List[str] = []

            async for line in response.aiter_lines():
                line = line.strip()

                if not line:
                    # Empty line = end of event
                    if event_type and data_lines:
                        await self._handle_sse_event(event_type, "\n".join(data_lines))
                    event_type = None
                    data_lines = []
                    continue

                if line.startswith("event:"):
                    event_type = line[6:].strip()
                elif line.startswith("data:"):
                    data_lines.append(line[5:].strip())
                # Ignore other fields (id, retry, etc.)

    async def _handle_sse_event(self, event_type: str, data: str) -> None:
        """
        Handle an SSE event.

        Args:
            event_type: SSE event type ("connected", "message", "heartbeat", "disconnected")
            data: Event data (JSON string)
        """
        try:
            parsed_data = json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Failed to parse SSE data: {data}")
            return

        if event_type == "connected":
            self._connected = True
            logger.info("Event stream connected")
            if self._callbacks:
                await self._callbacks.on_open()

        elif event_type == "heartbeat":
            logger.debug("Received heartbeat")

        elif event_type == "message":
            if isinstance(parsed_data, dict):
                self._dispatch_event(parsed_data)
            else:
                logger.warning(f"Ignoring non-object event payload: {data}")

        elif event_type == "disconnected":
            self._connected = False
            logger.info("Received disconnect from manager")

        else:
            logger.debug(f"Unknown SSE event type: {event_type}")

    def _dispatch_event(self, payload: Dict[str, Any]) -> None:
        """Hand an event payload to the callback of every matching subscription."""
        delivered = False
        for target, callback in list(self._event_callbacks.items()):
            if not target.matches_event(payload):
                continue
            delivered = True
            try:
                callback(payload)
            except Exception as e:
                logger.error(f"Error in event callback for {target.path}: {e}")

        if not delivered:
            logger.debug(f"No subscription for event: {payload.get('profile')}/{payload.get('attribute')}")

    # =========================================================================
    # HTTP client management
    # =========================================================================

    async def _ensure_http_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._http_client is None:
            # read=None: the event stream is long-lived
            timeout = httpx.Timeout(
                connect=10.0,
                read=None,
                write=30.0,
                pool=None,
            )
            self._http_client = httpx.AsyncClient(timeout=timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the event stream and the HTTP client."""
        await self.close_event_channel()
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
