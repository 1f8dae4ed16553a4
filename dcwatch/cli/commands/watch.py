"""
dcwatch watch - Run a watch session and print notifications as JSON lines.
"""

import asyncio
import logging
import signal
from typing import Optional

import typer

from ...config import WatchSettings
from ...exceptions import MalformedPath
from ...models import Notification, NotificationKind
from ...session import SessionController
from ...transport.http import HttpTransport


def watch_path(
    path: str = typer.Argument(..., help="Capability path, e.g. /gotapi/deviceOrientation/onDeviceOrientation"),
    manager_url: Optional[str] = typer.Option(
        None, "--manager-url", "-m",
        help="Manager base URL (default: DCWATCH_MANAGER_URL or http://localhost:4035)",
    ),
    origin: Optional[str] = typer.Option(
        None, "--origin",
        help="Origin sent to the manager (default: DCWATCH_ORIGIN or 'dcwatch')",
    ),
    restart: bool = typer.Option(
        False, "--restart",
        help="Restart discovery when the event channel fails",
    ),
    log_level: str = typer.Option(
        "INFO", "--log-level", "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    ),
):
    """
    Wait for the manager and a service supporting PATH, subscribe to its
    events and print every notification until interrupted.
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides = {}
    if manager_url:
        overrides["manager_url"] = manager_url
    if origin:
        overrides["origin"] = origin
    if restart:
        overrides["restart_on_failure"] = True
    settings = WatchSettings().model_copy(update=overrides)

    try:
        asyncio.run(_watch(path, settings))
    except MalformedPath as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        pass


async def _watch(path: str, settings: WatchSettings) -> None:
    transport = HttpTransport(
        manager_url=settings.manager_url,
        origin=settings.origin,
        manifest_shape=settings.manifest_shape,
        timeout=settings.request_timeout,
    )
    session = SessionController(transport, settings=settings)

    stop_event = asyncio.Event()

    @session.on_all_notifications
    async def print_notification(notification: Notification) -> None:
        typer.echo(notification.model_dump_json(by_alias=True, exclude_none=True))

    @session.on_notification(NotificationKind.SESSION_FAILED)
    async def session_failed(notification: Notification) -> None:
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await session.start(path)
        await stop_event.wait()
    finally:
        await session.stop()
        await transport.close()
