"""
Manager availability and service discovery.

Both loops poll until they succeed or the session is cancelled. Transport
failures along the way are logged and retried at the loop's own cadence,
never raised.
"""
import logging
from typing import Optional

from pydantic import ValidationError

from .models import PathSpec, ServiceDescriptor, parse_manifest
from .retry import CancelToken, RetryPolicy
from .transport.base import Transport

logger = logging.getLogger(__name__)

DEFAULT_AVAILABILITY_POLICY = RetryPolicy(base_delay=0.25, max_delay=5.0, multiplier=2.0)
DEFAULT_DISCOVERY_POLICY = RetryPolicy(base_delay=0.5, max_delay=5.0, multiplier=2.0)


async def await_available(
    transport: Transport,
    cancel: CancelToken,
    policy: RetryPolicy = DEFAULT_AVAILABILITY_POLICY,
) -> bool:
    """
    Block until the manager reports that it is available.

    Args:
        transport: Transport to poll
        cancel: Session cancel token
        policy: Backoff between attempts

    Returns:
        True once the manager is available, False if cancelled first
    """
    attempt = 0
    while not cancel.cancelled:
        try:
            result = await transport.check_availability()
            if result.ok:
                return True
            if attempt < 3:
                logger.debug(f"Manager not available yet: {result.error_message}")
        except Exception as e:
            logger.debug(f"Availability check failed: {e}")

        if await cancel.sleep(policy.delay(attempt)):
            break
        attempt += 1

    logger.info("Stopped waiting for manager")
    return False


async def supports(transport: Transport, service_id: str, spec: PathSpec) -> bool:
    """
    Check whether a service supports the capability described by ``spec``.

    A failed query or a manifest of an unexpected shape means "not
    supported"; this function never raises.
    """
    try:
        result = await transport.get_capabilities(service_id)
    except Exception as e:
        logger.warning(f"Capability query for {service_id} failed: {e}")
        return False

    if not result.ok:
        logger.debug(f"No capabilities for {service_id}: {result.error_message}")
        return False

    try:
        manifest = parse_manifest(result.data)
    except ValidationError:
        logger.debug(f"Unrecognized manifest for {service_id}: {type(result.data).__name__}")
        return False
    return manifest.matches(spec)


async def find_service(
    transport: Transport,
    spec: PathSpec,
    cancel: CancelToken,
    policy: RetryPolicy = DEFAULT_DISCOVERY_POLICY,
) -> Optional[ServiceDescriptor]:
    """
    Poll the registry until a service supporting ``spec`` appears.

    Services are probed in registry order and the first supporting one
    wins; later entries of that cycle are not probed.

    Args:
        transport: Transport to poll
        spec: Capability the service must support
        cancel: Session cancel token
        policy: Backoff between cycles that found nothing

    Returns:
        The matching service, or None if cancelled first
    """
    attempt = 0
    while not cancel.cancelled:
        try:
            service = await _discover_once(transport, spec, cancel)
        except Exception as e:
            logger.debug(f"Service discovery failed: {e}")
            service = None

        if service is not None:
            logger.info(f"Found service {service.name} ({service.id}) supporting {spec.path}")
            return service

        if await cancel.sleep(policy.delay(attempt)):
            break
        attempt += 1

    logger.info(f"Stopped searching for a service supporting {spec.path}")
    return None


async def _discover_once(
    transport: Transport,
    spec: PathSpec,
    cancel: CancelToken,
) -> Optional[ServiceDescriptor]:
    """Run one discovery cycle."""
    result = await transport.list_services()
    if not result.ok:
        logger.debug(f"Service discovery returned an error: {result.error_message}")
        return None

    for entry in result.data or []:
        if cancel.cancelled:
            return None
        if not isinstance(entry, dict):
            continue
        service_id = entry.get("id")
        name = entry.get("name")
        if not service_id or not name:
            continue
        if await supports(transport, service_id, spec):
            return ServiceDescriptor(id=service_id, name=name)

    logger.debug(f"No service supports {spec.path} yet")
    return None
