"""
Capability path parsing.

Paths take one of three forms::

    /{api}/{profile}
    /{api}/{profile}/{attribute}
    /{api}/{profile}/{interface}/{attribute}
"""
from .exceptions import MalformedPath
from .models import PathSpec

MIN_SEGMENTS = 3
MAX_SEGMENTS = 5


def parse(path: str) -> PathSpec:
    """
    Parse a capability path into a PathSpec.

    The leading slash counts as the first (empty) segment, so
    ``/gotapi/deviceOrientation`` has 3 segments.

    Args:
        path: Slash-delimited capability path

    Returns:
        The parsed PathSpec

    Raises:
        MalformedPath: If the path does not start with '/', contains an
            empty segment, or has fewer than 3 or more than 5 segments
    """
    if not isinstance(path, str) or not path.startswith("/"):
        raise MalformedPath(str(path), "path must start with '/'")

    segments = path.split("/")
    if len(segments) < MIN_SEGMENTS or len(segments) > MAX_SEGMENTS:
        raise MalformedPath(
            path,
            f"expected {MIN_SEGMENTS}-{MAX_SEGMENTS} segments, got {len(segments)}",
        )
    if any(not segment for segment in segments[1:]):
        raise MalformedPath(path, "empty path segment")

    api, profile = segments[1], segments[2]
    if len(segments) == 3:
        return PathSpec(api=api, profile=profile)
    if len(segments) == 4:
        return PathSpec(api=api, profile=profile, attribute=segments[3])
    return PathSpec(api=api, profile=profile, interface=segments[3], attribute=segments[4])
