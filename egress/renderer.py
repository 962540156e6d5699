"""Rendering of the nginx-rtmp configuration from a template."""

from dataclasses import dataclass
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

from egress.errors import MissingIngestKeyError

INGEST_KEY_MARKER = '{{INGEST_KEY}}'
PUSH_DESTINATIONS_MARKER = '{{PUSH_DESTINATIONS}}'

DEFAULT_RELAY_SOURCE = 'rtmp://127.0.0.1:1935/$app/$name'
NO_DESTINATIONS_PLACEHOLDER = '            # No destinations configured'

_INDENT = ' ' * 12


@dataclass(frozen=True)
class Destination:
    """One egress target the relay pushes the incoming stream to."""
    id: int
    name: str
    target_url: str
    secret_key: str
    enabled: bool = True

    @property
    def push_url(self) -> str:
        """Target URL with a single trailing slash removed, plus the key."""
        url = self.target_url
        if url.endswith('/'):
            url = url[:-1]
        return f"{url}/{self.secret_key}"

    @property
    def is_secure(self) -> bool:
        """Whether the target uses RTMPS, which nginx-rtmp cannot push to."""
        return urlsplit(self.target_url).scheme.lower() == 'rtmps'


def push_directive(
    destination: Destination,
    *,
    ffmpeg_binary: str = 'ffmpeg',
    relay_source: str = DEFAULT_RELAY_SOURCE
) -> str:
    """Build the relay directive for a single destination.

    RTMPS targets are relayed through an ffmpeg copy pipe since the
    native push cannot terminate TLS.

    Args:
        destination: Destination to render
        ffmpeg_binary: ffmpeg executable used for RTMPS targets
        relay_source: Local stream address ffmpeg reads from

    Returns:
        Directive line, indented for the application block
    """
    if destination.is_secure:
        return (
            f'{_INDENT}exec_push {ffmpeg_binary} -i {relay_source} '
            f'-c copy -f flv "{destination.push_url}";'
        )
    return f'{_INDENT}push "{destination.push_url}";'


def render(
    template: str,
    destinations: Iterable[Destination],
    ingest_key: Optional[str],
    *,
    ffmpeg_binary: str = 'ffmpeg',
    relay_source: str = DEFAULT_RELAY_SOURCE
) -> str:
    """Render the relay configuration.

    Args:
        template: Template text containing the substitution markers
        destinations: Destinations in the order they should be pushed to
        ingest_key: Secret application name for the incoming stream
        ffmpeg_binary: ffmpeg executable used for RTMPS targets
        relay_source: Local stream address ffmpeg reads from

    Returns:
        Rendered configuration text

    Raises:
        MissingIngestKeyError: If the ingest key is unset or empty
    """
    if not ingest_key:
        raise MissingIngestKeyError()

    push_lines: List[str] = [
        push_directive(
            destination,
            ffmpeg_binary=ffmpeg_binary,
            relay_source=relay_source
        ) for destination in destinations if destination.enabled
    ]
    push_block = '\n'.join(push_lines) or NO_DESTINATIONS_PLACEHOLDER

    # Ingest key first so destination text is never re-substituted
    config = template.replace(INGEST_KEY_MARKER, ingest_key, 1)
    return config.replace(PUSH_DESTINATIONS_MARKER, push_block, 1)
