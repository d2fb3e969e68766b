"""Connection options and the inbound message record."""

from __future__ import annotations

import dataclasses
import re
import urllib.parse
from typing import Any, Mapping, NamedTuple, Optional

from .errors import OptionsError


_URL = re.compile(r'[a-z0-9]+://[a-z\-0-9./]+', re.IGNORECASE)


@dataclasses.dataclass(frozen=True)
class ConnectionOptions:
    """Everything a provider needs to reach its backend.

    Only *provider* and *queue_name* are universally required; each
    provider validates the remaining fields it depends on when it is
    constructed.
    """

    provider: str
    queue_name: Optional[str] = None
    hostname: Optional[str] = None
    port: Optional[int] = None
    exchange_name: Optional[str] = None
    delete_after_receive: bool = False
    attributes: Optional[Mapping[str, str]] = None
    max_receive_count: Optional[int] = None
    visibility_timeout: Optional[int] = None
    wait_time_seconds: Optional[int] = None
    delay_between_polls: float = 0
    backend_config: Any = None

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "ConnectionOptions":
        known = set(field.name for field in dataclasses.fields(cls))
        unknown = set(mapping) - known
        if unknown:
            raise OptionsError("unknown option(s): " + ", ".join(sorted(unknown)))

        if not mapping.get("provider"):
            raise OptionsError("`provider` option is missing")

        return cls(**mapping)

    @classmethod
    def from_url(cls, url: str, **overrides: Any) -> "ConnectionOptions":
        """Parse ``scheme://host[:port]/queueName``.

        The scheme selects the provider. The path, trimmed of leading and
        trailing slashes, names the queue; a URL without a path uses the
        host name as the queue name instead. Values derived from the URL
        replace any in *overrides*.
        """

        if not _URL.match(url):
            raise OptionsError("invalid queue URL: " + repr(url))

        parts = urllib.parse.urlsplit(url)
        try:
            port = parts.port
        except ValueError as exc:
            raise OptionsError("invalid port in queue URL: " + repr(url)) from exc

        queue_name = parts.path.strip("/") or parts.hostname

        options = dict(overrides)
        options.update(
            provider=parts.scheme.lower(),
            hostname=parts.hostname,
            port=port,
            queue_name=queue_name,
        )
        return cls.from_mapping(options)


class InboundMessage(NamedTuple):
    """A decoded message as delivered to consumers.

    *handle* is the backend token needed to acknowledge the message; only
    the ``sqs`` provider supplies one, it is None otherwise.
    """

    payload: Any
    handle: Any = None
