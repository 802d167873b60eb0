"""Source-domain extraction for the source facet."""

from urllib.parse import urlparse

import structlog


logger = structlog.get_logger()

_WWW_PREFIX = "www."


def extract_source_domain(url: str | None) -> str | None:
    """Extract the host of a source URL without a leading ``www.``.

    Malformed URLs are a data inconsistency: they are logged and
    suppressed, never raised.

    Args:
        url: Source article URL.

    Returns:
        Lower-cased domain, or None if the URL has no usable host.
    """
    if not url or url == "#":
        return None

    try:
        host = urlparse(url.strip()).hostname
    except ValueError as e:
        logger.warning("malformed_source_url", component="facets", url=url, error=str(e))
        return None

    if not host:
        logger.warning("malformed_source_url", component="facets", url=url)
        return None

    host = host.lower()
    if host.startswith(_WWW_PREFIX):
        host = host[len(_WWW_PREFIX) :]
    return host
