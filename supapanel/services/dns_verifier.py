"""
DNS verification for custom domains.

Best-effort reachability signal: a domain counts as verified when at least one
IPv4 address record resolves. The address is not compared with this server's
address, so a domain pointing anywhere passes.

Failures (NXDOMAIN, timeouts, malformed names) are the normal state of a
domain whose records have not propagated yet; they yield False and are never
raised. No retries and no caching: callers re-check on demand. Any time limit
is the caller's to impose (e.g. asyncio.wait_for around the call).
"""

import asyncio
import logging
import socket

logger = logging.getLogger(__name__)


async def resolve_ipv4(domain: str) -> list:
    """Resolve the IPv4 addresses of a domain (raises on failure)."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(
        domain, None,
        family=socket.AF_INET,
        type=socket.SOCK_STREAM
    )
    return sorted({info[4][0] for info in infos})


async def verify_domain_dns(domain: str) -> bool:
    """
    Check whether a domain currently resolves.

    Args:
        domain: Domain name

    Returns:
        True if at least one address record resolves, False otherwise
    """
    try:
        addresses = await resolve_ipv4(domain)
    except (OSError, UnicodeError, ValueError) as e:
        logger.info(f"[DNS] {domain} does not resolve yet: {e}")
        return False

    if addresses:
        logger.info(f"[DNS] {domain} resolves to {', '.join(addresses)}")
        return True

    logger.info(f"[DNS] {domain} has no address records")
    return False
