"""
Port and secret allocation for projects.

Two halves:
- get_project_ports(): read side. Pure function from a project's env vars to
  the ports the routing config points at. Missing keys fall back to the
  upstream defaults.
- allocate_project_env(): creation side. Picks a free port block and
  generates credentials for a new project.

Env vars are the source of truth: whatever get_project_ports() returns must
match the ports the project's containers are bound to.
"""

import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Dict, Iterable

import jwt

logger = logging.getLogger(__name__)

DEFAULT_KONG_HTTP_PORT = 8000
DEFAULT_KONG_HTTPS_PORT = 8443
DEFAULT_STUDIO_PORT = 3000
DEFAULT_POSTGRES_PORT = 5432

KONG_HTTP_PORT_KEY = "KONG_HTTP_PORT"
STUDIO_PORT_KEY = "STUDIO_PORT"

# Anon / service-role keys stay valid for 10 years
JWT_LIFETIME_SECONDS = 10 * 365 * 24 * 3600

_ALPHANUMERIC = string.ascii_letters + string.digits


@dataclass(frozen=True)
class ProjectPorts:
    """Host ports the routing config points at."""
    api_gateway_port: int
    studio_port: int


def _parse_port(value, default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def get_project_ports(env_vars: Dict[str, str]) -> ProjectPorts:
    """
    Resolve a project's ports from its env vars.

    Examples:
        {} -> ProjectPorts(8000, 3000)
        {"KONG_HTTP_PORT": "8080"} -> ProjectPorts(8080, 3000)
    """
    return ProjectPorts(
        api_gateway_port=_parse_port(env_vars.get(KONG_HTTP_PORT_KEY) or DEFAULT_KONG_HTTP_PORT, DEFAULT_KONG_HTTP_PORT),
        studio_port=_parse_port(env_vars.get(STUDIO_PORT_KEY) or DEFAULT_STUDIO_PORT, DEFAULT_STUDIO_PORT),
    )


def generate_secret(length: int) -> str:
    """Random alphanumeric secret."""
    return ''.join(secrets.choice(_ALPHANUMERIC) for _ in range(length))


def generate_api_key(jwt_secret: str, role: str, issued_at: int) -> str:
    """HS256 JWT carrying a Postgres role, as expected by Kong and PostgREST."""
    payload = {
        "role": role,
        "iss": "supabase",
        "iat": issued_at,
        "exp": issued_at + JWT_LIFETIME_SECONDS,
    }
    return jwt.encode(payload, jwt_secret, algorithm="HS256")


def next_port_offset(taken_gateway_ports: Iterable[int], stride: int) -> int:
    """
    Lowest block offset whose gateway port is free.

    Block n uses 8000 + n*stride as its gateway port, so the taken gateway
    ports are enough to tell which blocks are in use.
    """
    taken = set(taken_gateway_ports)
    offset = 0
    while DEFAULT_KONG_HTTP_PORT + offset * stride in taken:
        offset += 1
    return offset


def allocate_project_env(
    slug: str,
    taken_gateway_ports: Iterable[int],
    public_host: str = "localhost",
    stride: int = 10
) -> Dict[str, str]:
    """
    Build the initial env vars of a new project.

    Args:
        slug: Project slug (also the compose project name)
        taken_gateway_ports: KONG_HTTP_PORT values used by other projects
        public_host: Host the API is reachable on before a domain is set
        stride: Spacing between consecutive port blocks

    Returns:
        Env var map (ports, credentials, URLs)
    """
    offset = next_port_offset(taken_gateway_ports, stride) * stride
    kong_http_port = DEFAULT_KONG_HTTP_PORT + offset

    jwt_secret = generate_secret(64)
    issued_at = int(time.time())
    public_url = f"http://{public_host}:{kong_http_port}"

    env = {
        "COMPOSE_PROJECT_NAME": slug,
        KONG_HTTP_PORT_KEY: str(kong_http_port),
        "KONG_HTTPS_PORT": str(DEFAULT_KONG_HTTPS_PORT + offset),
        STUDIO_PORT_KEY: str(DEFAULT_STUDIO_PORT + offset),
        "POSTGRES_PORT": str(DEFAULT_POSTGRES_PORT + offset),
        "POSTGRES_PASSWORD": generate_secret(32),
        "JWT_SECRET": jwt_secret,
        "ANON_KEY": generate_api_key(jwt_secret, "anon", issued_at),
        "SERVICE_ROLE_KEY": generate_api_key(jwt_secret, "service_role", issued_at),
        "DASHBOARD_USERNAME": "supabase",
        "DASHBOARD_PASSWORD": generate_secret(24),
        "SITE_URL": public_url,
        "API_EXTERNAL_URL": public_url,
        "SUPABASE_PUBLIC_URL": public_url,
    }

    logger.info(f"[ALLOCATOR] {slug}: gateway port {kong_http_port}, studio port {env[STUDIO_PORT_KEY]}")
    return env
