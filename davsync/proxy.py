"""Outbound proxy configuration."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .config import ClientConfig, config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxySettings:
    """Either an explicit HTTP proxy or ambient (environment) discovery."""

    host: str = ""
    port: int = 0
    user: str = ""
    password: str = ""
    use_system: bool = True
    """Let httpx pick up HTTP(S)_PROXY / NO_PROXY from the environment"""

    @property
    def is_explicit(self) -> bool:
        return bool(self.host)

    @property
    def proxy_url(self) -> Optional[str]:
        if not self.is_explicit:
            return None
        auth = f"{self.user}:{self.password}@" if self.user else ""
        return f"http://{auth}{self.host}:{self.port}"

    def client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for :class:`httpx.Client`."""
        if self.is_explicit:
            return {"proxy": self.proxy_url, "trust_env": False}
        return {"trust_env": self.use_system}


def parse_proxy_string(value: str) -> Optional[tuple[str, int]]:
    """Parse ``scheme://host:port``.

    Only strings splitting into exactly three colon-delimited segments are
    accepted; anything else yields None.

    Examples:
        >>> parse_proxy_string("http://192.168.178.23:8080")
        ('192.168.178.23', 8080)
        >>> parse_proxy_string("192.168.178.23:8080") is None
        True
    """
    parts = value.split(":")
    if len(parts) != 3:
        return None
    # http: //192.168.178.23 : 8080
    host = parts[1]
    if host.startswith("//"):
        host = host[2:]
    try:
        port = int(parts[2].rstrip("/"))
    except ValueError:
        return None
    if not host:
        return None
    return host, port


class ProxyConfigurator:
    """Resolve the proxy from ``--httpproxy`` or the client configuration."""

    def __init__(self, client_config: Optional[ClientConfig] = None):
        self.client_config = client_config or config

    def configure(self, proxy_override: Optional[str]) -> ProxySettings:
        """Return the proxy settings for this run.

        A well-formed override is the only proxy used and disables ambient
        discovery. An empty or malformed override falls through to the
        client configuration.
        """
        if proxy_override:
            parsed = parse_proxy_string(proxy_override)
            if parsed is not None:
                host, port = parsed
                logger.info(f"Using proxy {host}:{port}")
                return ProxySettings(host=host, port=port, use_system=False)
            logger.debug(f"Ignoring malformed proxy string: {proxy_override}")
        return self.from_config()

    def from_config(self) -> ProxySettings:
        configured = self.client_config.proxy_settings()
        if configured.type == "none":
            logger.debug("Proxy disabled by client configuration")
            return ProxySettings(use_system=False)
        if configured.type == "http":
            if configured.host and configured.port:
                logger.debug(
                    f"Using configured proxy {configured.host}:{configured.port}"
                )
                return ProxySettings(
                    host=configured.host,
                    port=configured.port,
                    user=configured.user,
                    password=configured.password,
                    use_system=False,
                )
            logger.warning("Proxy type 'http' configured without host/port")
        return ProxySettings(use_system=True)
