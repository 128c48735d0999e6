from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

Address = Tuple[str, int]


def parse_address(text: Optional[str]) -> Optional[Address]:
    """
    Parse a ``host:port`` listen address.

    A blank value means the listener is disabled and yields ``None``.
    IPv6 hosts are written in brackets (``[::1]:8080``) and an empty host
    (``:8080``) binds every interface.
    """
    if text is None or not text.strip():
        return None
    text = text.strip()
    host, sep, port_text = text.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {text!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"IPv6 address must be bracketed in {text!r}")
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port {port_text!r} in address {text!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range in address {text!r}")
    return host, port


def format_address(address: Address) -> str:
    host, port = address
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


@dataclass(frozen=True)
class ServerConfig:
    """Startup configuration, built once and shared read-only by every listener."""

    listen: Optional[Address] = ("0.0.0.0", 80)
    listen_tls: Optional[Address] = ("0.0.0.0", 443)
    certfile: str = "cert.pem"
    keyfile: str = "key.pem"
    document_root: str = "/var/www/html"
    hold_time: int = 0

    def __post_init__(self) -> None:
        if self.hold_time < 0:
            raise ValueError("hold time must not be negative")
