"""Proxy settings forwarded to vendors that solve through a proxy."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

__all__ = ["ProxyType", "ProxyConfig"]


class ProxyType(str, Enum):
    HTTP = "http"
    HTTPS = "https"
    SOCKS4 = "socks4"
    SOCKS5 = "socks5"

    @property
    def rucaptcha_value(self) -> str:
        # RuCaptcha has no separate https proxy type.
        return "http" if self is ProxyType.HTTPS else self.value


@dataclass(frozen=True, slots=True)
class ProxyConfig:
    proxy_type: ProxyType
    address: str
    port: int
    login: str | None = None
    password: str | None = None

    @classmethod
    def http(cls, address: str, port: int) -> "ProxyConfig":
        return cls(ProxyType.HTTP, address, port)

    @classmethod
    def https(cls, address: str, port: int) -> "ProxyConfig":
        return cls(ProxyType.HTTPS, address, port)

    @classmethod
    def socks4(cls, address: str, port: int) -> "ProxyConfig":
        return cls(ProxyType.SOCKS4, address, port)

    @classmethod
    def socks5(cls, address: str, port: int) -> "ProxyConfig":
        return cls(ProxyType.SOCKS5, address, port)

    def with_auth(self, login: str, password: str) -> "ProxyConfig":
        return replace(self, login=login, password=password)

    @property
    def has_auth(self) -> bool:
        return self.login is not None and self.password is not None

    def to_string_format(self) -> str:
        """Render as ``type:address:port[:login:password]``."""

        parts = [self.proxy_type.value, self.address, str(self.port)]
        if self.has_auth:
            parts += [str(self.login), str(self.password)]
        return ":".join(parts)

    def type_str(self) -> str:
        return self.proxy_type.rucaptcha_value

    def _fields(self, proxy_type: str) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "proxyType": proxy_type,
            "proxyAddress": self.address,
            "proxyPort": self.port,
        }
        if self.login is not None:
            fields["proxyLogin"] = self.login
        if self.password is not None:
            fields["proxyPassword"] = self.password
        return fields

    def capsolver_fields(self) -> dict[str, Any]:
        return self._fields(self.proxy_type.value)

    def rucaptcha_fields(self) -> dict[str, Any]:
        return self._fields(self.proxy_type.rucaptcha_value)
