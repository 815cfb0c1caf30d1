"""
Declarative auth injection for the rendered page.

The printable page runs in an anonymous browser context but still has to
fetch checklist data as the caller. A policy is a list of rules mapping a URL
pattern to the headers added to matching outbound requests; the session
installs it as a Playwright route before navigating.
"""

from dataclasses import dataclass, field
from urllib.parse import urlsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}


def origin_of(url: str) -> str:
    """scheme://host[:port] in lower case, with the scheme's default port dropped."""
    parts = urlsplit(str(url))
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    try:
        port = parts.port
    except ValueError:
        port = None
    if port is None or port == _DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


@dataclass(frozen=True)
class HeaderRule:
    """Attach `headers` to requests on `origin` whose path starts with a prefix."""
    origin: str
    path_prefixes: tuple[str, ...]
    headers: dict[str, str] = field(default_factory=dict)

    def matches(self, url: str) -> bool:
        if origin_of(url) != origin_of(self.origin):
            return False
        path = urlsplit(url).path
        return any(path.startswith(prefix) for prefix in self.path_prefixes)


@dataclass(frozen=True)
class AuthInjectionPolicy:
    rules: tuple[HeaderRule, ...] = ()

    @classmethod
    def for_bearer(
        cls,
        site_url: str,
        token: str | None,
        path_prefixes: list[str] | tuple[str, ...],
    ) -> "AuthInjectionPolicy":
        """
        Same-origin data proxy policy carrying the caller's token as both
        Authorization and apikey. An empty token yields an empty policy.
        """
        if not token:
            return cls()
        rule = HeaderRule(
            origin=origin_of(site_url),
            path_prefixes=tuple(path_prefixes),
            headers={"Authorization": f"Bearer {token}", "apikey": token},
        )
        return cls(rules=(rule,))

    @property
    def empty(self) -> bool:
        return not self.rules

    def matches(self, url: str) -> bool:
        return any(rule.matches(url) for rule in self.rules)

    def apply(self, url: str, headers: dict[str, str]) -> dict[str, str]:
        """Return request headers with every matching rule's headers merged in."""
        merged = dict(headers)
        for rule in self.rules:
            if not rule.matches(url):
                continue
            # Header names are case-insensitive; drop any existing spelling first
            for name, value in rule.headers.items():
                for existing in [k for k in merged if k.lower() == name.lower()]:
                    del merged[existing]
                merged[name] = value
        return merged
