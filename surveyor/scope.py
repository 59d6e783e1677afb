"""
Scope

Decides whether a candidate asset belongs to the active engagement.
"""

from surveyor.config import ScopeConfig
from surveyor.models.assets import FQDN

# Labels that commonly sit under a ccTLD as a second level (co.uk, com.au, ...)
COMMON_SECOND_LEVEL = {"co", "com", "net", "org", "gov", "edu", "ac"}

IN_SCOPE_CONFIDENCE = 100


def normalize_domain(name: str) -> str:
    """Lower-case a domain and drop surrounding whitespace and a trailing dot."""
    return name.strip().lower().rstrip(".")


def registered_domain(name: str) -> str:
    """
    Extract the registered (second-level) domain of a name.

    This is a simple heuristic, not a public suffix lookup: the last two
    labels, or the last three when the second-to-last is a common
    second-level label.
    """
    name = normalize_domain(name)
    parts = name.split(".")
    if len(parts) <= 2:
        return name
    if parts[-2] in COMMON_SECOND_LEVEL:
        return ".".join(parts[-3:])
    return ".".join(parts[-2:])


def is_subdomain_of(name: str, parent: str) -> bool:
    """True if name equals parent or sits beneath it."""
    return name == parent or name.endswith(f".{parent}")


class Scope:
    """
    Scope oracle over a set of domains and a blacklist.

    A name is in scope when it equals or is a subdomain of a scoped domain
    and is not blacklisted (blacklisting a name excludes its subdomains too).
    """

    def __init__(
        self,
        domains: list[str] | None = None,
        blacklist: list[str] | None = None,
    ) -> None:
        self._domains: list[str] = []
        self._blacklist: list[str] = []
        for d in domains or []:
            self.add_domain(d)
        for b in blacklist or []:
            self.add_blacklisted(b)

    @classmethod
    def from_config(cls, config: ScopeConfig) -> "Scope":
        return cls(domains=config.domains, blacklist=config.blacklist)

    @property
    def domains(self) -> list[str]:
        return list(self._domains)

    def add_domain(self, domain: str) -> bool:
        """Add a domain to the scope. Returns False if it was already present."""
        domain = normalize_domain(domain)
        if not domain or domain in self._domains:
            return False
        self._domains.append(domain)
        return True

    def add_blacklisted(self, name: str) -> None:
        name = normalize_domain(name)
        if name and name not in self._blacklist:
            self._blacklist.append(name)

    def is_blacklisted(self, name: str) -> bool:
        name = normalize_domain(name)
        return any(is_subdomain_of(name, b) for b in self._blacklist)

    def is_asset_in_scope(self, asset: object, conf: int = 0) -> tuple[str | None, int]:
        """
        Evaluate an asset against the scope.

        Args:
            asset: The candidate asset; only FQDN assets can match
            conf: Minimum confidence the caller will accept

        Returns:
            (matched scope domain, confidence); (None, 0) when out of scope
        """
        if not isinstance(asset, FQDN):
            return None, 0

        name = normalize_domain(asset.name)
        if not name or self.is_blacklisted(name):
            return None, 0

        for domain in self._domains:
            if is_subdomain_of(name, domain) and IN_SCOPE_CONFIDENCE >= conf:
                return domain, IN_SCOPE_CONFIDENCE
        return None, 0
