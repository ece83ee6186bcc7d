"""Client-fingerprint comparison for refresh requests.

The detector only *flags*: acting on a report (log, audit, force
re-authentication) is the rotation engine's decision.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass

from authcore.services._shared.dto import Fingerprint, SessionRecord

_VERSION_RE = re.compile(r"(\d+)(?:\.\d+)+")


@dataclass(frozen=True, slots=True)
class AnomalyReport:
    """Which parts of the fingerprint moved away from the session's reference."""

    ip_changed: bool = False
    user_agent_changed: bool = False

    @property
    def is_anomalous(self) -> bool:
        return self.ip_changed or self.user_agent_changed

    def reasons(self) -> list[str]:
        out = []
        if self.ip_changed:
            out.append("ip_changed")
        if self.user_agent_changed:
            out.append("user_agent_changed")
        return out


def normalize_user_agent(value: str) -> str:
    """
    Reduce a user agent to a comparable shape.

    Dotted versions collapse to their major number so routine browser updates
    (``Chrome/120.0.6099.71`` -> ``Chrome/121.0.6167.85``) still differ, but
    patch-level bumps (``Firefox/121.0`` -> ``Firefox/121.0.1``) do not.

    :param value: Raw ``User-Agent`` header.
    :returns: Normalized string.
    """
    return _VERSION_RE.sub(r"\1", " ".join(value.split())).lower()


class AnomalyDetector:
    """
    Compare a refresh request's fingerprint with the session's last known one.

    :param ipv4_prefix: IPv4 prefix length treated as the same network.
    :param ipv6_prefix: IPv6 prefix length treated as the same network.
    """

    def __init__(self, *, ipv4_prefix: int = 24, ipv6_prefix: int = 64) -> None:
        self.ipv4_prefix = ipv4_prefix
        self.ipv6_prefix = ipv6_prefix

    # ------------------------- helpers -------------------------

    def _network(self, value: str) -> ipaddress.IPv4Network | ipaddress.IPv6Network | None:
        try:
            addr = ipaddress.ip_address(value.strip())
        except ValueError:
            return None
        if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
            addr = addr.ipv4_mapped
        prefix = self.ipv4_prefix if addr.version == 4 else self.ipv6_prefix
        return ipaddress.ip_network(f"{addr}/{prefix}", strict=False)

    def ip_changed(self, reference: str | None, observed: str | None) -> bool:
        if not reference or not observed:
            return False
        ref_net, obs_net = self._network(reference), self._network(observed)
        if ref_net is None or obs_net is None:
            # Unparseable addresses fall back to plain comparison.
            return reference.strip() != observed.strip()
        return ref_net != obs_net

    @staticmethod
    def user_agent_changed(reference: str | None, observed: str | None) -> bool:
        if not reference or not observed:
            return False
        return normalize_user_agent(reference) != normalize_user_agent(observed)

    # -------------------------- API ----------------------------

    def assess(self, session: SessionRecord, fingerprint: Fingerprint) -> AnomalyReport:
        """
        Compare ``fingerprint`` against the session's reference fingerprint.

        The reference is the last successful refresh's values, falling back to
        the creation values. Unknown values on either side are never compared.
        """
        ref_ip = session.last_ip or session.ip_address
        ref_ua = session.last_user_agent or session.user_agent
        return AnomalyReport(
            ip_changed=self.ip_changed(ref_ip, fingerprint.ip_address),
            user_agent_changed=self.user_agent_changed(ref_ua, fingerprint.user_agent),
        )

    def is_anomalous(self, session: SessionRecord, fingerprint: Fingerprint) -> bool:
        return self.assess(session, fingerprint).is_anomalous
