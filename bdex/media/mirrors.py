"""
Deterministic mirror rotation for CDN image URLs.

The image CDN serves the same objects from several edge hostnames and over
both http and https. Each retry attempt picks the next variant in a fixed ring
so that one unhealthy node or one blocked scheme is routed around.
"""

from yarl import URL

from bdex.models.config import DEFAULT_MIRROR_HOSTS

RING_SIZE = 8


class MirrorPolicy:
    """Maps an attempt number to a candidate URL. Stateless and pure."""

    def __init__(self, hosts: tuple[str, str, str] = DEFAULT_MIRROR_HOSTS):
        if len(hosts) != 3:
            raise ValueError("MirrorPolicy needs exactly three mirror hosts.")
        mirror_1, mirror_2, mirror_3 = hosts
        # (secure, host) per slot; None keeps the original host
        self._ring: tuple[tuple[bool, str | None], ...] = (
            (False, None),
            (True, mirror_3),
            (False, mirror_3),
            (True, mirror_2),
            (False, mirror_2),
            (True, mirror_1),
            (False, mirror_1),
            (True, None),
        )

    def next_candidate_url(self, base_url: str, attempt: int) -> str:
        """
        Returns the URL to try for the given zero-based attempt number.

        Attempt 0 (and every multiple of 8) is the base URL unchanged.
        """
        secure, host = self._ring[attempt % RING_SIZE]
        if not secure and host is None:
            return base_url

        url = URL(base_url)
        if secure and url.scheme == "http":
            url = url.with_scheme("https")
        if host is not None:
            url = url.with_host(host)
        return str(url)
