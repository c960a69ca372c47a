"""HLS M3U8 playlist rewriter routing every reference back through the relay."""

import re
from urllib.parse import quote, urljoin

# Characters encodeURIComponent leaves untouched besides alphanumerics
_URI_COMPONENT_SAFE = "-_.!~*'()"


class M3U8Rewriter:
    """Rewrites master and variant playlists into relay URLs."""

    # Absolute URLs may sit on their own line or inside tag attributes
    ABSOLUTE_URL_PATTERN = re.compile(r'https?://[^\s,"]+')

    VARIANT_PARAM = "variant"
    SEGMENT_PARAM = "url"

    def __init__(self, proxy_base: str):
        """
        Initialize the rewriter.

        Args:
            proxy_base: Incoming request URL without its query string
                (e.g., "https://relay.example/@channel/stream.m3u8")
        """
        self.proxy_base = proxy_base

    @staticmethod
    def encode_uri_component(value: str) -> str:
        """Percent-encode a value for use as a single query parameter."""
        return quote(value, safe=_URI_COMPONENT_SAFE)

    def proxy_url(self, param: str, target_url: str) -> str:
        """Build the relay URL carrying target_url in the given query parameter."""
        return f"{self.proxy_base}?{param}={self.encode_uri_component(target_url)}"

    def rewrite_master(self, content: str) -> str:
        """
        Rewrite every absolute URL in a master playlist into a variant relay URL.

        The rewrite is textual rather than line based so URIs inside tag
        attributes (audio renditions, I-frame streams) are covered too.

        Args:
            content: Original master playlist

        Returns:
            Rewritten playlist
        """
        return self.ABSOLUTE_URL_PATTERN.sub(
            lambda match: self.proxy_url(self.VARIANT_PARAM, match.group(0)),
            content,
        )

    def rewrite_variant(self, content: str, variant_url: str) -> str:
        """
        Rewrite every segment reference in a variant playlist into a segment relay URL.

        Args:
            content: Original variant playlist
            variant_url: Upstream URL of the playlist (for resolving relative URLs)

        Returns:
            Rewritten playlist with line order preserved
        """
        return "\n".join(self._rewrite_line(line, variant_url) for line in content.split("\n"))

    def _rewrite_line(self, line: str, variant_url: str) -> str:
        # Tags and blank lines carry playback metadata and pass through verbatim
        if not line or line.startswith("#"):
            return line

        reference = line.strip()
        if not reference:
            return line

        return self.proxy_url(self.SEGMENT_PARAM, urljoin(variant_url, reference))
