"""Discovery of a live stream's HLS manifest URL from upstream pages."""

import logging
import re
from typing import Callable, Optional, Sequence
from urllib.parse import unquote

from hls_relay.exceptions import ManifestNotFoundError
from hls_relay.fetcher import UAFetcher

logger = logging.getLogger(__name__)

# Player config embeds the manifest as a JSON string value
MANIFEST_MARKERS = (re.compile(r'"hlsManifestUrl":"([^"]+)"'),)

# Tried in order; the first page carrying a marker wins
CANDIDATE_TEMPLATES = (
    "{origin}/{handle}/live",
    "{origin}/channel/{handle}/live",
    "{origin}/watch?v={handle}",
)


def extract_manifest_url(
    page_text: str,
    patterns: Sequence[re.Pattern] = MANIFEST_MARKERS,
) -> Optional[str]:
    """
    Find the manifest URL embedded in page markup.

    Args:
        page_text: Raw page body
        patterns: Marker patterns whose first group captures the URL

    Returns:
        Decoded manifest URL, or None if no pattern matches
    """
    for pattern in patterns:
        match = pattern.search(page_text)
        if match:
            # Player config escapes "&" as \u0026
            return unquote(match.group(1).replace("\\u0026", "&"))
    return None


class ManifestResolver:
    """Maps a stream handle to its upstream master manifest URL."""

    def __init__(
        self,
        fetcher: UAFetcher,
        origin: str,
        templates: Sequence[str] = CANDIDATE_TEMPLATES,
        extractor: Callable[[str], Optional[str]] = extract_manifest_url,
    ):
        self._fetcher = fetcher
        self._origin = origin.rstrip("/")
        self._templates = tuple(templates)
        self._extractor = extractor

    def candidate_urls(self, handle: str) -> list[str]:
        """Candidate page URLs for a handle, in priority order."""
        return [template.format(origin=self._origin, handle=handle) for template in self._templates]

    async def resolve(self, handle: str) -> str:
        """
        Resolve a handle to a manifest URL.

        Candidates are fetched sequentially and the first match short-circuits
        the rest.

        Raises:
            ManifestNotFoundError: If no candidate page embeds a manifest URL
        """
        for page_url in self.candidate_urls(handle):
            response = await self._fetcher.fetch_page(page_url)
            manifest_url = self._extractor(response.text)
            if manifest_url:
                logger.info(f"[RESOLVER] Manifest found for {handle} via {page_url}")
                return manifest_url
            logger.debug(f"[RESOLVER] No manifest at {page_url} (status={response.status_code})")

        logger.warning(f"[RESOLVER] No manifest found for handle: {handle}")
        raise ManifestNotFoundError(handle)
