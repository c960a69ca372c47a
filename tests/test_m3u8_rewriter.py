"""Tests for M3U8 playlist rewriter."""

from urllib.parse import parse_qs, urlsplit

from hls_relay.m3u8_rewriter import M3U8Rewriter

PROXY_BASE = "https://relay.example/@channel/stream.m3u8"


def _target_of(proxied_url: str, param: str) -> str:
    """Extract the upstream URL the way the router reads it."""
    parsed = urlsplit(proxied_url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == PROXY_BASE
    return parse_qs(parsed.query)[param][0]


class TestMasterRewrite:
    """Test suite for master playlist rewriting."""

    def test_rewrite_variant_lines(self):
        """Test that absolute variant URLs become variant relay URLs."""
        rewriter = M3U8Rewriter(PROXY_BASE)

        manifest = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=2000000,RESOLUTION=1280x720
https://cdn.example.com/hls/720p/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=5000000,RESOLUTION=1920x1080
https://cdn.example.com/hls/1080p/index.m3u8
"""

        result = rewriter.rewrite_master(manifest)

        assert (
            f"{PROXY_BASE}?variant=https%3A%2F%2Fcdn.example.com%2Fhls%2F720p%2Findex.m3u8" in result
        )
        assert (
            f"{PROXY_BASE}?variant=https%3A%2F%2Fcdn.example.com%2Fhls%2F1080p%2Findex.m3u8" in result
        )
        assert "#EXT-X-STREAM-INF:BANDWIDTH=2000000,RESOLUTION=1280x720" in result
        assert "https://cdn.example.com" not in result

    def test_rewrite_url_inside_tag_attribute(self):
        """Test that URIs embedded in tag attributes are rewritten without the closing quote."""
        rewriter = M3U8Rewriter(PROXY_BASE)

        manifest = '#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="aud",URI="https://cdn.example.com/audio.m3u8"'

        result = rewriter.rewrite_master(manifest)

        assert result == (
            '#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="aud",'
            f'URI="{PROXY_BASE}?variant=https%3A%2F%2Fcdn.example.com%2Faudio.m3u8"'
        )

    def test_url_stops_at_comma(self):
        """Test that a comma ends the matched URL."""
        rewriter = M3U8Rewriter(PROXY_BASE)

        result = rewriter.rewrite_master("https://a.example/x.m3u8,extra")

        assert result == f"{PROXY_BASE}?variant=https%3A%2F%2Fa.example%2Fx.m3u8,extra"

    def test_query_string_is_encoded(self):
        """Test that upstream query strings survive as a single encoded parameter."""
        rewriter = M3U8Rewriter(PROXY_BASE)
        upstream = "https://manifest.example/api/hls_variant/itag/96/index.m3u8?sig=a/b&expire=1"

        result = rewriter.rewrite_master(upstream)

        assert "&" not in result.split("?", 1)[1]
        assert _target_of(result, "variant") == upstream

    def test_master_rewrite_is_idempotent(self):
        """Test that rewriting the same input twice yields identical output."""
        manifest = "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1\nhttp://cdn.example.com/a.m3u8\n"

        first = M3U8Rewriter(PROXY_BASE).rewrite_master(manifest)
        second = M3U8Rewriter(PROXY_BASE).rewrite_master(manifest)

        assert first == second


class TestVariantRewrite:
    """Test suite for variant playlist rewriting."""

    def test_rewrite_simple_media_playlist(self):
        """Test rewriting a simple media playlist with relative URLs."""
        rewriter = M3U8Rewriter(PROXY_BASE)

        manifest = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-TARGETDURATION:10
#EXT-X-MEDIA-SEQUENCE:1
#EXTINF:10.0,
segment001.ts
#EXTINF:10.0,
segment002.ts
#EXT-X-ENDLIST"""

        variant_url = "https://cdn.example.com/content/2025/stream.m3u8"
        result = rewriter.rewrite_variant(manifest, variant_url)

        lines = result.split("\n")
        assert _target_of(lines[5], "url") == "https://cdn.example.com/content/2025/segment001.ts"
        assert _target_of(lines[7], "url") == "https://cdn.example.com/content/2025/segment002.ts"
        assert lines[-1] == "#EXT-X-ENDLIST"

    def test_relative_resolution(self):
        """Test that a bare segment name resolves against the playlist directory."""
        rewriter = M3U8Rewriter(PROXY_BASE)

        result = rewriter.rewrite_variant("seg1.ts", "https://cdn.example/a/b/playlist.m3u8")

        assert _target_of(result, "url") == "https://cdn.example/a/b/seg1.ts"

    def test_rewrite_relative_paths_with_subdirs(self):
        """Test rewriting relative paths with subdirectories and parent references."""
        rewriter = M3U8Rewriter(PROXY_BASE)

        manifest = """#EXTINF:6.006,
video_4000K/00000/segment_00001.ts
#EXTINF:6.006,
../shared/segment_00002.ts
#EXTINF:6.006,
/root/segment_00003.ts"""

        result = rewriter.rewrite_variant(manifest, "https://cdn.example.com/content/2025/master.m3u8")

        lines = result.split("\n")
        assert _target_of(lines[1], "url") == "https://cdn.example.com/content/2025/video_4000K/00000/segment_00001.ts"
        assert _target_of(lines[3], "url") == "https://cdn.example.com/content/shared/segment_00002.ts"
        assert _target_of(lines[5], "url") == "https://cdn.example.com/root/segment_00003.ts"

    def test_rewrite_absolute_urls(self):
        """Test that already-absolute segment URLs are kept as targets."""
        rewriter = M3U8Rewriter(PROXY_BASE)

        manifest = """#EXTINF:10.0,
https://other.example.net/sq/1/segment001.ts?expire=99"""

        result = rewriter.rewrite_variant(manifest, "https://cdn.example.com/content/stream.m3u8")

        assert _target_of(result.split("\n")[1], "url") == "https://other.example.net/sq/1/segment001.ts?expire=99"

    def test_preserve_comments_and_metadata(self):
        """Test that tag, comment and empty lines are preserved byte for byte."""
        rewriter = M3U8Rewriter(PROXY_BASE)

        manifest = """#EXTM3U
#EXT-X-VERSION:3

#EXT-X-KEY:METHOD=AES-128,URI="https://cdn.example.com/keys/key.bin"
#EXT-X-PROGRAM-DATE-TIME:2025-01-01T00:00:00.000Z
#EXTINF:10.0,
segment001.ts

#EXT-X-ENDLIST"""

        result = rewriter.rewrite_variant(manifest, "https://cdn.example.com/stream.m3u8")

        for original, rewritten in zip(manifest.split("\n"), result.split("\n")):
            if not original or original.startswith("#"):
                assert rewritten == original

    def test_line_order_and_trailing_newline_preserved(self):
        """Test that the number and order of lines is unchanged."""
        rewriter = M3U8Rewriter(PROXY_BASE)
        manifest = "#EXTM3U\n#EXTINF:2,\nb.ts\n#EXTINF:2,\na.ts\n"

        result = rewriter.rewrite_variant(manifest, "https://cdn.example.com/v.m3u8")

        lines = result.split("\n")
        assert len(lines) == len(manifest.split("\n"))
        assert _target_of(lines[2], "url").endswith("/b.ts")
        assert _target_of(lines[4], "url").endswith("/a.ts")
        assert result.endswith("\n")

    def test_carriage_returns_do_not_leak_into_targets(self):
        """Test that CRLF playlists resolve clean segment URLs."""
        rewriter = M3U8Rewriter(PROXY_BASE)

        result = rewriter.rewrite_variant("#EXTM3U\r\nseg0.ts\r\n", "https://cdn.example.com/v.m3u8")

        lines = result.split("\n")
        assert lines[0] == "#EXTM3U\r"
        assert _target_of(lines[1], "url") == "https://cdn.example.com/seg0.ts"

    def test_variant_rewrite_is_idempotent(self):
        """Test that rewriting the same input twice yields identical output."""
        manifest = "#EXTM3U\n#EXTINF:2,\nseg.ts\n"
        variant_url = "https://cdn.example.com/v.m3u8"

        first = M3U8Rewriter(PROXY_BASE).rewrite_variant(manifest, variant_url)
        second = M3U8Rewriter(PROXY_BASE).rewrite_variant(manifest, variant_url)

        assert first == second

    def test_example_playlist(self):
        """Test the documented variant rewrite end to end."""
        rewriter = M3U8Rewriter("https://relay.example/@example/stream.m3u8")

        result = rewriter.rewrite_variant("#EXTM3U\n#EXT-X-VERSION:3\nseg0.ts\n", "https://cdn/x/v.m3u8")

        assert result == (
            "#EXTM3U\n#EXT-X-VERSION:3\n"
            "https://relay.example/@example/stream.m3u8?url=https%3A%2F%2Fcdn%2Fx%2Fseg0.ts\n"
        )


class TestEncodeUriComponent:
    """Test suite for query parameter encoding."""

    def test_reserved_characters_encoded(self):
        """Test that URL delimiters are percent-encoded."""
        assert M3U8Rewriter.encode_uri_component("a/b?c=d&e#f") == "a%2Fb%3Fc%3Dd%26e%23f"

    def test_unreserved_marks_kept(self):
        """Test that the marks encodeURIComponent leaves alone are kept."""
        assert M3U8Rewriter.encode_uri_component("-_.!~*'()") == "-_.!~*'()"
