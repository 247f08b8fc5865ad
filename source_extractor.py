"""Best-effort discovery of playback URLs in upstream payloads of unknown shape.

The source-resolution API changes its response layout without notice, so
instead of reading fixed keys we walk every string in the payload and keep
the ones that look like embed pages or direct media files.
"""

import logging
import re
from urllib.parse import quote, urlparse

import settings
import upstream
from text_utils import decode_html

logger = logging.getLogger(__name__)

EMBED_HOST_KEYWORDS = (
    'embed',
    'mp4upload',
    'streamtape',
    'dood',
    'filemoon',
    'streamwish',
    'vidhide',
    'voe',
    'mixdrop',
    'gdmirror',
    'player',
    'iframe',
)
MEDIA_EXTENSIONS = ('.mp4', '.m3u8')
IGNORED_HOSTS = ('cloudflareinsights', 'google-analytics', 'googletagmanager', 'cf-beacon', 'beacon')

_URL_RE = re.compile(r'^https?://[^\s"\'<>]+$', re.IGNORECASE)
_HTML_URL_PATTERNS = [
    re.compile(r'<iframe[^>]*\s(?:data-)?src=["\']([^"\']+)["\']', re.IGNORECASE),
    re.compile(r'\s(?:data-src|data-litespeed-src|href)=["\'](https?://[^"\']+)["\']', re.IGNORECASE),
    re.compile(r'["\']?file["\']?\s*:\s*["\'](https?://[^"\']+)["\']', re.IGNORECASE),
    re.compile(r'(https?://[^\s"\'<>]+\.(?:m3u8|mp4)(?:\?[^\s"\'<>]*)?)', re.IGNORECASE),
]


def iter_strings(payload):
    """Yield every string leaf of a decoded JSON value."""
    if isinstance(payload, str):
        yield payload
    elif isinstance(payload, dict):
        for value in payload.values():
            yield from iter_strings(value)
    elif isinstance(payload, (list, tuple)):
        for value in payload:
            yield from iter_strings(value)


def is_ignored_host(url):
    """True for analytics and beacon hosts; only the hostname is compared."""
    try:
        host = (urlparse(url).hostname or '').lower()
    except ValueError:
        return True
    return any(name in host for name in IGNORED_HOSTS)


def looks_like_source(url):
    if not isinstance(url, str):
        return False
    candidate = url.strip()
    if not _URL_RE.match(candidate):
        return False
    lowered = candidate.lower()
    if is_ignored_host(candidate):
        return False
    path = lowered.split('?', 1)[0].split('#', 1)[0]
    if path.endswith(MEDIA_EXTENSIONS):
        return True
    return any(keyword in lowered for keyword in EMBED_HOST_KEYWORDS)


def _unique(urls):
    seen = set()
    ordered = []
    for url in urls:
        if url not in seen:
            seen.add(url)
            ordered.append(url)
    return ordered


def extract_sources(payload):
    """Playback-looking URLs found anywhere in a JSON payload, in order of appearance."""
    return _unique(s.strip() for s in iter_strings(payload) if looks_like_source(s))


def extract_sources_from_html(html_text):
    """Same as extract_sources but over raw page markup."""
    found = []
    for pattern in _HTML_URL_PATTERNS:
        for match in pattern.finditer(html_text or ''):
            url = decode_html(match.group(1)).strip()
            if url.startswith('//'):
                url = 'https:' + url
            if looks_like_source(url):
                found.append(url)
    return _unique(found)


def _has_sources(payload):
    return bool(extract_sources(payload))


def _resolver_variants(link, api_url):
    encoded = quote(link, safe='')
    yield 'get-encoded', lambda: upstream.fetch_json_with_retry(
        f"{api_url}?url={encoded}", accept=_has_sources, timeout=settings.SOURCES_TIMEOUT
    )
    yield 'get-raw', lambda: upstream.fetch_json(f"{api_url}?url={link}", timeout=settings.SOURCES_TIMEOUT)
    yield 'get-double-encoded', lambda: upstream.fetch_json(
        f"{api_url}?url={quote(encoded, safe='')}", timeout=settings.SOURCES_TIMEOUT
    )
    yield 'post-json', lambda: upstream.post_json(api_url, {'url': link}, timeout=settings.SOURCES_TIMEOUT)


def resolve_sources(link, api_url=None):
    """Try each resolver variant, then the page itself, until one yields sources.

    Returns (sources, variant). Both are empty when nothing worked.
    """
    api_url = api_url or settings.SOURCES_API_URL
    for variant, attempt in _resolver_variants(link, api_url):
        result = attempt()
        if not result.ok:
            continue
        sources = [s for s in extract_sources(result.value) if s != link]
        if sources:
            logger.info(f"Resolved {len(sources)} sources for {link} via {variant}")
            return sources, variant

    page = upstream.fetch_text(link, timeout=settings.SOURCES_TIMEOUT)
    if page.ok:
        sources = [s for s in extract_sources_from_html(page.value) if s != link]
        if sources:
            logger.info(f"Resolved {len(sources)} sources for {link} from page HTML")
            return sources, 'page-html'

    logger.warning(f"No sources found for {link}")
    return [], ''
