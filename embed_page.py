"""Inspection of third-party embed pages (player iframe, ad popups, page meta)."""

import re
from datetime import datetime, timezone
from urllib.parse import urlparse

from source_extractor import is_ignored_host
from text_utils import decode_html

_IFRAME_RE = re.compile(r'<iframe[^>]*\ssrc=["\']([^"\']+)["\'][^>]*>', re.IGNORECASE)
_WINDOW_OPEN_RE = re.compile(r'window\.open\s*\(\s*["\']([^"\']+)["\']', re.IGNORECASE)
_BACKGROUND_RE = re.compile(r'background(?:-image)?\s*:\s*url\s*\(\s*["\']?([^"\')]+)["\']?\s*\)', re.IGNORECASE)
_OVERLAY_RE = re.compile(r'class=["\'][^"\']*overlay[^"\']*["\']', re.IGNORECASE)
_TITLE_RE = re.compile(r'<title>([^<]+)</title>', re.IGNORECASE)
_ROBOTS_RE = re.compile(r'<meta\s+name=["\']robots["\']\s+content=["\']([^"\']+)["\']', re.IGNORECASE)
_CHARSET_RE = re.compile(r'<meta\s+charset=["\']?([^"\'\s>]+)["\']?', re.IGNORECASE)
_LANG_RE = re.compile(r'<html[^>]+lang=["\']([^"\']+)["\']', re.IGNORECASE)
_CONTEXT_MENU_RE = re.compile(r'oncontextmenu\s*=\s*["\']return\s+false;?["\']', re.IGNORECASE)


def is_valid_url(value):
    try:
        parsed = urlparse(value or '')
    except ValueError:
        return False
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def _first(pattern, html_text, accept=None):
    for match in pattern.finditer(html_text):
        value = match.group(1)
        if value and (accept is None or accept(value)):
            return decode_html(value)
    return None


def extract_video_data(html_text, source_url):
    html_text = html_text or ''
    metadata = {
        'hasCloudflare': 'cloudflareinsights' in html_text or 'cf-beacon' in html_text,
        'contextMenuDisabled': bool(_CONTEXT_MENU_RE.search(html_text)),
    }

    title = _TITLE_RE.search(html_text)
    if title:
        metadata['title'] = decode_html(title.group(1).strip())
    for key, pattern in (('robots', _ROBOTS_RE), ('charset', _CHARSET_RE), ('language', _LANG_RE)):
        match = pattern.search(html_text)
        if match:
            metadata[key] = match.group(1)

    return {
        'sourceUrl': source_url,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'videoUrl': _first(_IFRAME_RE, html_text, lambda src: not is_ignored_host(src)),
        'adUrl': _first(_WINDOW_OPEN_RE, html_text),
        'playButtonImage': _first(_BACKGROUND_RE, html_text, lambda u: 'play' in u or 'button' in u),
        'hasOverlay': bool(_OVERLAY_RE.search(html_text)),
        'metadata': metadata,
    }
