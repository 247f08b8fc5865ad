"""Header handling and access checks for the passthrough proxy."""

import hmac
from urllib.parse import urlparse

import settings

PRESERVED_REQUEST_HEADERS = ('accept', 'accept-language', 'range', 'if-range', 'cache-control')
COPIED_RESPONSE_HEADERS = (
    'content-type',
    'content-length',
    'content-disposition',
    'content-range',
    'accept-ranges',
    'cache-control',
    'expires',
    'last-modified',
    'etag',
)
DEFAULT_USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64)'


def check_access(target, provided_secret):
    """Return (status, message) when the call must be refused, else None."""
    secret = settings.PROXY_SECRET
    if secret and not hmac.compare_digest(provided_secret or '', secret):
        return 401, 'Unauthorized (invalid proxy secret)'
    allowed = settings.PROXY_ALLOWED_HOSTS
    if allowed:
        host = (urlparse(target).hostname or '').lower()
        if host not in allowed:
            return 403, 'Target host not allowed'
    return None


def forwarded_origin():
    parsed = urlparse(settings.PROXY_REFERER)
    return f"{parsed.scheme}://{parsed.netloc}"


def outgoing_headers(inbound):
    headers = {}
    for name in PRESERVED_REQUEST_HEADERS:
        value = inbound.get(name)
        if value:
            headers[name] = value
    headers['referer'] = settings.PROXY_REFERER
    headers['origin'] = forwarded_origin()
    headers['user-agent'] = inbound.get('user-agent') or DEFAULT_USER_AGENT
    return headers


def response_headers(upstream_headers):
    headers = {}
    # the body is re-streamed decoded
    encoded = bool(upstream_headers.get('content-encoding'))
    for name in COPIED_RESPONSE_HEADERS:
        if encoded and name == 'content-length':
            continue
        value = upstream_headers.get(name)
        if value:
            headers[name] = value
    headers['access-control-allow-origin'] = '*'
    headers['access-control-allow-credentials'] = 'true'
    return headers
