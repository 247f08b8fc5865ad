import html
import re
import unicodedata
from decimal import ROUND_HALF_UP, Decimal

import settings

_NON_ALNUM_RE = re.compile(r'[^a-z0-9]+')


def slugify(text):
    """Lowercase, hyphen-separated form of a title used in URLs and matching."""
    value = unicodedata.normalize('NFD', str(text or ''))
    value = ''.join(ch for ch in value if unicodedata.category(ch) != 'Mn')
    value = _NON_ALNUM_RE.sub('-', value.lower())
    return value.strip('-')


def decode_html(text):
    return html.unescape(text or '')


def parse_page_range(value, max_pages=None):
    """Turn '3' into [3] and '1-3' into [1, 2, 3]."""
    max_pages = max_pages or settings.MAX_PAGES
    raw = str(value or '').strip()
    if not raw:
        raise ValueError('page is empty')

    if '-' in raw:
        start_raw, _, end_raw = raw.partition('-')
        if not start_raw.strip().isdecimal() or not end_raw.strip().isdecimal():
            raise ValueError(f"invalid page range: {raw}")
        start, end = int(start_raw), int(end_raw)
        if start > end:
            start, end = end, start
    else:
        if not raw.isdecimal():
            raise ValueError(f"invalid page: {raw}")
        start = end = int(raw)

    if start < 1:
        raise ValueError('pages start at 1')
    if end - start + 1 > max_pages:
        raise ValueError(f"at most {max_pages} pages per request")
    return list(range(start, end + 1))


def dedupe(items, key_fields):
    """Keep the first item for each composite key."""
    seen = set()
    unique = []
    for item in items:
        key = tuple(item.get(field) for field in key_fields)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def pick_best_match(results, title, name_field='name'):
    """Prefer the result whose slug equals the title's slug, else the first one."""
    if not results:
        return None
    wanted = slugify(title)
    for candidate in results:
        if slugify(candidate.get(name_field)) == wanted:
            return candidate
    return results[0]


def round_half_up(value, digits=0):
    """Round with ties away from zero, so 7.25 -> 7.3 and 6.5 -> 7."""
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if digits == 0 else float(rounded)
