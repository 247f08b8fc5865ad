"""Listing-page scrapers driven by per-site selector tables.

Each target site is described by a ListingSite: where its listing pages
live, which element wraps one card, and how to read each field out of the
card. scrape_pages() does the rest for any site.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

from bs4 import BeautifulSoup

import settings
import upstream
from text_utils import decode_html, dedupe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldRule:
    selector: Optional[str] = None  # None reads the card element itself
    attr: Optional[str] = None  # None reads the text
    pattern: Optional[str] = None  # first capture group is kept
    default: str = ''


@dataclass(frozen=True)
class ListingSite:
    name: str
    page_url: Callable[[int], str]
    item_selector: str
    fields: Dict[str, FieldRule]
    required: Tuple[str, ...] = ()
    dedupe_key: Tuple[str, ...] = ()
    headers: Dict[str, str] = field(default_factory=dict)
    postprocess: Optional[Callable] = None


def _node_value(node, rule):
    if rule.attr:
        value = node.get(rule.attr)
        if isinstance(value, list):
            value = ' '.join(value)
        return (value or '').strip()
    return node.get_text(' ', strip=True)


def read_field(element, rule):
    nodes = element.select(rule.selector) if rule.selector else [element]
    for node in nodes:
        value = _node_value(node, rule)
        if rule.pattern:
            match = re.search(rule.pattern, value)
            if not match:
                continue
            value = match.group(1) if match.groups() else match.group(0)
        if value:
            return decode_html(value).strip()
    return rule.default


def parse_listing(site, html_text):
    soup = BeautifulSoup(html_text or '', 'html.parser')
    items = []
    for element in soup.select(site.item_selector):
        item = {name: read_field(element, rule) for name, rule in site.fields.items()}
        if any(not item.get(name) for name in site.required):
            continue
        if site.postprocess:
            item = site.postprocess(item, element)
        items.append(item)
    return items


def scrape_page(site, page):
    url = site.page_url(page)
    result = upstream.fetch_text(url, headers=site.headers)
    if not result.ok:
        logger.warning(f"{site.name}: page {page} unavailable ({result.error})")
        return []
    items = parse_listing(site, result.value)
    logger.info(f"{site.name}: {len(items)} items on page {page}")
    return items


def scrape_pages(site, pages):
    """Scrape each page in turn, concatenate, drop duplicates."""
    items = []
    for page in pages:
        items.extend(scrape_page(site, page))
    if site.dedupe_key:
        items = dedupe(items, site.dedupe_key)
    return items


def scrape_pagination(html_text):
    soup = BeautifulSoup(html_text or '', 'html.parser')
    current_page = 1
    total_pages = 1
    has_next = False
    has_prev = False

    for link in soup.select('.navigation.pagination .nav-links a, .navigation.pagination .nav-links span'):
        text = link.get_text(strip=True)
        classes = link.get('class') or []
        if 'current' in classes and text.isdecimal():
            current_page = int(text)
        if text.upper() == 'NEXT':
            has_next = True
        if text.upper() in ('PREV', 'PREVIOUS'):
            has_prev = True
        if text.isdecimal():
            total_pages = max(total_pages, int(text))

    return {
        'currentPage': current_page,
        'totalPages': total_pages,
        'hasNextPage': has_next,
        'hasPrevPage': has_prev,
    }


_CLASS_PREFIXES = {
    'categories': 'category-',
    'tags': 'tag-',
    'cast': 'cast-',
    'directors': 'directors-',
    'countries': 'country-',
}


def toon_class_metadata(class_list):
    """Pull taxonomy terms out of WordPress post classes like 'cast-john-doe'."""
    metadata = {key: [] for key in _CLASS_PREFIXES}
    metadata['letters'] = None
    metadata['year'] = None
    for cls in (class_list or '').split():
        for key, prefix in _CLASS_PREFIXES.items():
            if cls.startswith(prefix) and len(cls) > len(prefix):
                metadata[key].append(cls[len(prefix):].replace('-', ' '))
        if cls.startswith('letters-'):
            metadata['letters'] = cls[len('letters-'):]
        match = re.fullmatch(r'annee-(\d+)', cls)
        if match:
            metadata['year'] = match.group(1)
    return metadata


def absolute_image_url(src):
    if not src:
        return None
    return 'https:' + src if src.startswith('//') else src


def _toon_postprocess(item, element):
    item['poster'] = absolute_image_url(item.get('poster'))
    item['metadata'] = toon_class_metadata(' '.join(element.get('class') or []))
    return item


MULTIMOVIES_EPISODES = ListingSite(
    name='multimovies-episodes',
    page_url=lambda page: f"{settings.MULTIMOVIES_BASE_URL}/episodes/page/{page}/",
    item_selector='article.item.se.episodes',
    fields={
        'title': FieldRule('h3 a'),
        'link': FieldRule('h3 a', attr='href'),
        'serie': FieldRule('span.serie'),
        'episode_info': FieldRule('span', pattern=r'(S\d+\s*E\d+.*)'),
        'image': FieldRule('img', attr='src'),
    },
    required=('serie', 'link'),
    dedupe_key=('serie', 'episode_info'),
    headers={'User-Agent': 'Mozilla/5.0 (compatible; ScraperBot/1.0)'},
)

TOON_MOVIES = ListingSite(
    name='toon-movies',
    page_url=lambda page: f"{settings.TOON_BASE_URL}/movies/page/{page}/",
    item_selector='.section.movies .post-lst li',
    fields={
        'id': FieldRule(attr='id', pattern=r'post-(\d+)'),
        'title': FieldRule('.entry-title'),
        'url': FieldRule('.lnk-blk', attr='href'),
        'poster': FieldRule('img', attr='src'),
    },
    required=('url',),
    dedupe_key=('url',),
    postprocess=_toon_postprocess,
)
