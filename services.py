"""Scrape-and-enrich flows behind the HTTP routes."""

import logging
from datetime import datetime, timezone
from urllib.parse import urlparse

import settings
import site_scrapers
import source_extractor
import tmdb_client
import upstream
from text_utils import round_half_up, slugify

logger = logging.getLogger(__name__)

PLACEHOLDER_MOVIE = {'id': 'none', 'tmdb_id': 0, 'title': 'none', 'genre': 'none', 'src': []}
NONE_VALUE = tmdb_client.NONE_VALUE


class ServiceError(Exception):
    """A flow failed in a way the caller should report with `status`."""

    def __init__(self, message, status=500):
        super().__init__(message)
        self.message = message
        self.status = status


def require_tmdb():
    if not tmdb_client.api_key_configured():
        raise ServiceError('TMDB_API_KEY missing', 500)


# Catalog listing -----------------------------------------------------------

def fetch_catalog(query_id='', query_title=''):
    params = {}
    if query_id:
        params['id'] = query_id
    elif query_title:
        params['title'] = query_title
    result = upstream.fetch_json(settings.CATALOG_API_URL, params=params or None)
    if not result.ok:
        logger.warning(f"Catalog unavailable: {result.error}")
        return [dict(PLACEHOLDER_MOVIE)]
    data = result.value if isinstance(result.value, dict) else {}
    if data.get('ok') and isinstance(data.get('data'), list):
        return [m for m in data['data'] if isinstance(m, dict)]
    return []


def _catalog_entry(movie, tmdb_data):
    title = movie.get('title') or NONE_VALUE
    poster_path = tmdb_data.get('poster_path')
    vote = tmdb_data.get('vote_average')
    return {
        'title': title,
        'link': f"{settings.CATALOG_LINK_BASE}/{slugify(title)}/",
        'date_or_year': tmdb_data.get('release_date') or movie.get('year') or NONE_VALUE,
        'rating': f"{round_half_up(vote, 1):.1f}" if isinstance(vote, (int, float)) and vote else NONE_VALUE,
        'original_image': tmdb_client.image_url(poster_path) or NONE_VALUE,
        'tmdb_image': tmdb_client.image_url(poster_path, 'w500') or NONE_VALUE,
        'src': movie.get('src') or [NONE_VALUE],
        'genre': movie.get('genre') or NONE_VALUE,
    }


def catalog_sections(query_id='', query_title='', cache=None):
    """Catalog movies enriched with TMDB details looked up in parallel."""
    require_tmdb()
    movies = fetch_catalog(query_id, query_title)

    def lookup(movie):
        tmdb_id = movie.get('tmdb_id')
        if not tmdb_id or tmdb_id in (0, '0'):
            return {}
        return tmdb_client.movie_details(tmdb_id, cache=cache).unwrap_or({})

    details = upstream.fan_out(lookup, movies)
    recent = [_catalog_entry(movie, data or {}) for movie, data in zip(movies, details)]
    return {
        'ok': True,
        'page': 1,
        'total': len(recent),
        'sections': {'Recently added': recent},
    }


# Toon movies -----------------------------------------------------------------

def toon_slug(url):
    path = urlparse(url or '').path.rstrip('/')
    return path.rsplit('/', 1)[-1] if path else ''


def w500(url):
    if not url:
        return None
    return url.replace('/w185/', '/w500/').replace('/w300/', '/w500/')


def _names(entries):
    return [e.get('name') for e in entries or [] if isinstance(e, dict) and e.get('name')]


def _toon_movie(slug, payload, tmdb_id):
    data = payload.get('data') or {}
    movie = data.get('movieDetails') or {}
    options = data.get('videoOptions') or {}
    server_groups = options.get('servers') or []
    servers = server_groups[0].get('servers') if server_groups and isinstance(server_groups[0], dict) else []
    try:
        rating = float(movie.get('rating') or 0)
    except (TypeError, ValueError):
        rating = 0.0
    return {
        'toon_post_id': data.get('postId'),
        'slug': slug,
        'title': movie.get('title'),
        'tmdb_id': tmdb_id,
        'poster': w500(movie.get('posterImage')),
        'year': movie.get('year'),
        'duration': movie.get('duration'),
        'rating': rating,
        'genres': _names(movie.get('genres')),
        'directors': _names(movie.get('directors')),
        'cast': _names(movie.get('cast')),
        'tags': _names(movie.get('tags')),
        'description': movie.get('description'),
        'iframes': [
            {'id': f.get('optionId'), 'active': f.get('active'), 'src': f.get('src')}
            for f in options.get('iframes') or []
            if isinstance(f, dict)
        ],
        'servers': [
            {'number': s.get('serverNumber'), 'name': (s.get('serverName') or '').strip(), 'active': s.get('active')}
            for s in servers or []
            if isinstance(s, dict)
        ],
        'sourceUrl': data.get('movieUrl'),
        'scrapedAt': data.get('scrapedAt'),
    }


def latest_toon_movies(cache=None):
    """Latest movies from the toon API with full details and TMDB ids."""
    listing = upstream.fetch_json(f"{settings.TOON_API_URL}/category/latest/movies")
    if not listing.ok:
        raise ServiceError(f"Latest movies unavailable: {listing.error}", 502)

    results = (listing.value or {}).get('results') or []
    slugs = [toon_slug(m.get('url')) for m in results if isinstance(m, dict) and '/movies/' in (m.get('url') or '')]

    movies = []
    for slug in filter(None, slugs):
        detail = upstream.fetch_json(f"{settings.TOON_API_URL}/movie/{slug}")
        if not detail.ok or not isinstance(detail.value, dict) or not detail.value.get('success'):
            logger.warning(f"Skipping toon movie {slug}")
            continue
        movie = (detail.value.get('data') or {}).get('movieDetails') or {}
        tmdb_id = None
        if movie.get('title') and tmdb_client.api_key_configured():
            tmdb_id = tmdb_client.find_tmdb_id('movie', movie['title'], movie.get('year'), cache=cache)
        movies.append(_toon_movie(slug, detail.value, tmdb_id))

    return {
        'success': True,
        'count': len(movies),
        'fetchedAt': datetime.now(timezone.utc).isoformat(),
        'movies': movies,
    }


def toon_movies_page(page):
    """One page of the toon movie grid, scraped from HTML."""
    site = site_scrapers.TOON_MOVIES
    result = upstream.fetch_text(site.page_url(page), headers=site.headers)
    if not result.ok:
        raise ServiceError(f"Movies page unavailable: {result.error}", 502)
    return {
        'success': True,
        'category': 'anime-movies',
        'categoryName': 'Anime Movies',
        'results': site_scrapers.parse_listing(site, result.value),
        'pagination': site_scrapers.scrape_pagination(result.value),
    }


def convert_toon(url, cache=None):
    """Toon detail document -> TMDB-normalized movie record with its iframe sources."""
    require_tmdb()
    toon = upstream.fetch_json(url)
    if not toon.ok or not isinstance(toon.value, dict):
        raise ServiceError(f"Could not load {url}: {toon.error or 'unexpected payload'}", 502)
    data = toon.value.get('data') or {}
    movie = data.get('movieDetails') or {}
    title = movie.get('title')
    if not title:
        raise ServiceError('Source has no movie title', 404)

    found = tmdb_client.search('movie', title)
    if not found.ok:
        raise ServiceError(f"TMDB search failed: {found.error}", 502)
    if not found.value:
        raise ServiceError('TMDB NOT FOUND', 404)

    detail = tmdb_client.movie_details(found.value[0]['id'], cache=cache)
    if not detail.ok:
        raise ServiceError('TMDB NOT FOUND', 404)
    d = detail.value
    iframes = (data.get('videoOptions') or {}).get('iframes') or []
    return {
        'tmdb_id': d.get('id'),
        'title': d.get('title'),
        'overview': d.get('overview'),
        'rating': round_half_up(d.get('vote_average') or 0),
        'release_date': d.get('release_date'),
        'poster': tmdb_client.image_url(d.get('poster_path')),
        'backdrop': tmdb_client.image_url(d.get('backdrop_path')),
        'genre_id': ','.join(str(g.get('id')) for g in d.get('genres') or [] if isinstance(g, dict)),
        'src': [i.get('src') for i in iframes if isinstance(i, dict) and i.get('src')],
    }


# Episodes --------------------------------------------------------------------

def sources_for(link, cache=None):
    """Playback sources for one episode page, cached per link."""
    key = f"sources:{link}"
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached
    sources, variant = source_extractor.resolve_sources(link)
    entry = {'sources': sources, 'variant': variant}
    if cache is not None:
        cache.set(key, entry)
    return entry


def episodes_feed(pages, tmdb_cache=None, sources_cache=None):
    """Scrape episode listings, map each series to TMDB and attach sources."""
    episodes = site_scrapers.scrape_pages(site_scrapers.MULTIMOVIES_EPISODES, pages)

    series_ids = {}
    if tmdb_client.api_key_configured():
        for serie in dict.fromkeys(ep['serie'] for ep in episodes):
            tmdb_id = tmdb_client.find_tmdb_id('tv', serie, cache=tmdb_cache)
            if tmdb_id:
                series_ids[serie] = tmdb_id
    else:
        logger.warning('TMDB_API_KEY missing, episodes returned without TMDB ids')

    data = []
    for ep in episodes:
        data.append({
            'serie': ep['serie'],
            'tmdbId': series_ids.get(ep['serie']),
            'episodeInfo': ep.get('episode_info', ''),
            'title': ep.get('title', ''),
            'link': ep['link'],
            'sources': sources_for(ep['link'], sources_cache)['sources'],
        })
    return {'pages': pages, 'total': len(data), 'data': data}


# Cron trigger ----------------------------------------------------------------

def trigger_sync(target=None):
    target = target or settings.CRON_TARGET_URL
    timestamp = datetime.now(timezone.utc).isoformat()
    result = upstream.fetch_text(
        target,
        headers={
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Cache-Control': 'no-cache',
            'Pragma': 'no-cache',
        },
    )
    if not result.ok:
        logger.error(f"Sync trigger failed for {target}: {result.error}")
        return {
            'success': False,
            'status': result.status,
            'target': target,
            'error': result.error,
            'timestamp': timestamp,
        }
    return {
        'success': True,
        'status': result.status,
        'triggered': True,
        'target': target,
        'timestamp': timestamp,
        'responsePreview': (result.value or '')[:500],
    }
