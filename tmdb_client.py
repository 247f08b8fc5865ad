"""TMDB lookups, normalized records and field projection."""

import logging

import settings
import upstream
from text_utils import pick_best_match, round_half_up, slugify

logger = logging.getLogger(__name__)

MEDIA_TYPES = ('movie', 'tv')
NONE_VALUE = 'none'
CAST_LIMIT = 10


def api_key_configured():
    return bool(settings.TMDB_API_KEY)


def image_url(path, size='original'):
    if not path:
        return None
    return f"{settings.TMDB_IMAGE_BASE_URL}/{size}{path}"


def _get(path, params=None):
    if not api_key_configured():
        return upstream.FetchResult.failure('TMDB_API_KEY missing')
    payload = {'api_key': settings.TMDB_API_KEY, 'language': settings.TMDB_LANGUAGE}
    if params:
        payload.update(params)
    return upstream.fetch_json(
        f"{settings.TMDB_BASE_URL}{path}",
        params=payload,
        timeout=settings.TMDB_TIMEOUT,
        headers={'Accept': 'application/json'},
    )


def details_cache_key(media_type, tmdb_id, season=None, episode=None):
    key = f"{media_type}:{tmdb_id}"
    if season is not None:
        key += f":s{season}"
        if episode is not None:
            key += f"e{episode}"
    return key


def _details_path(media_type, tmdb_id, season=None, episode=None):
    if media_type not in MEDIA_TYPES:
        raise ValueError(f"unknown media type: {media_type}")
    if media_type == 'movie' or season is None:
        return f"/{media_type}/{tmdb_id}"
    if episode is None:
        return f"/tv/{tmdb_id}/season/{season}"
    return f"/tv/{tmdb_id}/season/{season}/episode/{episode}"


def details(media_type, tmdb_id, season=None, episode=None, cache=None):
    """Movie, series, season or episode details. Only successful lookups are cached."""
    key = details_cache_key(media_type, tmdb_id, season, episode)
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return upstream.FetchResult.success(cached)

    result = _get(_details_path(media_type, tmdb_id, season, episode))
    if result.ok and isinstance(result.value, dict) and result.value.get('id') is not None:
        if cache is not None:
            cache.set(key, result.value)
        return result
    if result.ok:
        return upstream.FetchResult.failure('not found', result.status)
    return result


def movie_details(movie_id, cache=None):
    return details('movie', movie_id, cache=cache)


def tv_details(tv_id, cache=None):
    return details('tv', tv_id, cache=cache)


def tv_season(tv_id, season_number, cache=None):
    return details('tv', tv_id, season=season_number, cache=cache)


def tv_episode(tv_id, season_number, episode_number, cache=None):
    return details('tv', tv_id, season=season_number, episode=episode_number, cache=cache)


def credits(media_type, tmdb_id):
    return _get(f"/{media_type}/{tmdb_id}/credits")


def search(media_type, query, year=None):
    params = {'query': query, 'include_adult': 'false'}
    if year:
        params['year' if media_type == 'movie' else 'first_air_date_year'] = year
    result = _get(f"/search/{media_type}", params)
    if not result.ok:
        return result
    results = result.value.get('results') if isinstance(result.value, dict) else None
    return upstream.FetchResult.success(
        [r for r in (results or []) if isinstance(r, dict)], result.status
    )


def find_tmdb_id(media_type, title, year=None, cache=None):
    """Best matching TMDB id for a scraped title, or None."""
    slug = slugify(title)
    if not slug:
        return None
    key = f"{media_type}-search:{slug}" + (f":{year}" if year else '')
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached

    result = search(media_type, title, year)
    if not result.ok:
        logger.warning(f"TMDB search failed for '{title}': {result.error}")
        return None
    name_field = 'title' if media_type == 'movie' else 'name'
    match = pick_best_match(result.value, title, name_field)
    if not match or match.get('id') is None:
        logger.info(f"No TMDB {media_type} match for '{title}'")
        return None

    if cache is not None:
        cache.set(key, match['id'])
    return match['id']


def _year(data):
    date = data.get('release_date') or data.get('first_air_date') or data.get('air_date') or ''
    return date[:4] if isinstance(date, str) and len(date) >= 4 else None


def _rating(data, scale=1, digits=1):
    vote = data.get('vote_average')
    if not isinstance(vote, (int, float)) or not vote:
        return None
    value = vote * scale
    return round_half_up(value, digits)


def _cast_names(credit_data):
    cast = (credit_data or {}).get('cast') or []
    return [c.get('name') for c in cast[:CAST_LIMIT] if isinstance(c, dict) and c.get('name')]


def normalize_record(data):
    """Flatten a movie/series/episode payload into the shared record shape."""
    return {
        'tmdb_id': data.get('id'),
        'title': data.get('title') or data.get('name'),
        'overview': data.get('overview') or None,
        'rating': _rating(data),
        'release_date': data.get('release_date') or data.get('first_air_date') or data.get('air_date'),
        'poster': image_url(data.get('poster_path') or data.get('still_path')),
        'backdrop': image_url(data.get('backdrop_path')),
        'genres': [g.get('name') for g in data.get('genres') or [] if isinstance(g, dict)],
    }


_FIELD_GETTERS = {
    'id': lambda d: d.get('id'),
    'tmdb_id': lambda d: d.get('id'),
    'title': lambda d: d.get('title') or d.get('name'),
    'overview': lambda d: d.get('overview') or None,
    'rating': _rating,
    'year': _year,
    'release_date': lambda d: d.get('release_date') or d.get('first_air_date') or d.get('air_date'),
    'poster': lambda d: image_url(d.get('poster_path') or d.get('still_path')),
    'backdrop': lambda d: image_url(d.get('backdrop_path')),
    'genres': lambda d: [g.get('name') for g in d['genres'] if isinstance(g, dict)] if d.get('genres') else None,
    'runtime': lambda d: d.get('runtime') or d.get('episode_run_time') or None,
}


def parse_fields(fields):
    return [f.strip() for f in (fields or '').split(',') if f.strip()]


def project_fields(data, fields, fetch_credits=None):
    """Subset of `data` for the requested comma-separated field names.

    Unknown names fall back to the raw upstream key. Anything missing is
    reported as "none". `fetch_credits` is called at most once, and only
    when "cast" is requested and the payload has no embedded credits.
    """
    projected = {}
    credit_data = data.get('credits')
    credits_loaded = credit_data is not None

    for name in parse_fields(fields):
        if name in projected:
            continue
        if name == 'cast':
            if not credits_loaded and fetch_credits is not None:
                credit_data = fetch_credits()
                credits_loaded = True
            names = _cast_names(credit_data)
            projected[name] = names or NONE_VALUE
            continue
        getter = _FIELD_GETTERS.get(name)
        value = getter(data) if getter else data.get(name)
        projected[name] = NONE_VALUE if value is None or value == '' else value
    return projected


def _season_payload(season):
    return {
        'season_number': season.get('season_number'),
        'image': image_url(season.get('poster_path')),
        'episodes': [
            {
                'episode_number': e.get('episode_number'),
                'title': e.get('name'),
                'image': image_url(e.get('still_path')),
                'meta': {
                    'overview': e.get('overview') or None,
                    'rating': _rating(e, scale=10, digits=0),
                    'runtime': e.get('runtime') or None,
                },
            }
            for e in season.get('episodes') or []
            if isinstance(e, dict)
        ],
    }


def series_overview(tv_id, cache=None):
    """Series metadata with every regular season and its episodes, or None."""
    result = tv_details(tv_id, cache=cache)
    if not result.ok:
        return None
    series = result.value

    numbers = [
        s.get('season_number')
        for s in series.get('seasons') or []
        if isinstance(s, dict) and s.get('season_number')
    ]
    season_results = upstream.fan_out(lambda n: tv_season(tv_id, n, cache=cache), numbers)
    seasons = []
    for number, season_result in zip(numbers, season_results):
        if season_result is None or not season_result.ok:
            logger.warning(f"Season {number} of TV {tv_id} unavailable")
            continue
        seasons.append(_season_payload(season_result.value))

    images = [image_url(series.get(k)) for k in ('poster_path', 'backdrop_path') if series.get(k)]
    return {
        'tmdb_id': series.get('id'),
        'title': series.get('name'),
        'overview': series.get('overview') or None,
        'rating': _rating(series, scale=10, digits=0),
        'release_date': series.get('first_air_date') or None,
        'genres': [g.get('id') for g in series.get('genres') or [] if isinstance(g, dict)],
        'images': images,
        'seasons': seasons,
    }
