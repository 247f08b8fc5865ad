from datetime import datetime, timezone
from flask import Flask, Response, jsonify, request, stream_with_context
from flask_cors import CORS
from urllib.parse import quote, unquote
from werkzeug.exceptions import HTTPException
import logging
import requests

import embed_page
import proxy
import services
import settings
import tmdb_client
import upstream
from services import ServiceError
from text_utils import parse_page_range
from ttl_cache import TTLCache

app = Flask(__name__)
CORS(app)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

# Per-process caches (reset on every cold start)
TMDB_CACHE = TTLCache(settings.TMDB_CACHE_TTL_SECONDS, settings.TMDB_CACHE_MAX_ENTRIES)
EPISODES_CACHE = TTLCache(settings.EPISODES_CACHE_TTL_SECONDS, settings.LISTING_CACHE_MAX_ENTRIES)
SOURCES_CACHE = TTLCache(settings.SOURCES_CACHE_TTL_SECONDS, settings.SOURCES_CACHE_MAX_ENTRIES)


def use_cache():
    return request.args.get('cache', '1') != '0'


def error_response(error, status, **extra):
    return jsonify({'error': error, **extra}), status


def optional_int(name):
    raw = request.args.get(name)
    if raw is None or raw == '':
        return None
    if not raw.isdecimal():
        raise ValueError(f"{name} must be a positive integer")
    return int(raw)


@app.errorhandler(HTTPException)
def handle_http_error(exc):
    return error_response(exc.description or exc.name, exc.code)


@app.errorhandler(Exception)
def handle_unexpected_error(exc):
    logger.exception(f"Unhandled error on {request.path}")
    return error_response('Internal server error', 500, message=str(exc))


@app.route('/')
def home():
    return jsonify({
        'message': 'reelscrape - movie and TV listings enriched with TMDB',
        'endpoints': {
            '/api/index?id=&title=': 'Catalog movies with TMDB artwork and ratings',
            '/api/tmdb?id=': 'TV series with all seasons and episodes',
            '/api/details?type=movie|tv&id=&fields=&season=&episode=': 'TMDB details, optionally projected',
            '/api/convert?url=': 'Toon movie document converted to a TMDB record',
            '/api/movies': 'Latest toon movies with details',
            '/api/s_movies?page=': 'One page of the toon movie grid',
            '/api/episodes?page=1-3&cache=0': 'Latest episodes with TMDB ids and sources',
            '/api/sources?url=': 'Playback sources for one episode page',
            '/api/embed?url=': 'Embed page inspection',
            '/api/proxy?url=&s=': 'Passthrough with forwarded Referer/Origin',
            '/api/cron': 'Trigger the catalog sync',
        }
    })


@app.route('/api')
@app.route('/api/index')
def catalog_index():
    """Catalog listing enriched with TMDB details."""
    try:
        payload = services.catalog_sections(
            request.args.get('id', ''),
            request.args.get('title', ''),
            cache=TMDB_CACHE if use_cache() else None,
        )
        return jsonify(payload)
    except ServiceError as e:
        return jsonify({'ok': False, 'error': e.message}), e.status


@app.route('/api/tmdb')
def tmdb_series():
    """TV series with every season and episode."""
    tv_id = request.args.get('id')
    if not tv_id:
        return error_response('TMDB ID required', 400)
    try:
        services.require_tmdb()
        overview = tmdb_client.series_overview(tv_id, cache=TMDB_CACHE if use_cache() else None)
        if overview is None:
            return error_response('Invalid TMDB ID', 404)
        return jsonify(overview)
    except ServiceError as e:
        return error_response(e.message, e.status)
    except Exception as e:
        logger.error(f"TMDB series {tv_id} failed: {e}")
        return error_response('Server crashed', 500, message=str(e))


@app.route('/api/details')
def tmdb_details():
    """Movie, series or episode details, projected to `fields` when given."""
    media_type = request.args.get('type', 'movie')
    tmdb_id = request.args.get('id')
    if media_type not in tmdb_client.MEDIA_TYPES:
        return error_response('type must be "movie" or "tv"', 400)
    if not tmdb_id:
        return error_response('id parameter required', 400)
    try:
        season = optional_int('season')
        episode = optional_int('episode')
    except ValueError as e:
        return error_response(str(e), 400)
    if media_type == 'movie' and season is not None:
        return error_response('season only applies to type=tv', 400)
    if episode is not None and season is None:
        return error_response('episode requires season', 400)

    try:
        services.require_tmdb()
        result = tmdb_client.details(
            media_type, tmdb_id, season, episode, cache=TMDB_CACHE if use_cache() else None
        )
        if not result.ok:
            status = 404 if result.status == 404 or result.error == 'not found' else 502
            return error_response(f"TMDB lookup failed: {result.error}", status)

        fields = request.args.get('fields', '')
        if not fields:
            return jsonify({'success': True, 'data': tmdb_client.normalize_record(result.value)})

        def fetch_credits():
            return tmdb_client.credits(media_type, tmdb_id).unwrap_or(None)

        return jsonify({
            'success': True,
            'data': tmdb_client.project_fields(result.value, fields, fetch_credits),
        })
    except ServiceError as e:
        return error_response(e.message, e.status)


@app.route('/api/convert')
def convert():
    """Converts a toon movie document into a TMDB-backed record."""
    source_url = request.args.get('url')
    if not source_url:
        return error_response('url parameter required', 400)
    try:
        return jsonify(services.convert_toon(source_url, cache=TMDB_CACHE))
    except ServiceError as e:
        return error_response(e.message, e.status)


@app.route('/api/movies')
def latest_movies():
    try:
        return jsonify(services.latest_toon_movies(cache=TMDB_CACHE))
    except ServiceError as e:
        return jsonify({'success': False, 'error': e.message}), e.status


@app.route('/api/s_movies')
def movies_page():
    try:
        page = max(1, int(request.args.get('page', '1')))
    except ValueError:
        page = 1
    try:
        return jsonify(services.toon_movies_page(page))
    except ServiceError as e:
        return jsonify({'success': False, 'error': 'Server error', 'message': e.message}), e.status


@app.route('/api/episodes')
def episodes():
    """Latest episodes for a page or page range like 1-3."""
    page_param = request.args.get('page', '2')
    try:
        pages = parse_page_range(page_param)
    except ValueError as e:
        return error_response(f"Invalid page parameter: {e}", 400)

    cache_key = f"episodes:{page_param}"
    if use_cache():
        cached = EPISODES_CACHE.get(cache_key)
        if cached:
            return jsonify({'cached': True, **cached})

    try:
        result = services.episodes_feed(
            pages,
            tmdb_cache=TMDB_CACHE,
            sources_cache=SOURCES_CACHE if use_cache() else None,
        )
    except Exception as e:
        logger.error(f"Episodes scraping failed for {page_param}: {e}")
        return error_response('Failed', 500, details=str(e))

    EPISODES_CACHE.set(cache_key, result)
    return jsonify(result)


@app.route('/api/sources')
def sources():
    link = request.args.get('url')
    if not link:
        return error_response('url parameter required', 400)
    if not embed_page.is_valid_url(link):
        return error_response('Invalid URL format', 400, providedUrl=link)
    entry = services.sources_for(link, SOURCES_CACHE if use_cache() else None)
    return jsonify({'url': link, 'found': bool(entry['sources']), **entry})


@app.route('/api/embed', methods=['GET', 'POST'])
def embed():
    """Inspects an embed page and reports its player and ad URLs."""
    target = request.args.get('url')
    if not target:
        return error_response(
            'Missing required parameter: url',
            400,
            usage='Add ?url=YOUR_ENCODED_URL to the request',
            example='/api/embed?url=' + quote('https://example.com/page?param1=value1&param2=value2', safe=''),
        )

    decoded = unquote(target)
    if not embed_page.is_valid_url(decoded):
        return error_response('Invalid URL format', 400, providedUrl=decoded)

    page = upstream.fetch_text(decoded, headers={'Upgrade-Insecure-Requests': '1'})
    if not page.ok:
        return error_response(
            'Scraping failed',
            500,
            message=f"Failed to fetch page: {page.error}",
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
    return jsonify(embed_page.extract_video_data(page.value, decoded))


@app.route('/api/proxy')
def proxy_passthrough():
    target = request.args.get('url')
    if not target or not embed_page.is_valid_url(target):
        return Response('Missing or invalid url parameter', status=400, mimetype='text/plain')

    refusal = proxy.check_access(target, request.args.get('s', ''))
    if refusal:
        status, message = refusal
        return Response(message, status=status, mimetype='text/plain')

    try:
        upstream_response = upstream.SESSION.get(
            target,
            headers=proxy.outgoing_headers(request.headers),
            stream=True,
            timeout=settings.HTTP_TIMEOUT,
            allow_redirects=True,
        )
    except requests.RequestException as e:
        logger.warning(f"Proxy fetch failed for {target}: {e}")
        return Response(f"Error fetching target: {e}", status=502, mimetype='text/plain')

    def body():
        try:
            for chunk in upstream_response.iter_content(chunk_size=64 * 1024):
                if chunk:
                    yield chunk
        finally:
            upstream_response.close()

    return Response(
        stream_with_context(body()),
        status=upstream_response.status_code,
        headers=proxy.response_headers(upstream_response.headers),
    )


@app.route('/api/cron')
def cron():
    """Triggers the catalog sync. Always 200 so uptime monitors stay green."""
    payload = services.trigger_sync()
    response = jsonify(payload)
    response.headers['Cache-Control'] = 'no-store'
    return response


if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5001)
