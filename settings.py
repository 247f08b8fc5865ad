import logging
import os

logger = logging.getLogger(__name__)


def _env_float(name, default):
    raw = os.getenv(name, '')
    try:
        return float(raw) if raw.strip() else default
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default


def _env_int(name, default):
    return int(_env_float(name, default))


def _env_list(name):
    return [p.strip().lower() for p in os.getenv(name, '').split(',') if p.strip()]


# TMDB (the key must come from the environment)
TMDB_API_KEY = os.getenv('TMDB_API_KEY', '')
TMDB_BASE_URL = os.getenv('TMDB_BASE_URL', 'https://api.themoviedb.org/3').rstrip('/')
TMDB_IMAGE_BASE_URL = os.getenv('TMDB_IMAGE_BASE_URL', 'https://image.tmdb.org/t/p').rstrip('/')
TMDB_LANGUAGE = os.getenv('TMDB_LANGUAGE', 'en-US')

# Upstreams
CATALOG_API_URL = os.getenv('CATALOG_API_URL', 'https://blackseal.xyz/api/api.php')
CATALOG_LINK_BASE = os.getenv('CATALOG_LINK_BASE', 'https://multimovies.city/movies').rstrip('/')
TOON_BASE_URL = os.getenv('TOON_BASE_URL', 'https://toonstream.one').rstrip('/')
TOON_API_URL = os.getenv('TOON_API_URL', 'https://toonstream-api.ry4n.qzz.io/api').rstrip('/')
MULTIMOVIES_BASE_URL = os.getenv('MULTIMOVIES_BASE_URL', 'https://multimovies.mobi').rstrip('/')
SOURCES_API_URL = os.getenv('SOURCES_API_URL', 'https://multi-movies-api.vercel.app/api/tv')
CRON_TARGET_URL = os.getenv('CRON_TARGET_URL', 'https://blackseal.xyz/test/auto/m_upload.php')

# Proxy
PROXY_SECRET = os.getenv('PROXY_SECRET', '')
PROXY_ALLOWED_HOSTS = _env_list('PROXY_ALLOWED_HOSTS')
PROXY_REFERER = os.getenv('PROXY_REFERER', 'https://multimovies.network/')

USER_AGENT = os.getenv(
    'USER_AGENT',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
)

# Timeouts (seconds)
HTTP_TIMEOUT = _env_float('HTTP_TIMEOUT', 15.0)
TMDB_TIMEOUT = _env_float('TMDB_TIMEOUT', 8.0)
SOURCES_TIMEOUT = _env_float('SOURCES_TIMEOUT', 20.0)

# Caches
TMDB_CACHE_TTL_SECONDS = _env_int('TMDB_CACHE_TTL_SECONDS', 24 * 60 * 60)
TMDB_CACHE_MAX_ENTRIES = _env_int('TMDB_CACHE_MAX_ENTRIES', 2048)
EPISODES_CACHE_TTL_SECONDS = _env_int('EPISODES_CACHE_TTL_SECONDS', 2 * 60)
SOURCES_CACHE_TTL_SECONDS = _env_int('SOURCES_CACHE_TTL_SECONDS', 2 * 60)
SOURCES_CACHE_MAX_ENTRIES = _env_int('SOURCES_CACHE_MAX_ENTRIES', 1024)
LISTING_CACHE_MAX_ENTRIES = _env_int('LISTING_CACHE_MAX_ENTRIES', 256)

MAX_WORKERS = _env_int('MAX_WORKERS', 6)
MAX_PAGES = _env_int('MAX_PAGES', 10)

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
