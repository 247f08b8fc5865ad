"""Shared fixtures: a fake HTTP session and canned upstream responses."""

import json

import pytest
import requests

import settings
import upstream

_NO_JSON = object()


class DummyResponse:
    """Stand-in for requests.Response."""

    def __init__(self, data=_NO_JSON, status=200, text='', headers=None):
        self._data = data
        self.status_code = status
        if text:
            self.text = text
        elif data is not _NO_JSON:
            self.text = json.dumps(data)
        else:
            self.text = ''
        self.headers = headers or {}
        self.closed = False

    def json(self):
        if self._data is _NO_JSON:
            return json.loads(self.text)
        return self._data

    def iter_content(self, chunk_size=1):
        body = self.text.encode()
        for i in range(0, len(body), chunk_size):
            yield body[i:i + chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    """Routes requests by URL substring; the first matching route wins."""

    def __init__(self):
        self.routes = []
        self.calls = []

    def add(self, match, response, method='GET'):
        self.routes.append((method, match, response))

    def _dispatch(self, method, url, params, kwargs):
        self.calls.append({'method': method, 'url': url, 'params': params, **kwargs})
        for route_method, match, response in self.routes:
            if route_method == method and match in url:
                if isinstance(response, Exception):
                    raise response
                if callable(response):
                    return response(url, params)
                return response
        raise requests.ConnectionError(f"no route for {method} {url}")

    def get(self, url, params=None, **kwargs):
        return self._dispatch('GET', url, params, kwargs)

    def post(self, url, params=None, **kwargs):
        return self._dispatch('POST', url, params, kwargs)

    def urls(self, method=None):
        return [c['url'] for c in self.calls if method is None or c['method'] == method]


@pytest.fixture
def fake_session(monkeypatch):
    session = FakeSession()
    monkeypatch.setattr(upstream, 'SESSION', session)
    return session


@pytest.fixture
def tmdb_key(monkeypatch):
    monkeypatch.setattr(settings, 'TMDB_API_KEY', 'test-key')
    monkeypatch.setattr(settings, 'TMDB_BASE_URL', 'https://tmdb.test/3')
    return 'test-key'


@pytest.fixture
def no_tmdb_key(monkeypatch):
    monkeypatch.setattr(settings, 'TMDB_API_KEY', '')


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


EPISODES_PAGE_1 = """
<div class="items">
<article class="item se episodes" id="post-101">
  <div class="poster"><img src="https://img.test/a.jpg" alt="x"></div>
  <div class="data">
    <h3><a href="https://multimovies.test/episodes/breaking-bad-1x1/">Pilot</a></h3>
    <span>S1 E1 / Jan. 20, 2008</span>
    <span class="serie">Breaking Bad</span>
  </div>
</article>
<article class="item se episodes" id="post-102">
  <div class="data">
    <h3><a href="https://multimovies.test/episodes/dark-1x2/">Lies</a></h3>
    <span>S1 E2</span>
    <span class="serie">Dark &amp; Light</span>
  </div>
</article>
<article class="item se episodes" id="post-103">
  <div class="data">
    <h3><a href="https://multimovies.test/episodes/orphan/">No serie</a></h3>
    <span>S1 E9</span>
  </div>
</article>
</div>
"""

EPISODES_PAGE_2 = """
<article class="item se episodes">
  <div class="data">
    <h3><a href="https://multimovies.test/episodes/breaking-bad-1x1-mirror/">Pilot</a></h3>
    <span>S1 E1 / Jan. 20, 2008</span>
    <span class="serie">Breaking Bad</span>
  </div>
</article>
<article class="item se episodes">
  <div class="data">
    <h3><a href="https://multimovies.test/episodes/breaking-bad-1x2/">Cat&#39;s in the Bag</a></h3>
    <span>S1 E2</span>
    <span class="serie">Breaking Bad</span>
  </div>
</article>
"""

EPISODES_PAGE_3 = """
<article class="item se episodes">
  <div class="data">
    <h3><a href="https://multimovies.test/episodes/dark-1x3/">Past and Present</a></h3>
    <span>S1 E3</span>
    <span class="serie">Dark &amp; Light</span>
  </div>
</article>
"""

TOON_MOVIES_PAGE = """
<section class="section movies">
  <ul class="post-lst">
    <li id="post-555" class="post-555 movies type-movies category-anime cast-john-doe directors-jane-roe country-japan letters-s annee-2021">
      <article>
        <img src="//toon.test/poster-w185.jpg">
        <h2 class="entry-title">Spirited Journey</h2>
        <a class="lnk-blk" href="https://toon.test/movies/spirited-journey/"></a>
      </article>
    </li>
    <li id="post-556" class="post-556 movies tag-family">
      <article>
        <img src="https://toon.test/poster2.jpg">
        <h2 class="entry-title">Second Film</h2>
        <a class="lnk-blk" href="https://toon.test/movies/second-film/"></a>
      </article>
    </li>
  </ul>
</section>
<nav class="navigation pagination">
  <div class="nav-links">
    <a class="page-link current" href="#">1</a>
    <a class="page-link" href="/movies/page/2/">2</a>
    <a class="page-link" href="/movies/page/7/">7</a>
    <a class="next" href="/movies/page/2/">NEXT</a>
  </div>
</nav>
"""
