import tmdb_client
from ttl_cache import TTLCache

from conftest import DummyResponse

MOVIE = {
    'id': 603,
    'title': 'The Matrix',
    'overview': 'A hacker learns the truth.',
    'vote_average': 8.217,
    'release_date': '1999-03-30',
    'poster_path': '/matrix.jpg',
    'backdrop_path': '/matrix-bg.jpg',
    'genres': [{'id': 28, 'name': 'Action'}, {'id': 878, 'name': 'Science Fiction'}],
    'runtime': 136,
    'tagline': 'Welcome to the Real World.',
}


def test_image_url(tmdb_key) -> None:
    assert tmdb_client.image_url('/a.jpg') == 'https://image.tmdb.org/t/p/original/a.jpg'
    assert tmdb_client.image_url('/a.jpg', 'w500') == 'https://image.tmdb.org/t/p/w500/a.jpg'
    assert tmdb_client.image_url(None) is None


def test_project_fields_missing_poster_is_none() -> None:
    record = {'id': 1, 'title': 'No Poster'}
    assert tmdb_client.project_fields(record, 'title,poster') == {'title': 'No Poster', 'poster': 'none'}


def test_project_fields_known_and_unknown_names() -> None:
    projected = tmdb_client.project_fields(MOVIE, 'id, rating,year,genres,tagline,budget,,poster')
    assert projected == {
        'id': 603,
        'rating': 8.2,
        'year': '1999',
        'genres': ['Action', 'Science Fiction'],
        'tagline': 'Welcome to the Real World.',
        'budget': 'none',
        'poster': 'https://image.tmdb.org/t/p/original/matrix.jpg',
    }


def test_project_fields_fetches_credits_once() -> None:
    calls = []

    def fetch_credits():
        calls.append(1)
        return {'cast': [{'name': 'Keanu Reeves'}, {'name': 'Carrie-Anne Moss'}]}

    projected = tmdb_client.project_fields(MOVIE, 'cast,title,cast,cast', fetch_credits)
    assert projected['cast'] == ['Keanu Reeves', 'Carrie-Anne Moss']
    assert len(calls) == 1


def test_project_fields_cast_without_credits_is_none() -> None:
    assert tmdb_client.project_fields(MOVIE, 'cast', lambda: None) == {'cast': 'none'}
    assert tmdb_client.project_fields(MOVIE, 'cast') == {'cast': 'none'}


def test_project_fields_uses_embedded_credits() -> None:
    record = {**MOVIE, 'credits': {'cast': [{'name': 'Hugo Weaving'}]}}

    def fail():
        raise AssertionError('credits already embedded')

    assert tmdb_client.project_fields(record, 'cast', fail) == {'cast': ['Hugo Weaving']}


def test_normalize_record() -> None:
    record = tmdb_client.normalize_record(MOVIE)
    assert record['tmdb_id'] == 603
    assert record['rating'] == 8.2
    assert record['poster'].endswith('/original/matrix.jpg')
    assert record['backdrop'].endswith('/original/matrix-bg.jpg')
    assert record['genres'] == ['Action', 'Science Fiction']


def test_details_without_key_fails_fast(no_tmdb_key, fake_session) -> None:
    result = tmdb_client.movie_details(603)
    assert not result.ok
    assert result.error == 'TMDB_API_KEY missing'
    assert fake_session.calls == []


def test_details_are_cached_by_type_and_id(tmdb_key, fake_session, clock) -> None:
    fake_session.add('https://tmdb.test/3/movie/603', DummyResponse(MOVIE))
    cache = TTLCache(60, clock=clock)
    assert tmdb_client.movie_details(603, cache=cache).value['title'] == 'The Matrix'
    assert tmdb_client.movie_details(603, cache=cache).value['title'] == 'The Matrix'
    assert len(fake_session.calls) == 1
    assert 'movie:603' in cache
    assert fake_session.calls[0]['params']['api_key'] == 'test-key'


def test_episode_details_cache_key(tmdb_key, fake_session, clock) -> None:
    fake_session.add('https://tmdb.test/3/tv/1399/season/1/episode/2', DummyResponse({'id': 63057, 'name': 'x'}))
    cache = TTLCache(60, clock=clock)
    assert tmdb_client.tv_episode(1399, 1, 2, cache=cache).ok
    assert 'tv:1399:s1e2' in cache


def test_details_failure_is_not_cached(tmdb_key, fake_session, clock) -> None:
    fake_session.add('https://tmdb.test/3/movie/9', DummyResponse({'success': False}, status=404))
    cache = TTLCache(60, clock=clock)
    result = tmdb_client.movie_details(9, cache=cache)
    assert not result.ok
    assert result.status == 404
    assert len(cache) == 0


def test_find_tmdb_id_prefers_exact_slug(tmdb_key, fake_session, clock) -> None:
    fake_session.add(
        'https://tmdb.test/3/search/tv',
        DummyResponse({'results': [{'id': 1, 'name': 'Dark Matter'}, {'id': 70523, 'name': 'Dark'}]}),
    )
    cache = TTLCache(60, clock=clock)
    assert tmdb_client.find_tmdb_id('tv', 'Dark', cache=cache) == 70523
    assert tmdb_client.find_tmdb_id('tv', 'dark', cache=cache) == 70523
    assert len(fake_session.calls) == 1
    assert fake_session.calls[0]['params']['query'] == 'Dark'


def test_find_tmdb_id_without_results_is_none(tmdb_key, fake_session) -> None:
    fake_session.add('https://tmdb.test/3/search/movie', DummyResponse({'results': []}))
    assert tmdb_client.find_tmdb_id('movie', 'Nothing Like This', year='2020') is None
    assert fake_session.calls[0]['params']['year'] == '2020'


def test_series_overview_skips_specials(tmdb_key, fake_session) -> None:
    fake_session.add(
        'https://tmdb.test/3/tv/1399/season/1',
        DummyResponse({
            'id': 3624,
            'season_number': 1,
            'poster_path': '/s1.jpg',
            'episodes': [
                {'episode_number': 1, 'name': 'Winter Is Coming', 'vote_average': 7.86, 'still_path': '/e1.jpg', 'runtime': 62},
                {'episode_number': 2, 'name': 'The Kingsroad', 'vote_average': 0, 'overview': ''},
            ],
        }),
    )
    fake_session.add('https://tmdb.test/3/tv/1399/season/2', DummyResponse({}, status=500))
    fake_session.add(
        'https://tmdb.test/3/tv/1399',
        DummyResponse({
            'id': 1399,
            'name': 'Game of Thrones',
            'vote_average': 8.456,
            'first_air_date': '2011-04-17',
            'genres': [{'id': 10765, 'name': 'Sci-Fi & Fantasy'}],
            'poster_path': '/got.jpg',
            'seasons': [{'season_number': 0}, {'season_number': 1}, {'season_number': 2}],
        }),
    )

    overview = tmdb_client.series_overview(1399)
    assert overview['tmdb_id'] == 1399
    assert overview['rating'] == 85
    assert overview['genres'] == [10765]
    assert overview['images'] == ['https://image.tmdb.org/t/p/original/got.jpg']
    assert [s['season_number'] for s in overview['seasons']] == [1]
    first, second = overview['seasons'][0]['episodes']
    assert first['meta'] == {'overview': None, 'rating': 79, 'runtime': 62}
    assert first['image'].endswith('/e1.jpg')
    assert second['meta']['rating'] is None
    assert not any('/season/0' in url for url in fake_session.urls())


def test_series_overview_invalid_id(tmdb_key, fake_session) -> None:
    fake_session.add('https://tmdb.test/3/tv/0', DummyResponse({'success': False}, status=404))
    assert tmdb_client.series_overview(0) is None


def test_ratings_round_ties_up() -> None:
    assert tmdb_client._rating({'vote_average': 7.25}, scale=10, digits=0) == 73
    assert tmdb_client.project_fields({'vote_average': 7.25}, 'rating') == {'rating': 7.3}
