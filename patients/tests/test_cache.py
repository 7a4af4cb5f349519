from django.core.cache import caches

from patients.services.cache import PatientCache, canonical_query


class BrokenBackend:
    def get(self, key):
        raise ConnectionError('redis down')

    def set(self, key, value, timeout=None):
        raise ConnectionError('redis down')

    def delete(self, key):
        raise ConnectionError('redis down')

    def delete_pattern(self, pattern):
        raise ConnectionError('redis down')


class PatternBackend:
    """Minimal stand-in for django-redis exposing ``delete_pattern``."""

    def __init__(self):
        self.data = {}
        self.patterns = []

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, timeout=None):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)

    def delete_pattern(self, pattern):
        self.patterns.append(pattern)
        return 0


def test_canonical_query_is_order_independent_and_drops_none():
    a = canonical_query({'page': 1, 'search': 'ana', 'min_age': None})
    b = canonical_query({'search': 'ana', 'page': 1})
    assert a == b
    assert ' ' not in canonical_query({'search': 'ana souza'})


def test_keys_are_namespaced():
    cache = PatientCache(backend=caches['default'], namespace='ns')
    assert cache.patient_key('abc') == 'ns:patient:abc'
    assert cache.stats_key() == 'ns:stats:patients'
    assert cache.list_key({'page': 2}).startswith('ns:patients:')


def test_default_ttls():
    cache = PatientCache(backend=caches['default'])
    assert cache.ttl('PATIENT') == 3600
    assert cache.ttl('LIST') == 1800
    assert cache.ttl('STATS') == 7200


def test_failures_are_absorbed():
    cache = PatientCache(backend=BrokenBackend())
    assert cache.get('k') is None
    cache.set('k', {'a': 1}, 10)
    cache.delete('k')
    assert cache.delete_pattern('patient_mgmt:*') == 0
    cache.invalidate_collections()


def test_invalidate_collections_keeps_single_patient_entries():
    cache = PatientCache(backend=caches['default'])
    cache.set(cache.patient_key('p1'), {'id': 'p1'}, 60)
    cache.set(cache.list_key({'page': 1}), {'patients': []}, 60)
    cache.set(cache.list_key({'page': 2}), {'patients': []}, 60)
    cache.set(cache.stats_key(), {'total': 0}, 60)

    cache.invalidate_collections()

    assert cache.get(cache.patient_key('p1')) == {'id': 'p1'}
    assert cache.get(cache.list_key({'page': 1})) is None
    assert cache.get(cache.list_key({'page': 2})) is None
    assert cache.get(cache.stats_key()) is None


def test_delete_pattern_returns_count_from_index():
    cache = PatientCache(backend=caches['default'])
    cache.set(cache.key('patients', 'a'), 1, 60)
    cache.set(cache.key('patients', 'b'), 2, 60)
    assert cache.delete_pattern(cache.key('patients', '*')) == 2
    assert cache.delete_pattern(cache.key('patients', '*')) == 0


def test_native_delete_pattern_is_used_when_available():
    backend = PatternBackend()
    cache = PatientCache(backend=backend, namespace='ns')
    cache.set('ns:patients:x', 1, 60)
    cache.invalidate_collections()
    assert backend.patterns == ['ns:patients:*', 'ns:stats:*']
    # no key index is written for backends that can scan
    assert 'ns:__keys__' not in backend.data


def test_index_tracks_only_collection_keys():
    cache = PatientCache(backend=caches['default'], namespace='ns')
    backend = cache.backend
    cache.set(cache.patient_key('p1'), {'id': 'p1'}, 60)
    assert backend.get('ns:__keys__') is None

    list_key = cache.list_key({'page': 1})
    cache.set(list_key, {'patients': []}, 60)
    cache.set(cache.stats_key(), {'total': 0}, 60)
    assert backend.get('ns:__keys__') == sorted([list_key, cache.stats_key()])

    cache.delete(list_key)
    assert backend.get('ns:__keys__') == [cache.stats_key()]
