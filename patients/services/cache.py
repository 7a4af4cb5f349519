"""
Read-through cache for patient lookups, list queries and statistics.

The cache is an optimisation only: every backend failure is logged and
swallowed so that an unavailable Redis degrades to always-miss instead of
failing the request.  Writes never update cached entries in place; they
delete them (see :meth:`PatientCache.invalidate_collections`).
"""
from __future__ import annotations

import fnmatch
import logging
import threading
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

from django.conf import settings
from django.core.cache import caches

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = 'patient_mgmt'
DEFAULT_TTLS = {
    'PATIENT': 3600,
    'LIST': 1800,
    'STATS': 7200,
}

# Key under which backends without a native pattern scan keep written keys
KEY_INDEX = '__keys__'
# Key families that pattern deletes target; single-patient keys are deleted by name
INDEXED_FAMILIES = ('patients', 'stats')

_index_lock = threading.Lock()


def canonical_query(options: Mapping[str, Any]) -> str:
    """Stable, order-independent encoding of list-query options.

    ``None`` values are dropped so an absent filter and an explicit
    ``None`` produce the same key.
    """
    items = sorted((str(k), str(v)) for k, v in options.items() if v is not None)
    return urlencode(items)


class PatientCache:
    """Thin wrapper over a Django cache backend.

    ``backend`` may be any object exposing the Django cache API; when it
    also provides ``delete_pattern`` (``django-redis``) wildcard deletes
    are delegated to it, otherwise the wrapper keeps an index of the list and
    statistics keys it wrote.
    """

    def __init__(self, backend=None, namespace: Optional[str] = None, ttls: Optional[Mapping[str, int]] = None):
        conf = getattr(settings, 'PATIENT_CACHE', {})
        self._backend = backend
        self.alias = conf.get('ALIAS', 'default')
        self.namespace = namespace or conf.get('NAMESPACE', DEFAULT_NAMESPACE)
        self.ttls = {**DEFAULT_TTLS, **conf.get('TTL', {}), **(ttls or {})}

    @property
    def backend(self):
        if self._backend is None:
            self._backend = caches[self.alias]
        return self._backend

    # ------------------------------------------------------------------
    # Key construction
    # ------------------------------------------------------------------
    def key(self, *parts) -> str:
        return ':'.join([self.namespace, *(str(p) for p in parts)])

    def patient_key(self, patient_id) -> str:
        return self.key('patient', patient_id)

    def list_key(self, options: Mapping[str, Any]) -> str:
        return self.key('patients', canonical_query(options))

    def stats_key(self) -> str:
        return self.key('stats', 'patients')

    def ttl(self, kind: str) -> int:
        return int(self.ttls[kind])

    # ------------------------------------------------------------------
    # Primitive operations
    # ------------------------------------------------------------------
    def get(self, key: str):
        try:
            value = self.backend.get(key)
        except Exception as exc:
            logger.warning('cache GET failed key=%s error=%s', key, exc)
            return None
        if value is None:
            logger.debug('cache MISS key=%s', key)
        else:
            logger.debug('cache HIT key=%s', key)
        return value

    def set(self, key: str, value, ttl: int) -> None:
        try:
            self.backend.set(key, value, ttl)
            if self._needs_index(key):
                self._remember(key)
            logger.debug('cache SET key=%s ttl=%s', key, ttl)
        except Exception as exc:
            logger.warning('cache SET failed key=%s error=%s', key, exc)

    def delete(self, key: str) -> None:
        try:
            self.backend.delete(key)
            if self._needs_index(key):
                self._forget(key)
            logger.debug('cache DEL key=%s', key)
        except Exception as exc:
            logger.warning('cache DEL failed key=%s error=%s', key, exc)

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching the glob ``pattern``; returns the count."""
        try:
            if self._native_patterns:
                deleted = self.backend.delete_pattern(pattern) or 0
            else:
                deleted = self._delete_indexed(pattern)
        except Exception as exc:
            logger.warning('cache DEL pattern failed pattern=%s error=%s', pattern, exc)
            return 0
        logger.debug('cache DEL pattern=%s deleted=%s', pattern, deleted)
        return deleted

    def invalidate_collections(self) -> None:
        """Drop every cached list query and statistics entry."""
        self.delete_pattern(self.key('patients', '*'))
        self.delete_pattern(self.key('stats', '*'))

    # ------------------------------------------------------------------
    # Key index for backends without a scan primitive
    # ------------------------------------------------------------------
    @property
    def _native_patterns(self) -> bool:
        return callable(getattr(self.backend, 'delete_pattern', None))

    @property
    def _index_key(self) -> str:
        return self.key(KEY_INDEX)

    def _needs_index(self, key: str) -> bool:
        if self._native_patterns:
            return False
        return any(key.startswith(self.key(family, '')) for family in INDEXED_FAMILIES)

    def _remember(self, key: str) -> None:
        with _index_lock:
            index = set(self.backend.get(self._index_key) or ())
            if key not in index:
                index.add(key)
                self.backend.set(self._index_key, sorted(index), None)

    def _forget(self, key: str) -> None:
        with _index_lock:
            index = set(self.backend.get(self._index_key) or ())
            if key in index:
                index.discard(key)
                self.backend.set(self._index_key, sorted(index), None)

    def _delete_indexed(self, pattern: str) -> int:
        with _index_lock:
            index = set(self.backend.get(self._index_key) or ())
            matched = [k for k in index if fnmatch.fnmatchcase(k, pattern)]
            if not matched:
                return 0
            self.backend.delete_many(matched)
            self.backend.set(self._index_key, sorted(index.difference(matched)), None)
        return len(matched)
