# lru_cache.py -- Simple LRU cache for gitreader
# Copyright (C) 2006, 2008 Canonical Ltd
# Copyright (C) 2022 Jelmer Vernooij <jelmer@jelmer.uk>
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# gitreader is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""A size-bounded least-recently-used cache."""

__all__ = ["LRUSizeCache"]

import threading
from collections import OrderedDict
from collections.abc import Callable
from typing import Generic, TypeVar

from .log_utils import getLogger

logger = getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class LRUSizeCache(Generic[K, V]):
    """An LRU cache that evicts by the total size of its values.

    Every method takes the internal lock, so a single cache may be shared
    between threads.
    """

    def __init__(
        self,
        max_size: int = 1024 * 1024,
        after_cleanup_size: int | None = None,
        compute_size: Callable[[V], int] | None = None,
    ) -> None:
        """Create a new LRUSizeCache.

        Args:
          max_size: The max number of bytes to store before we start
            clearing out entries.
          after_cleanup_size: After cleaning up, shrink everything to this
            size. Defaults to 80% of max_size.
          compute_size: A function to compute the size of the values. Defaults
            to len().
        """
        if compute_size is None:
            compute_size = len  # type: ignore[assignment]
        self._compute_size: Callable[[V], int] = compute_size  # type: ignore[assignment]
        self._lock = threading.Lock()
        self._cache: OrderedDict[K, tuple[V, int]] = OrderedDict()
        self._value_size = 0
        self._update_max_size(max_size, after_cleanup_size=after_cleanup_size)

    def _update_max_size(self, max_size: int, after_cleanup_size: int | None) -> None:
        self._max_size = max_size
        if after_cleanup_size is None:
            self._after_cleanup_size = self._max_size * 8 // 10
        else:
            self._after_cleanup_size = min(after_cleanup_size, self._max_size)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._cache

    def __getitem__(self, key: K) -> V:
        with self._lock:
            value, _size = self._cache[key]
            self._cache.move_to_end(key)
            return value

    def get(self, key: K, default: V | None = None) -> V | None:
        """Return the value for key, or default if it is not cached."""
        with self._lock:
            try:
                value, _size = self._cache[key]
            except KeyError:
                return default
            self._cache.move_to_end(key)
            return value

    def add(self, key: K, value: V) -> None:
        """Add a new value to the cache.

        A value larger than the whole cache is not stored.

        Args:
          key: The key to store it under
          value: The object to store
        """
        value_len = self._compute_size(value)
        with self._lock:
            old = self._cache.pop(key, None)
            if old is not None:
                self._value_size -= old[1]
            if value_len >= self._after_cleanup_size:
                logger.debug(
                    "Not caching %r: %d bytes exceeds cache size", key, value_len
                )
                return
            self._cache[key] = (value, value_len)
            self._value_size += value_len
            if self._value_size > self._max_size:
                self._cleanup()

    def __setitem__(self, key: K, value: V) -> None:
        self.add(key, value)

    def _cleanup(self) -> None:
        """Drop the least recently used entries down to after_cleanup_size."""
        while self._value_size > self._after_cleanup_size:
            key, (_value, size) = self._cache.popitem(last=False)
            self._value_size -= size
            logger.debug("Evicted %r from cache", key)

    def clear(self) -> None:
        """Clear out all of the cache."""
        with self._lock:
            self._cache.clear()
            self._value_size = 0

    @property
    def total_size(self) -> int:
        """Sum of the sizes of all cached values."""
        with self._lock:
            return self._value_size

    def keys(self) -> list[K]:
        """Get the list of keys currently cached, least recent first."""
        with self._lock:
            return list(self._cache)
