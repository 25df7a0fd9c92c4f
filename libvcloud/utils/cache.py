# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import time
import threading

__all__ = [
    'TTLCache',
    'SESSION_TTL',
    'VERSION_TTL',
]

# All the time values are in seconds
SESSION_TTL = 25 * 60
VERSION_TTL = 24 * 60 * 60


class TTLCache(object):
    """
    Thread safe key/value store whose entries expire after a fixed time.

    Values are stored and replaced as a whole, so a reader either sees the
    previous value or the new one, never something in between.
    """

    def __init__(self, ttl, clock=time.monotonic):
        """
        :param ttl: Lifetime of an entry in seconds.
        :type ttl: ``float``

        :param clock: Callable returning the current time in seconds.
        :type clock: ``callable``
        """
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries = {}
        self._refresh_locks = {}

    def get(self, key):
        """
        Return the live value stored under ``key`` or ``None``.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires = entry
            if self._clock() >= expires:
                del self._entries[key]
                return None
            return value

    def put(self, key, value, ttl=None):
        ttl = self.ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    def refresh_lock(self, key):
        """
        Return the lock which serialises rebuilding the value of ``key``.

        Callers holding it re-check the cache before doing the work, so
        concurrent misses on one key rebuild the value once.
        """
        with self._lock:
            lock = self._refresh_locks.get(key)
            if lock is None:
                lock = self._refresh_locks[key] = threading.RLock()
            return lock

    def invalidate(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __contains__(self, key):
        return self.get(key) is not None

    def __len__(self):
        with self._lock:
            now = self._clock()
            return len([1 for _, expires in self._entries.values()
                        if now < expires])
