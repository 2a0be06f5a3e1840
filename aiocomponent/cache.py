########################################################################
# File name: cache.py
# This file is part of: aiocomponent
#
# LICENSE
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Lesser General Public License as
# published by the Free Software Foundation, either version 3 of the
# License, or (at your option) any later version.
#
# This program is distributed in the hope that it will be useful, but
# WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public
# License along with this program.  If not, see
# <http://www.gnu.org/licenses/>.
#
########################################################################
"""
:mod:`~aiocomponent.cache` --- Bounded caches
#############################################

.. autoclass:: LRUDict

"""

import collections
import collections.abc
import threading


class LRUDict(collections.abc.MutableMapping):
    """
    Dictionary holding at most :attr:`maxsize` entries, evicting the least
    recently used entry first.

    :param maxsize: Initial value for :attr:`maxsize`.

    Reading an entry (item access or :meth:`get_or_insert`) counts as use,
    storing a value does not, and neither does a membership test.

    Every operation takes an internal lock, so one instance can be shared by
    threads; the process-wide JID cache (:func:`aiocomponent.structs.jid`)
    relies on this.

    .. autoattribute:: maxsize

    .. automethod:: get_or_insert
    """

    def __init__(self, maxsize=1, **kwargs):
        super().__init__(**kwargs)
        self._lock = threading.Lock()
        # least recently used first
        self._entries = collections.OrderedDict()
        self._maxsize = 1
        self.maxsize = maxsize

    def _evict(self):
        if self._maxsize is None:
            return
        while len(self._entries) > self._maxsize:
            self._entries.popitem(last=False)

    def _use(self, key):
        value = self._entries[key]
        self._entries.move_to_end(key)
        return value

    def _put(self, key, value):
        # updating an entry leaves its position alone
        new = key not in self._entries
        self._entries[key] = value
        if new:
            self._evict()

    @property
    def maxsize(self):
        """
        Upper bound for the number of entries; excess entries are evicted as
        soon as it is lowered. :data:`None` disables the bound, which must
        not be done for caches keyed by remote input.
        """
        return self._maxsize

    @maxsize.setter
    def maxsize(self, value):
        if value is not None and value <= 0:
            raise ValueError("maxsize must be positive integer or None")
        with self._lock:
            self._maxsize = value
            self._evict()

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key):
        with self._lock:
            return key in self._entries

    def __iter__(self):
        with self._lock:
            return iter(list(self._entries))

    def __getitem__(self, key):
        with self._lock:
            return self._use(key)

    def __setitem__(self, key, value):
        with self._lock:
            self._put(key, value)

    def __delitem__(self, key):
        with self._lock:
            del self._entries[key]

    def get_or_insert(self, key, factory):
        """
        Return the entry for `key` and mark it as used. A missing entry is
        created by calling `factory` with `key`; if it raises, the exception
        propagates and nothing is stored.

        The whole operation is atomic with respect to other threads.
        """
        with self._lock:
            try:
                return self._use(key)
            except KeyError:
                pass
            value = factory(key)
            self._put(key, value)
            return value

    def clear(self):
        with self._lock:
            self._entries.clear()
