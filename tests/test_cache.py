########################################################################
# File name: test_cache.py
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
import collections.abc
import threading
import unittest

import aiocomponent.cache as cache


class TestLRUDict(unittest.TestCase):
    def setUp(self):
        self.d = cache.LRUDict()

    def tearDown(self):
        del self.d

    def test_is_mutable_mapping(self):
        self.assertIsInstance(
            self.d,
            collections.abc.MutableMapping,
        )

    def test_default_maxsize(self):
        self.assertEqual(self.d.maxsize, 1)

    def test_store_and_retrieve(self):
        key, value = object(), object()
        self.d[key] = value
        self.assertIs(self.d[key], value)

    def test_raise_KeyError_for_unknown_key(self):
        with self.assertRaises(KeyError):
            self.d["foo"]

    def test_maxsize_rejects_non_positive_integers(self):
        with self.assertRaises(ValueError):
            self.d.maxsize = 0

        with self.assertRaises(ValueError):
            self.d.maxsize = -1

    def test_maxsize_accepts_None(self):
        self.d.maxsize = None
        for i in range(1000):
            self.d[i] = i
        self.assertEqual(len(self.d), 1000)

    def test_iter_iterates_over_keys(self):
        self.d.maxsize = 3
        for key in "abc":
            self.d[key] = key.upper()
        self.assertSetEqual(set(self.d), {"a", "b", "c"})

    def test_lru_purge_when_storing(self):
        self.d.maxsize = 3
        self.d["a"] = 1
        self.d["b"] = 2
        self.d["c"] = 3

        # use a, making b the least recently used entry
        self.d["a"]

        self.d["d"] = 4

        self.assertIn("a", self.d)
        self.assertNotIn("b", self.d)
        self.assertIn("c", self.d)
        self.assertIn("d", self.d)

    def test_setting_does_not_count_as_use(self):
        self.d.maxsize = 2
        self.d["a"] = 1
        self.d["b"] = 2
        self.d["a"] = 3
        self.d["c"] = 4

        self.assertNotIn("a", self.d)
        self.assertIn("b", self.d)
        self.assertIn("c", self.d)

    def test_lru_purge_when_decreasing_maxsize(self):
        self.d.maxsize = 4
        for i in range(4):
            self.d[i] = i
        self.d[0]
        self.d[1]

        self.d.maxsize = 2

        self.assertSetEqual(set(self.d), {0, 1})

    def test_delitem(self):
        self.d.maxsize = 2
        self.d["a"] = 1
        del self.d["a"]
        self.assertNotIn("a", self.d)
        self.assertEqual(len(self.d), 0)

        with self.assertRaises(KeyError):
            del self.d["a"]

    def test_clear(self):
        self.d.maxsize = 3
        self.d["a"] = 1
        self.d["b"] = 2
        self.d.clear()
        self.assertEqual(len(self.d), 0)

    def test_fetch_does_not_create_ghost_keys(self):
        self.d.maxsize = 2
        with self.assertRaises(KeyError):
            self.d["a"]
        self.assertEqual(len(self.d), 0)

    def test_get_or_insert_calls_factory_once(self):
        calls = []

        def factory(key):
            calls.append(key)
            return key * 2

        self.d.maxsize = 2
        self.assertEqual(self.d.get_or_insert("x", factory), "xx")
        self.assertEqual(self.d.get_or_insert("x", factory), "xx")
        self.assertEqual(calls, ["x"])

    def test_get_or_insert_marks_entry_as_used(self):
        self.d.maxsize = 2
        self.d["a"] = 1
        self.d["b"] = 2
        self.d.get_or_insert("a", lambda key: 10)
        self.d["c"] = 3
        self.assertIn("a", self.d)
        self.assertNotIn("b", self.d)

    def test_get_or_insert_propagates_factory_exception(self):
        class FooException(Exception):
            pass

        def factory(key):
            raise FooException()

        with self.assertRaises(FooException):
            self.d.get_or_insert("a", factory)

        self.assertNotIn("a", self.d)

    def test_size_bound_under_concurrent_use(self):
        self.d.maxsize = 16

        def worker(offset):
            for i in range(500):
                self.d.get_or_insert((offset, i), lambda key: key)

        threads = [
            threading.Thread(target=worker, args=(n,))
            for n in range(4)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertLessEqual(len(self.d), 16)

    def test_membership_test_does_not_count_as_use(self):
        self.d.maxsize = 2
        self.d["a"] = 1
        self.d["b"] = 2
        self.assertIn("a", self.d)
        self.d["c"] = 3

        self.assertSetEqual(set(self.d), {"b", "c"})

    def test_newest_entry_survives_eviction(self):
        self.d["a"] = 1
        self.d["b"] = 2
        self.assertSetEqual(set(self.d), {"b"})
        self.assertEqual(self.d["b"], 2)
