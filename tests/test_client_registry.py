#!/usr/bin/env python3
"""
Unit tests for server/chat/client_registry.py

Tests:
- Capacity and duplicate-username rejection
- Removal compaction and idempotence
- Atomic registration under concurrent logins
"""

import random
import threading
import unittest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from server.chat.client_registry import AddResult, ClientRecord, ClientRegistry


class FakeConnection:
    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return f"FakeConnection({self.name})"


class TestClientRegistry(unittest.TestCase):
    """Single-threaded registry behaviour."""

    def setUp(self):
        self.registry = ClientRegistry(capacity=3)

    def test_add_and_exists(self):
        conn = FakeConnection('a')
        self.assertIs(self.registry.try_add(conn, 'alice'), AddResult.OK)
        self.assertTrue(self.registry.exists('alice'))
        self.assertFalse(self.registry.exists('bob'))
        self.assertEqual(len(self.registry), 1)

    def test_duplicate_username_rejected(self):
        self.registry.try_add(FakeConnection('a'), 'alice')
        self.assertIs(self.registry.try_add(FakeConnection('b'), 'alice'), AddResult.DUPLICATE)
        self.assertEqual(len(self.registry), 1)

    def test_usernames_are_case_sensitive(self):
        self.registry.try_add(FakeConnection('a'), 'alice')
        self.assertIs(self.registry.try_add(FakeConnection('b'), 'Alice'), AddResult.OK)

    def test_full_registry_rejects(self):
        for i in range(3):
            self.assertIs(self.registry.try_add(FakeConnection(i), f'user{i}'), AddResult.OK)
        self.assertIs(self.registry.try_add(FakeConnection(9), 'late'), AddResult.FULL)
        # a full registry reports FULL even for a taken name
        self.assertIs(self.registry.try_add(FakeConnection(9), 'user0'), AddResult.FULL)
        self.assertEqual(len(self.registry), 3)

    def test_remove_compacts_and_keeps_order(self):
        conns = [FakeConnection(i) for i in range(3)]
        for i, conn in enumerate(conns):
            self.registry.try_add(conn, f'user{i}')

        removed = self.registry.remove(conns[1])

        self.assertEqual(removed, ClientRecord(conns[1], 'user1'))
        self.assertEqual(self.registry.snapshot_usernames(), ['user0', 'user2'])
        self.assertEqual(self.registry.connections(), [conns[0], conns[2]])
        # the freed slot is usable again
        self.assertIs(self.registry.try_add(FakeConnection('n'), 'user1'), AddResult.OK)

    def test_remove_is_idempotent(self):
        conn = FakeConnection('a')
        self.registry.try_add(conn, 'alice')
        self.assertIsNotNone(self.registry.remove(conn))
        self.assertIsNone(self.registry.remove(conn))
        self.assertIsNone(self.registry.remove(FakeConnection('never')))
        self.assertEqual(len(self.registry), 0)

    def test_snapshot_is_a_copy(self):
        self.registry.try_add(FakeConnection('a'), 'alice')
        snapshot = self.registry.snapshot_usernames()
        snapshot.append('mallory')
        self.assertEqual(self.registry.snapshot_usernames(), ['alice'])

    def test_for_each_visits_every_record(self):
        for i in range(3):
            self.registry.try_add(FakeConnection(i), f'user{i}')
        seen = []
        self.registry.for_each(lambda record: seen.append(record.username))
        self.assertEqual(sorted(seen), ['user0', 'user1', 'user2'])

    def test_records_are_authenticated(self):
        self.registry.try_add(FakeConnection('a'), 'alice')
        records = []
        self.registry.for_each(records.append)
        self.assertTrue(records[0].authenticated)

    def test_clear(self):
        self.registry.try_add(FakeConnection('a'), 'alice')
        self.registry.try_add(FakeConnection('b'), 'bob')
        cleared = self.registry.clear()
        self.assertEqual([r.username for r in cleared], ['alice', 'bob'])
        self.assertEqual(len(self.registry), 0)

    def test_random_add_remove_keeps_invariants(self):
        rng = random.Random(7)
        registry = ClientRegistry(capacity=5)
        live = {}
        for step in range(500):
            if live and rng.random() < 0.4:
                name = rng.choice(sorted(live))
                registry.remove(live.pop(name))
            else:
                name = f'u{rng.randrange(10)}'
                conn = FakeConnection(step)
                result = registry.try_add(conn, name)
                if result is AddResult.OK:
                    live[name] = conn
            names = registry.snapshot_usernames()
            self.assertLessEqual(len(names), 5)
            self.assertEqual(len(names), len(set(names)))
            self.assertEqual(sorted(names), sorted(live))


class TestClientRegistryConcurrency(unittest.TestCase):
    """Concurrent registration."""

    def _race(self, registry, names):
        results = [None] * len(names)
        barrier = threading.Barrier(len(names))

        def worker(index):
            barrier.wait()
            results[index] = registry.try_add(FakeConnection(index), names[index])

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(len(names))]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results

    def test_same_name_only_one_wins(self):
        registry = ClientRegistry(capacity=50)
        results = self._race(registry, ['alice'] * 20)
        self.assertEqual(results.count(AddResult.OK), 1)
        self.assertEqual(results.count(AddResult.DUPLICATE), 19)
        self.assertEqual(registry.snapshot_usernames(), ['alice'])

    def test_capacity_never_exceeded(self):
        registry = ClientRegistry(capacity=50)
        results = self._race(registry, [f'user{i}' for i in range(80)])
        self.assertEqual(results.count(AddResult.OK), 50)
        self.assertEqual(results.count(AddResult.FULL), 30)
        self.assertEqual(len(registry), 50)


if __name__ == '__main__':
    unittest.main()
