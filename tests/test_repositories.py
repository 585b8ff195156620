#!/usr/bin/env python3
"""
Unit tests for the JSON collection repositories.

Run with:
    python -m pytest tests/test_repositories.py
"""
import json
import os
import shutil
import sys
import tempfile
import threading
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.errors import NotFoundError, PersistenceError
from app.repositories import (
    AccountRepository, CollectionRepository, GameRepository, PostRepository,
)


class TmpDirMixin(unittest.TestCase):
    """Creates a fresh temp directory for each test."""

    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _path(self, name: str) -> str:
        return os.path.join(self.tmp, name)


class TestCollectionRepositoryRead(TmpDirMixin):

    def test_missing_file_reads_empty(self):
        repo = PostRepository(self._path('blog-posts.json'))
        self.assertEqual(repo.read_all(), [])

    def test_corrupt_file_reads_empty(self):
        with open(self._path('blog-posts.json'), 'w') as f:
            f.write('{not json')
        self.assertEqual(PostRepository(self._path('blog-posts.json')).read_all(), [])

    def test_wrong_key_reads_empty(self):
        with open(self._path('blog-posts.json'), 'w') as f:
            json.dump({'games': [{'id': 'x'}]}, f)
        self.assertEqual(PostRepository(self._path('blog-posts.json')).read_all(), [])

    def test_non_list_collection_reads_empty(self):
        with open(self._path('blog-posts.json'), 'w') as f:
            json.dump({'posts': {'id': 'x'}}, f)
        self.assertEqual(PostRepository(self._path('blog-posts.json')).read_all(), [])

    def test_in_directory_uses_file_name(self):
        repo = GameRepository.in_directory(self.tmp)
        self.assertEqual(repo.file_path, self._path('games-data.json'))
        self.assertEqual(repo.collection, 'games')

    def test_collection_name_required(self):
        with self.assertRaises(ValueError):
            CollectionRepository(self._path('x.json'))


class TestCollectionRepositoryWrite(TmpDirMixin):

    def _make(self):
        return PostRepository(self._path('blog-posts.json'))

    def test_create_assigns_id_and_timestamps(self):
        record = self._make().create({'title': 'Hello'})
        self.assertEqual(len(record['id']), 16)
        self.assertEqual(record['createdAt'], record['updatedAt'])
        self.assertEqual(record['title'], 'Hello')

    def test_create_ignores_client_id_and_timestamps(self):
        record = self._make().create({'title': 'A', 'id': 'mine', 'createdAt': 'then'})
        self.assertNotEqual(record['id'], 'mine')
        self.assertNotEqual(record['createdAt'], 'then')

    def test_create_prepends_newest_first(self):
        repo = self._make()
        first = repo.create({'title': 'first'})
        second = repo.create({'title': 'second'})
        self.assertEqual([r['id'] for r in repo.read_all()], [second['id'], first['id']])

    def test_file_layout(self):
        repo = self._make()
        repo.create({'title': 'Hello'})
        with open(repo.file_path) as f:
            document = json.load(f)
        self.assertEqual(list(document), ['posts'])
        self.assertEqual(document['posts'][0]['title'], 'Hello')

    def test_update_merges_and_keeps_identity(self):
        repo = self._make()
        record = repo.create({'title': 'A', 'content': 'body'})
        updated = repo.update(record['id'], {'title': 'B', 'id': 'other', 'createdAt': 'x'})
        self.assertEqual(updated['id'], record['id'])
        self.assertEqual(updated['createdAt'], record['createdAt'])
        self.assertEqual(updated['title'], 'B')
        self.assertEqual(updated['content'], 'body')
        self.assertGreaterEqual(updated['updatedAt'], record['updatedAt'])

    def test_update_unknown_raises(self):
        with self.assertRaises(NotFoundError):
            self._make().update('missing', {'title': 'x'})

    def test_delete_removes(self):
        repo = self._make()
        record = repo.create({'title': 'A'})
        repo.delete(record['id'])
        self.assertEqual(repo.read_all(), [])

    def test_delete_unknown_raises_without_writing(self):
        repo = self._make()
        repo.create({'title': 'A'})
        mtime = os.path.getmtime(repo.file_path)
        with patch.object(repo, 'write_all') as write_all:
            with self.assertRaises(NotFoundError):
                repo.delete('missing')
            write_all.assert_not_called()
        self.assertEqual(os.path.getmtime(repo.file_path), mtime)

    def test_write_failure_keeps_previous_file(self):
        repo = self._make()
        first = repo.create({'title': 'A'})
        with patch('app.repositories.collection_repository.os.replace',
                   side_effect=OSError('disk full')):
            with self.assertRaises(PersistenceError):
                repo.create({'title': 'B'})
        self.assertEqual([r['id'] for r in repo.read_all()], [first['id']])
        self.assertEqual(os.listdir(self.tmp), ['blog-posts.json'])

    def test_unserialisable_record_raises_persistence_error(self):
        repo = self._make()
        with self.assertRaises(PersistenceError):
            repo.create({'title': object()})
        self.assertFalse(os.path.exists(repo.file_path))
        self.assertEqual(os.listdir(self.tmp), [])

    def test_non_object_document_reads_empty(self):
        with open(self._path('blog-posts.json'), 'w') as f:
            json.dump([{'id': 'x'}], f)
        self.assertEqual(self._make().read_all(), [])

    def test_mutate_in_place(self):
        repo = self._make()
        record = repo.create({'title': 'A'})

        def apply(records):
            records[0]['title'] = 'changed'

        repo.mutate(apply)
        self.assertEqual(repo.find(record['id'])['title'], 'changed')

    def test_concurrent_creates_lose_nothing(self):
        repo = self._make()

        def worker(n):
            for i in range(10):
                repo.create({'title': f'{n}-{i}'})

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        records = repo.read_all()
        self.assertEqual(len(records), 50)
        self.assertEqual(len({r['id'] for r in records}), 50)


class TestAccountRepository(TmpDirMixin):

    def test_find_by_username_is_case_insensitive(self):
        repo = AccountRepository(self._path('staff-accounts.json'))
        account = repo.create({'username': 'Alice', 'passwordHash': 'x', 'role': 'editor'})
        self.assertEqual(repo.find_by_username('alice')['id'], account['id'])
        self.assertIsNone(repo.find_by_username('bob'))


if __name__ == '__main__':
    unittest.main()
