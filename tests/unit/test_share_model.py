"""Tests for the share record model and identifier helpers."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from dropshare.sharing.model import (
    ShareRecord,
    blob_key_for,
    clean_file_name,
    generate_share_id,
)

T = datetime(2030, 1, 1, tzinfo=timezone.utc)


def test_share_ids_are_urlsafe_and_unique():
    ids = {generate_share_id() for _ in range(500)}
    assert len(ids) == 500
    for share_id in ids:
        assert re.fullmatch(r'[A-Za-z0-9_-]{22}', share_id)


def test_blob_key_is_hashed_and_stable():
    key = blob_key_for('share-id')
    assert key == blob_key_for('share-id')
    assert key.startswith('blobs/')
    assert 'share-id' not in key
    assert blob_key_for('other') != key


class TestCleanFileName:
    def test_strips_posix_directories(self):
        assert clean_file_name('../../etc/passwd') == 'passwd'

    def test_strips_windows_directories(self):
        assert clean_file_name('C:\\Users\\me\\report.pdf') == 'report.pdf'

    def test_empty_results(self):
        assert clean_file_name(None) == ''
        assert clean_file_name('') == ''
        assert clean_file_name('dir/') == ''
        assert clean_file_name('..') == ''


class TestShareRecord:
    def _record(self, **overrides):
        fields = dict(
            id='id-1', original_name='a.txt', size_bytes=3,
            blob_key='blobs/abc', expires_at=T + timedelta(days=1), created_at=T,
        )
        fields.update(overrides)
        return ShareRecord(**fields)

    def test_password_required_tracks_hash(self):
        assert not self._record().password_required
        assert self._record(password_hash='$2b$04$x').password_required

    def test_row_round_trip(self):
        record = self._record(
            password_hash='$2b$04$x', download_count=2, last_accessed_at=T,
        )
        assert ShareRecord.from_row(record.to_row()) == record

    def test_from_row_parses_postgrest_timestamps(self):
        row = {
            'id': 'id-1', 'original_name': 'a.txt', 'size_bytes': '3',
            'blob_key': 'blobs/abc',
            'expires_at': '2030-01-02T00:00:00Z',
            'created_at': '2030-01-01T00:00:00',
            'download_count': None,
            'content_type': None,
        }
        record = ShareRecord.from_row(row)
        assert record.expires_at == T + timedelta(days=1)
        assert record.created_at.tzinfo is not None
        assert record.download_count == 0
        assert record.content_type == 'application/octet-stream'
        assert record.sender_name == 'Anonymous'
        assert record.last_accessed_at is None

    def test_copy_is_independent(self):
        record = self._record()
        clone = record.copy()
        clone.download_count = 9
        assert record.download_count == 0
