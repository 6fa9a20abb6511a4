"""Tests for share audit events and redaction."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import pytest

from dropshare.sharing.audit import (
    InMemoryShareAuditEmitter,
    LoggingShareAuditEmitter,
    ShareAuditEvent,
    emit_safely,
    redact_token,
)

T = datetime(2030, 1, 1, tzinfo=timezone.utc)


class ExplodingEmitter:
    async def emit(self, event):
        raise ConnectionError('sink down')


class TestRedactToken:
    def test_long_value_keeps_prefix(self):
        assert redact_token('abcdefghijklmnop') == 'abcdefgh...'

    @pytest.mark.parametrize('value', [None, '', 'short'])
    def test_short_or_missing(self, value):
        assert redact_token(value) == '<redacted>'


def test_event_to_dict_is_json_safe():
    event = ShareAuditEvent(
        event_type='share.created', share_prefix='abcdefgh...', size_bytes=5, timestamp=T,
    )
    body = event.to_dict()
    assert json.loads(json.dumps(body)) == {
        'event_type': 'share.created',
        'share_prefix': 'abcdefgh...',
        'detail': '',
        'size_bytes': 5,
        'timestamp': '2030-01-01T00:00:00+00:00',
    }


@pytest.mark.asyncio
async def test_in_memory_emitter_filters_by_type():
    emitter = InMemoryShareAuditEmitter()
    await emitter.emit(ShareAuditEvent(event_type='share.created'))
    await emitter.emit(ShareAuditEvent(event_type='share.denied'))
    assert [e.event_type for e in emitter.find('share.denied')] == ['share.denied']
    assert len(emitter.find()) == 2


@pytest.mark.asyncio
async def test_logging_emitter_writes_event(caplog):
    emitter = LoggingShareAuditEmitter()
    with caplog.at_level(logging.INFO, logger='dropshare.audit'):
        await emitter.emit(ShareAuditEvent(
            event_type='share.expired', share_prefix='abcdefgh...', timestamp=T,
        ))
    [entry] = caplog.records
    assert entry.getMessage() == 'share.expired'
    assert entry.share_prefix == 'abcdefgh...'
    assert entry.event_type == 'share.expired'


@pytest.mark.asyncio
async def test_emit_safely_swallows_sink_failure(caplog):
    with caplog.at_level(logging.ERROR, logger='dropshare.sharing.audit'):
        await emit_safely(ExplodingEmitter(), ShareAuditEvent(event_type='share.created'))
    assert 'Audit emit failed for share.created' in caplog.text
