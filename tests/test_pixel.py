"""Tests for open recording behind the pixel."""

from unittest.mock import Mock

from mailsbe.exceptions import BackendUnavailableError
from mailsbe.pixel import PIXEL_GIF, OpenOutcome, PixelTracker, pixel_headers, cors_headers

from conftest import OWNER


def _create(store, token="tok-1"):
    return store.create(OWNER, "a@x.com", "invoice", token)


class TestPixelBytes:
    """Tests for the canonical pixel."""

    def test_pixel_is_43_byte_gif(self):
        assert len(PIXEL_GIF) == 43
        assert PIXEL_GIF.startswith(b"GIF89a")
        assert PIXEL_GIF.endswith(b";")

    def test_headers_disable_caching(self):
        headers = pixel_headers()

        assert headers["Content-Type"] == "image/gif"
        assert headers["Content-Length"] == "43"
        assert "no-store" in headers["Cache-Control"]
        assert "no-cache" in headers["Cache-Control"]
        assert headers["Pragma"] == "no-cache"
        assert headers["Expires"] == "0"

    def test_cors_headers_use_configured_origin(self):
        headers = cors_headers("https://app.example.com")

        assert headers["Access-Control-Allow-Origin"] == "https://app.example.com"
        assert "OPTIONS" in headers["Access-Control-Allow-Methods"]


class TestPixelTracker:
    """Tests for PixelTracker.record_open."""

    def test_missing_token_skips_lookup(self):
        store = Mock()
        tracker = PixelTracker(store)

        assert tracker.record_open(None) == OpenOutcome.NO_TOKEN
        assert tracker.record_open("   ") == OpenOutcome.NO_TOKEN
        store.find_by_token.assert_not_called()

    def test_unknown_token(self, store):
        tracker = PixelTracker(store)

        assert tracker.record_open("does-not-exist") == OpenOutcome.NOT_FOUND
        assert store.list_for_owner(OWNER) == []

    def test_first_open_marks_seen(self, store, fixed_clock):
        record = _create(store)
        tracker = PixelTracker(store, clock=fixed_clock)

        assert tracker.record_open(record.tracking_token) == OpenOutcome.MARKED

        updated = store.find_by_token(record.tracking_token)
        assert updated.seen is True
        assert updated.seen_at == fixed_clock()

    def test_repeat_open_keeps_first_timestamp(self, store, fixed_clock):
        record = _create(store)
        PixelTracker(store, clock=fixed_clock).record_open(record.tracking_token)

        later = PixelTracker(store)
        assert later.record_open(record.tracking_token) == OpenOutcome.ALREADY_SEEN
        assert store.find_by_token(record.tracking_token).seen_at == fixed_clock()

    def test_lost_race_reports_already_seen(self, memory_store):
        record = _create(memory_store)
        store = Mock(wraps=memory_store)
        store.mark_seen.return_value = None

        outcome = PixelTracker(store).record_open(record.tracking_token)

        assert outcome == OpenOutcome.ALREADY_SEEN

    def test_lookup_failure_is_swallowed(self):
        store = Mock()
        store.find_by_token.side_effect = BackendUnavailableError("timed out")
        logger = Mock()

        outcome = PixelTracker(store, logger=logger).record_open("tok-1")

        assert outcome == OpenOutcome.FAILED
        store.mark_seen.assert_not_called()
        assert logger.log.called or logger.error.called

    def test_update_failure_is_swallowed(self, memory_store):
        record = _create(memory_store)
        store = Mock(wraps=memory_store)
        store.mark_seen.side_effect = RuntimeError("connection reset")

        assert PixelTracker(store).record_open(record.tracking_token) == OpenOutcome.FAILED
        assert memory_store.find_by_token(record.tracking_token).seen is False
