"""
Tests for PositionSource, PositionSubscription and ReplayPositionProvider.

The device is replaced by FakePositionProvider (see factories.py), which
lets each test decide exactly which fixes and failures arrive.
"""

import asyncio

import pytest
from unittest.mock import MagicMock

from factories import FakePositionProvider, fix
from src.navigation.errors import PermissionDeniedError, PositionUnavailableError
from src.navigation.position import (
    PERMISSION_DENIED,
    POSITION_UNAVAILABLE,
    TIMEOUT,
    PositionFailure,
    PositionOptions,
    PositionSource,
    ReplayPositionProvider,
    classify_failure,
    parse_fix,
)
from src.navigation.storage import LocationStore


class TestParseFix:
    """Tests for parse_fix."""

    def test_flat_fix(self):
        """Top-level latitude/longitude keys are read."""
        assert parse_fix(fix(10, 20)) == (10.0, 20.0)

    def test_nested_coords(self):
        """Browser-style {"coords": {...}} fixes are read."""
        assert parse_fix({"coords": {"latitude": 1.5, "longitude": 2.5}}) == (1.5, 2.5)

    @pytest.mark.parametrize(
        "raw",
        [None, [1, 2], {"latitude": "1", "longitude": 2}, fix(float("nan"), 1), {"coords": 5}],
    )
    def test_malformed_returns_none(self, raw):
        """Anything that is not a valid fix yields None."""
        assert parse_fix(raw) is None


class TestClassifyFailure:
    """Tests for classify_failure."""

    def test_permission_denied(self):
        assert isinstance(classify_failure(PositionFailure(PERMISSION_DENIED)), PermissionDeniedError)

    @pytest.mark.parametrize("code", [POSITION_UNAVAILABLE, TIMEOUT, 99])
    def test_everything_else_is_unavailable(self, code):
        assert isinstance(classify_failure(PositionFailure(code)), PositionUnavailableError)


class TestPositionOptions:
    """Tests for PositionOptions defaults."""

    def test_defaults_require_fresh_fix(self):
        """No cached fixes by default, with an explicit timeout."""
        options = PositionOptions()
        assert options.maximum_age_s == 0.0
        assert options.timeout_s > 0
        assert options.high_accuracy is True


class TestLocate:
    """Tests for PositionSource.locate()."""

    @pytest.mark.asyncio
    async def test_success_returns_coordinate(self, provider):
        """A valid fix is returned as a float tuple."""
        source = PositionSource(provider)
        assert await source.locate() == (48.8566, 2.3522)

    @pytest.mark.asyncio
    async def test_success_persists_last_location(self, provider, store):
        """A successful fix is written to the durable store."""
        source = PositionSource(provider, store=store)
        await source.locate()
        assert store.load_last_location() == (48.8566, 2.3522)

    @pytest.mark.asyncio
    async def test_store_failure_is_swallowed(self, provider, tmp_path):
        """A store that cannot be written does not break locate()."""
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")
        broken_store = LocationStore(blocker / "state.json")
        source = PositionSource(provider, store=broken_store)

        assert await source.locate() == (48.8566, 2.3522)
        assert broken_store.load_last_location() is None

    @pytest.mark.asyncio
    async def test_permission_denied_is_classified(self):
        """Code 1 surfaces as PermissionDeniedError."""
        provider = FakePositionProvider(failure=PositionFailure(PERMISSION_DENIED))
        with pytest.raises(PermissionDeniedError):
            await PositionSource(provider).locate()

    @pytest.mark.asyncio
    async def test_unavailable_is_classified(self):
        """Other codes surface as PositionUnavailableError."""
        provider = FakePositionProvider(failure=PositionFailure(POSITION_UNAVAILABLE))
        with pytest.raises(PositionUnavailableError):
            await PositionSource(provider).locate()

    @pytest.mark.asyncio
    async def test_malformed_fix_is_unavailable(self, store):
        """A fix with NaN coordinates is unavailable and not persisted."""
        provider = FakePositionProvider(fix=fix(float("nan"), 2.0))
        with pytest.raises(PositionUnavailableError):
            await PositionSource(provider, store=store).locate()
        assert store.load_last_location() is None

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        """A provider that never answers times out as unavailable."""

        class SlowProvider(FakePositionProvider):
            async def get_current_position(self, options):
                await asyncio.sleep(10)

        source = PositionSource(SlowProvider(), PositionOptions(timeout_s=0.01))
        with pytest.raises(PositionUnavailableError):
            await source.locate()

    @pytest.mark.asyncio
    async def test_options_are_passed_to_provider(self, provider):
        """The provider receives the configured options."""
        options = PositionOptions(high_accuracy=False, timeout_s=3.0)
        await PositionSource(provider, options).locate()
        assert provider.requests == [options]


class TestPositionSubscription:
    """Tests for the continuous watch."""

    def test_not_started_until_start(self, provider):
        """watch() returns a stopped subscription."""
        subscription = PositionSource(provider).watch(MagicMock())
        assert subscription.active is False
        assert provider.watchers == {}

    def test_delivers_valid_updates(self, provider):
        """Each valid update reaches the callback."""
        received = MagicMock()
        subscription = PositionSource(provider).watch(received)
        subscription.start()

        provider.emit(fix(1, 2))
        provider.emit(fix(3, 4))

        assert [c.args[0] for c in received.call_args_list] == [(1.0, 2.0), (3.0, 4.0)]

    def test_malformed_updates_dropped_subscription_survives(self, provider):
        """A bad update is skipped and later updates still arrive."""
        received = MagicMock()
        subscription = PositionSource(provider).watch(received)
        subscription.start()

        provider.emit({"latitude": None, "longitude": 2})
        provider.emit(fix(5, 6))

        received.assert_called_once_with((5.0, 6.0))
        assert subscription.active is True

    def test_no_delivery_after_cancel(self, provider):
        """Cancelling revokes the watch and blocks late deliveries."""
        received = MagicMock()
        subscription = PositionSource(provider).watch(received)
        subscription.start()
        on_fix, _ = provider.watchers[1]

        subscription.cancel()
        on_fix(fix(1, 2))  # provider delivering late

        received.assert_not_called()
        assert provider.cleared == [1]
        assert subscription.active is False

    def test_start_and_cancel_are_idempotent(self, provider):
        """Repeated start/cancel registers and clears only once."""
        subscription = PositionSource(provider).watch(MagicMock())
        subscription.start()
        subscription.start()
        subscription.cancel()
        subscription.cancel()

        assert len(provider.cleared) == 1

    def test_failures_are_classified(self, provider):
        """Watch failures reach on_error as taxonomy errors."""
        on_error = MagicMock()
        subscription = PositionSource(provider).watch(MagicMock(), on_error)
        subscription.start()

        provider.emit_failure(PositionFailure(PERMISSION_DENIED))

        assert isinstance(on_error.call_args[0][0], PermissionDeniedError)


class TestReplayPositionProvider:
    """Tests for the track replay provider."""

    @pytest.mark.asyncio
    async def test_one_shot_returns_first_fix(self):
        replay = ReplayPositionProvider([fix(1, 2), fix(3, 4)])
        assert await replay.get_current_position(PositionOptions()) == fix(1, 2)

    @pytest.mark.asyncio
    async def test_empty_track_is_unavailable(self):
        with pytest.raises(PositionFailure) as exc_info:
            await ReplayPositionProvider([]).get_current_position(PositionOptions())
        assert exc_info.value.code == POSITION_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_permission_denied_flag(self):
        replay = ReplayPositionProvider([fix(1, 2)], permission_denied=True)
        with pytest.raises(PermissionDeniedError):
            await PositionSource(replay).locate()

    @pytest.mark.asyncio
    async def test_watch_replays_track_in_order(self):
        """All fixes are delivered in track order."""
        replay = ReplayPositionProvider(
            [fix(1, 2), PositionFailure(TIMEOUT), fix(3, 4)], interval_s=0
        )
        received = []
        failures = []
        replay.watch_position(received.append, failures.append, PositionOptions())

        for _ in range(10):
            await asyncio.sleep(0)

        assert received == [fix(1, 2), fix(3, 4)]
        assert [f.code for f in failures] == [TIMEOUT]

    @pytest.mark.asyncio
    async def test_clear_watch_stops_replay(self):
        """Clearing the watch cancels the replay task."""
        replay = ReplayPositionProvider([fix(1, 2), fix(3, 4)], interval_s=0.05)
        received = []
        watch_id = replay.watch_position(received.append, MagicMock(), PositionOptions())

        await asyncio.sleep(0)
        replay.clear_watch(watch_id)
        await asyncio.sleep(0.1)

        assert received == [fix(1, 2)]
