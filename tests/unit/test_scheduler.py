"""
Unit tests for the auto-save scheduler (scheduler.py).

Timers are shortened to tens of milliseconds; the tests sleep a few multiples
of the debounce period before inspecting the store.

Tests cover:
- Debounced auto-saves and change coalescing
- Skipping empty and unchanged content
- Pause / resume
- Interval saves
- Manual saves
- Failure handling
"""

import asyncio

import pytest

from report_versioning.autosave.scheduler import AUTO_SAVE_DESCRIPTION, AutoSaveScheduler
from report_versioning.exceptions import StorageWriteError
from report_versioning.storage.backends import InMemoryBackend
from report_versioning.storage.version_store import VersionStore

pytestmark = pytest.mark.asyncio

REPORT_ID = "incident-3167"
DEBOUNCE_MS = 50
SETTLE = 0.25  # seconds; several debounce periods


@pytest.fixture
def make_scheduler(store, author):
    """Factory for schedulers with short timers (interval effectively disabled)."""

    def _make(**kwargs):
        options = {"debounce_ms": DEBOUNCE_MS, "interval_ms": 60_000}
        options.update(kwargs)
        return AutoSaveScheduler(options.pop("store", store), REPORT_ID, author, **options)

    return _make


class TestDebouncedAutoSave:
    """Tests for debounce-triggered saves."""

    @pytest.mark.unit
    async def test_change_is_saved_after_quiet_period(self, store, make_scheduler):
        """Test that a change is persisted once the debounce elapses."""
        async with make_scheduler() as scheduler:
            scheduler.update_content("<p>Initial findings</p>")
            await asyncio.sleep(SETTLE)

        versions = store.get_all_versions(REPORT_ID)
        assert len(versions) == 1
        assert versions[0].is_auto_save is True
        assert versions[0].change_description == AUTO_SAVE_DESCRIPTION
        assert versions[0].version_number == 1
        assert scheduler.last_saved_content == "<p>Initial findings</p>"
        assert scheduler.last_save_time is not None

    @pytest.mark.unit
    async def test_rapid_changes_coalesce_into_one_save(self, store, make_scheduler):
        """Test that a burst of edits produces a single version with the last content."""
        async with make_scheduler() as scheduler:
            for i in range(5):
                scheduler.update_content(f"<p>draft {i}</p>")
            await asyncio.sleep(SETTLE)

        versions = store.get_all_versions(REPORT_ID)
        assert len(versions) == 1
        assert versions[0].html_content == "<p>draft 4</p>"

    @pytest.mark.unit
    async def test_unchanged_content_not_saved(self, store, make_scheduler):
        """Test that content equal to the last save is skipped."""
        async with make_scheduler(initial_content="<p>a</p>") as scheduler:
            scheduler.update_content("<p>a</p>")
            await asyncio.sleep(SETTLE)

        assert store.get_all_versions(REPORT_ID) == []

    @pytest.mark.unit
    async def test_empty_content_not_saved(self, store, make_scheduler):
        """Test that auto-save never stores an empty report."""
        async with make_scheduler(initial_content="<p>a</p>") as scheduler:
            scheduler.update_content("")
            await asyncio.sleep(SETTLE)

        assert store.get_all_versions(REPORT_ID) == []

    @pytest.mark.unit
    async def test_diff_stats_against_previous_version(self, store, make_scheduler):
        """Test that each auto-save records changes against the newest version."""
        async with make_scheduler() as scheduler:
            scheduler.update_content("<p>a</p>")
            await asyncio.sleep(SETTLE)
            scheduler.update_content("<p>a</p>\n<p>b</p>")
            await asyncio.sleep(SETTLE)

        newest, oldest = store.get_all_versions(REPORT_ID)
        assert oldest.diff_stats is None
        assert newest.version_number == 2
        assert newest.diff_stats.additions == 1

    @pytest.mark.unit
    async def test_content_is_sanitized_on_save(self, store, make_scheduler):
        async with make_scheduler() as scheduler:
            scheduler.update_content("<p>ok</p><script>alert(1)</script>")
            await asyncio.sleep(SETTLE)

        assert store.get_all_versions(REPORT_ID)[0].html_content == "<p>ok</p>"


class TestPauseResume:
    """Tests for pausing automatic saves."""

    @pytest.mark.unit
    async def test_pause_then_resume(self, store, make_scheduler):
        """Test that no auto-save happens while paused and one happens after resume."""
        async with make_scheduler() as scheduler:
            scheduler.pause_auto_save()
            assert scheduler.is_paused

            for i in range(5):
                scheduler.update_content(f"<p>paused edit {i}</p>")
            await asyncio.sleep(SETTLE)
            assert store.get_all_versions(REPORT_ID) == []

            scheduler.resume_auto_save()
            assert not scheduler.is_paused
            scheduler.update_content("<p>after resume</p>")
            await asyncio.sleep(SETTLE)

        versions = store.get_all_versions(REPORT_ID)
        assert len(versions) == 1
        assert versions[0].html_content == "<p>after resume</p>"

    @pytest.mark.unit
    async def test_pause_cancels_pending_debounce(self, store, make_scheduler):
        """Test that a change made just before pausing is not saved."""
        async with make_scheduler() as scheduler:
            scheduler.update_content("<p>pending</p>")
            scheduler.pause_auto_save()
            await asyncio.sleep(SETTLE)

        assert store.get_all_versions(REPORT_ID) == []


class TestIntervalAutoSave:
    """Tests for the periodic drift check."""

    @pytest.mark.unit
    async def test_interval_saves_drifted_content_once(self, store, make_scheduler):
        """Test that the interval saves drift and then finds nothing to do."""
        async with make_scheduler(debounce_ms=60_000, interval_ms=40) as scheduler:
            scheduler.update_content("<p>drifted</p>")
            await asyncio.sleep(SETTLE)

        versions = store.get_all_versions(REPORT_ID)
        assert len(versions) == 1
        assert versions[0].is_auto_save is True


class TestManualSave:
    """Tests for user-initiated saves."""

    @pytest.mark.unit
    async def test_manual_save_always_persists(self, store, make_scheduler):
        """Test that manual saves are stored even without changes."""
        async with make_scheduler(initial_content="<p>a</p>") as scheduler:
            first = await scheduler.manual_save("Checkpoint")
            second = await scheduler.manual_save("Checkpoint again")

        assert (first.version_number, second.version_number) == (1, 2)
        assert first.is_auto_save is False
        assert first.change_description == "Checkpoint"
        assert len(store.get_all_versions(REPORT_ID)) == 2

    @pytest.mark.unit
    async def test_manual_save_while_paused(self, store, make_scheduler):
        async with make_scheduler() as scheduler:
            scheduler.pause_auto_save()
            scheduler.update_content("<p>edited</p>")
            version = await scheduler.manual_save("Saved while paused")

        assert version.html_content == "<p>edited</p>"
        assert scheduler.last_saved_content == "<p>edited</p>"

    @pytest.mark.unit
    async def test_manual_save_suppresses_redundant_auto_save(self, store, make_scheduler):
        """Test that a pending debounce finds nothing to save after a manual save."""
        async with make_scheduler() as scheduler:
            scheduler.update_content("<p>edited</p>")
            await scheduler.manual_save("Saved")
            await asyncio.sleep(SETTLE)

        versions = store.get_all_versions(REPORT_ID)
        assert len(versions) == 1
        assert versions[0].is_auto_save is False


class TestFailures:
    """Tests for storage failures."""

    @pytest.mark.unit
    async def test_auto_save_failure_reported_not_raised(self, make_scheduler):
        """Test that failed auto-saves go to on_error and keep the content pending."""
        errors = []
        full_store = VersionStore(InMemoryBackend(capacity_bytes=50))

        async with make_scheduler(store=full_store, on_error=errors.append) as scheduler:
            scheduler.update_content("<p>unsaved</p>")
            await asyncio.sleep(SETTLE)

        assert len(errors) == 1
        assert isinstance(errors[0], StorageWriteError)
        assert scheduler.last_saved_content == ""
        assert scheduler.current_content == "<p>unsaved</p>"
        assert scheduler.is_saving is False

    @pytest.mark.unit
    async def test_manual_save_failure_raises(self, make_scheduler):
        full_store = VersionStore(InMemoryBackend(capacity_bytes=50))

        async with make_scheduler(store=full_store) as scheduler:
            scheduler.update_content("<p>unsaved</p>")
            with pytest.raises(StorageWriteError):
                await scheduler.manual_save("Checkpoint")


class TestCoalescing:
    """Tests for overlapping automatic triggers."""

    @pytest.mark.unit
    async def test_overlapping_triggers_save_once(self, store, make_scheduler):
        """Test that triggers arriving during an in-flight save do not duplicate it."""
        async with make_scheduler() as scheduler:
            scheduler.current_content = "<p>a</p>"
            scheduler._trigger_auto_save()
            scheduler._trigger_auto_save()
            scheduler._trigger_auto_save()
            await asyncio.sleep(SETTLE)

        assert len(store.get_all_versions(REPORT_ID)) == 1
