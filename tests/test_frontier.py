"""
Frontier and Progress Channel Tests
"""

import pytest
from unittest.mock import MagicMock

from linkcrawler.crawler.frontier import Frontier
from linkcrawler.storage.models import URLRecord
from linkcrawler.utils.progress import ProgressChannel


def records(*urls):
    return [URLRecord(url=url, id=i) for i, url in enumerate(urls, start=1)]


def test_load_replaces_working_set():
    frontier = Frontier()
    frontier.load(records("a", "b"))
    frontier.load(records("c"))

    assert [r.url for r in frontier.snapshot()] == ["c"]
    assert len(frontier) == 1


def test_load_respects_limit_and_exclusions():
    frontier = Frontier()
    frontier.exclude("a")

    loaded = frontier.load(records("a", "b", "c", "d"), limit=2)

    assert loaded == 2
    assert [r.url for r in frontier.snapshot()] == ["b", "c"]


def test_discard_and_empty():
    frontier = Frontier()
    frontier.load(records("a"))

    assert frontier.discard("a").url == "a"
    assert frontier.discard("a") is None
    assert frontier.is_empty()
    assert len(frontier) == 0


def test_exclude_removes_pending_url():
    frontier = Frontier()
    frontier.load(records("a", "b"))
    frontier.exclude("b")

    assert [r.url for r in frontier.snapshot()] == ["a"]
    assert frontier.get_stats() == {'pending': 1, 'excluded': 1}


def test_progress_history_is_bounded():
    channel = ProgressChannel(max_history=2)
    for i in range(5):
        channel.emit(f"message {i}")

    assert channel.recent() == ["message 3", "message 4"]
    assert channel.recent(1) == ["message 4"]


def test_progress_callback_errors_are_contained():
    callback = MagicMock(side_effect=RuntimeError("sink gone"))
    channel = ProgressChannel(callback=callback)

    channel.emit("Found 3 links on http://site.test/.")

    callback.assert_called_once_with("Found 3 links on http://site.test/.")
    assert channel.recent() == ["Found 3 links on http://site.test/."]


def test_progress_zero_history_keeps_nothing():
    callback = MagicMock()
    channel = ProgressChannel(max_history=0, callback=callback)

    channel.emit("Found 0 links on http://site.test/.")

    assert channel.recent() == []
    callback.assert_called_once_with("Found 0 links on http://site.test/.")


def test_progress_rejects_negative_history():
    with pytest.raises(ValueError):
        ProgressChannel(max_history=-1)
