import pytest

from focus_flow.prompts import PromptRequest, PromptScheduler


def fetched_at(scheduler: PromptScheduler, elapsed_seconds: int, text: str = "go") -> None:
    request = scheduler.begin(25, elapsed_seconds)
    scheduler.succeed(request, text)


class TestStartOfRun:
    def test_fetch_when_entering_running_at_zero(self):
        assert PromptScheduler().should_fetch(0, entering_running=True) is True

    def test_no_fetch_at_zero_without_entering(self):
        assert PromptScheduler().should_fetch(0, entering_running=False) is False

    def test_no_fetch_at_zero_with_cached_message(self):
        scheduler = PromptScheduler()
        fetched_at(scheduler, 0)
        assert scheduler.should_fetch(0, entering_running=True) is False

    def test_refetch_at_zero_after_error(self):
        scheduler = PromptScheduler()
        scheduler.begin(25, 0)
        scheduler.fail("boom")
        assert scheduler.should_fetch(0, entering_running=True) is True


class TestInterval:
    def test_schedule_over_first_interval(self):
        scheduler = PromptScheduler(interval_minutes=5)
        fetched_at(scheduler, 0)
        due = [s for s in range(1, 300) if scheduler.should_fetch(s)]
        assert due == []
        assert scheduler.should_fetch(300) is True

    def test_same_mark_not_refetched_after_success(self):
        scheduler = PromptScheduler(interval_minutes=5)
        fetched_at(scheduler, 300)
        assert scheduler.last_fetch_minutes == 5
        assert scheduler.should_fetch(301) is False
        assert scheduler.should_fetch(600) is True

    def test_failed_mark_waits_for_next_mark(self):
        scheduler = PromptScheduler(interval_minutes=5)
        fetched_at(scheduler, 0, "first")
        scheduler.begin(25, 300)
        scheduler.fail("boom")
        assert scheduler.should_fetch(301) is False
        assert scheduler.should_fetch(600) is True
        assert scheduler.message == "first"
        assert scheduler.error == "boom"

    def test_single_flight(self):
        scheduler = PromptScheduler(interval_minutes=5)
        scheduler.begin(25, 0)
        assert scheduler.in_flight
        assert scheduler.should_fetch(300) is False
        assert scheduler.should_fetch(0, entering_running=True) is False


def test_begin_builds_request():
    request = PromptScheduler().begin(25, 359)
    assert request == PromptRequest(duration_minutes=25, elapsed_minutes=5)


def test_success_clears_error():
    scheduler = PromptScheduler()
    scheduler.begin(25, 0)
    scheduler.fail("boom")
    fetched_at(scheduler, 0, "hello")
    assert scheduler.error is None
    assert scheduler.message == "hello"


def test_clear_resets_everything():
    scheduler = PromptScheduler()
    fetched_at(scheduler, 300)
    scheduler.clear()
    assert scheduler.message is None
    assert scheduler.last_fetch_minutes == 0
    assert not scheduler.in_flight


def test_invalid_interval():
    with pytest.raises(ValueError):
        PromptScheduler(interval_minutes=0)
