"""Unit tests for the coalescing statistics refresher."""

import threading

from activity_timer.models import Activity
from activity_timer.refresh import StatisticsRefresher


class TestSynchronousRefresh:
    def test_refresh_now_returns_latest_result(self, store, make_record):
        make_record(seconds=120)
        refresher = StatisticsRefresher(
            store, lambda records: sum(r.total_duration for r in records), background=False
        )
        assert refresher.refresh_now() == 120
        assert refresher.passes == 1
        assert not refresher.is_running

    def test_results_are_published(self, store, make_record):
        published = []
        refresher = StatisticsRefresher(store, len, on_result=published.append, background=False)
        make_record()
        refresher.request()
        assert published == [1]

    def test_only_record_changes_trigger(self, store, make_record):
        refresher = StatisticsRefresher(store, len, background=False)
        refresher.attach()

        store.insert(Activity(name="Reading"))
        store.save()
        assert refresher.passes == 0

        make_record()
        assert refresher.passes == 1
        assert refresher.latest == 1

        refresher.detach()
        make_record()
        assert refresher.passes == 1

    def test_failing_compute_leaves_refresher_idle(self, store):
        def broken(records):
            raise RuntimeError("boom")

        refresher = StatisticsRefresher(store, broken, background=False)
        refresher.request()
        assert not refresher.is_running
        assert refresher.latest is None


class TestCoalescing:
    def test_requests_during_a_pass_fold_into_one(self, store, make_record):
        entered = threading.Event()
        release = threading.Event()
        seen = []

        def compute(records):
            seen.append(len(records))
            entered.set()
            release.wait(5)
            return len(records)

        refresher = StatisticsRefresher(store, compute)
        assert refresher.request() is True
        assert entered.wait(5)

        make_record()
        assert refresher.request() is False
        assert refresher.request() is False
        release.set()

        assert refresher.wait_idle(5)
        assert refresher.passes == 2
        assert seen == [0, 1]
        assert refresher.latest == 1

    def test_new_request_after_idle_starts_a_pass(self, store):
        refresher = StatisticsRefresher(store, len)
        refresher.refresh_now(timeout=5)
        refresher.refresh_now(timeout=5)
        assert refresher.passes == 2
