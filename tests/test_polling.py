"""
Booking Lifecycle — Work Order Polling State Machine Tests

Tests:
  - Settle wait always precedes the first read
  - Empty key set / unmatched key fail without a buffer wait
  - Identity check uses OR matching for endpoints and groups
  - Status 7 on first read succeeds with a single read
  - Non-active first read waits (buffer + 5)s and re-reads exactly once
  - Missing buffer config fails without the second wait
  - Transition history and illegal transitions
"""

import os
import sys
import unittest
from datetime import datetime

_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from confirm.params import BookingParameters
from confirm.polling import (
    COLUMN_DESTINATION, COLUMN_DESTINATION_GROUP, COLUMN_JOB_NAME,
    COLUMN_SOURCE, COLUMN_SOURCE_GROUP, COLUMN_STATUS,
    KEY_COLUMN_CHAIN_ID, KEY_COLUMN_WORK_ORDER,
    InvalidTransition, PollState, WorkOrderPoller,
)


def make_params(**overrides) -> BookingParameters:
    fields = dict(
        chain_id="C1", work_order="W1", job_name="J",
        source="A", destination="B",
        source_group="GA", destination_group="GB",
        platform="Test",
        start=datetime(2025, 4, 8, 10, 0, 0),
        end=datetime(2025, 4, 8, 10, 5, 0),
        endpoint="http://booking.test:8200",
    )
    fields.update(overrides)
    return BookingParameters(**fields)


def row_cells(source="A", destination="B", job_name="J", source_group="GA", destination_group="GB"):
    return {
        COLUMN_SOURCE: source,
        COLUMN_DESTINATION: destination,
        COLUMN_JOB_NAME: job_name,
        COLUMN_SOURCE_GROUP: source_group,
        COLUMN_DESTINATION_GROUP: destination_group,
    }


class FakeStatusTable:
    """
    rows: {key: (chain_id, work_order, cells)}
    statuses: status returned on each successive row read (last repeats)
    """

    def __init__(self, rows=None, statuses=(7,), wait_config=None):
        self.rows = rows if rows is not None else {"k1": ("C1", "W1", row_cells())}
        self.statuses = list(statuses)
        self.wait_config = wait_config
        self.row_reads = []
        self.wait_config_reads = 0

    def fetch_row_keys(self):
        return list(self.rows)

    def fetch_key_column(self, column, key):
        chain_id, work_order, _ = self.rows[key]
        if column == KEY_COLUMN_CHAIN_ID:
            return chain_id
        if column == KEY_COLUMN_WORK_ORDER:
            return work_order
        return None

    def fetch_row(self, key):
        self.row_reads.append(key)
        _, _, cells = self.rows[key]
        row = dict(cells)
        row[COLUMN_STATUS] = self.statuses[min(len(self.row_reads), len(self.statuses)) - 1]
        return row

    def fetch_wait_config_seconds(self):
        self.wait_config_reads += 1
        return self.wait_config


def run_poller(table, params=None, **kwargs):
    sleeps = []
    poller = WorkOrderPoller(params or make_params(), table, sleep_fn=sleeps.append, **kwargs)
    return poller.run(), sleeps


class TestSettleWait(unittest.TestCase):

    def test_settle_wait_before_first_read(self):
        order = []

        class OrderedTable(FakeStatusTable):
            def fetch_row_keys(self):
                order.append("keys")
                return super().fetch_row_keys()

        table = OrderedTable()
        poller = WorkOrderPoller(make_params(), table, sleep_fn=lambda s: order.append(("sleep", s)))
        poller.run()
        self.assertEqual(order[0], ("sleep", 11.0))
        self.assertEqual(order[1], "keys")

    def test_custom_settle_seconds(self):
        report, sleeps = run_poller(FakeStatusTable(), settle_seconds=2)
        self.assertEqual(sleeps, [2])
        self.assertTrue(report.succeeded)


class TestLookupFailures(unittest.TestCase):

    def test_empty_key_set_fails_without_buffer_wait(self):
        table = FakeStatusTable(rows={}, wait_config=10)
        report, sleeps = run_poller(table)
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertIsNone(report.buffer_wait)
        self.assertEqual(sleeps, [11.0])
        self.assertEqual(report.row_reads, 0)
        self.assertEqual(table.wait_config_reads, 0)

    def test_no_matching_key_fails(self):
        table = FakeStatusTable(rows={
            "k1": ("C9", "W1", row_cells()),
            "k2": ("C1", "W9", row_cells()),
        }, wait_config=10)
        report, sleeps = run_poller(table)
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertIn("no row", report.reason)
        self.assertEqual(table.row_reads, [])
        self.assertIsNone(report.buffer_wait)

    def test_first_matching_key_used(self):
        table = FakeStatusTable(rows={
            "k1": ("C0", "W0", row_cells()),
            "k2": ("C1", "W1", row_cells()),
            "k3": ("C1", "W1", row_cells(job_name="other")),
        })
        report, _ = run_poller(table)
        self.assertTrue(report.succeeded)
        self.assertEqual(report.key, "k2")

    def test_missing_key_columns_do_not_match(self):
        table = FakeStatusTable(rows={"k1": (None, None, row_cells())})
        report, _ = run_poller(table)
        self.assertEqual(report.state, PollState.FAILURE)


class TestIdentityCheck(unittest.TestCase):

    def test_only_destination_matches_passes(self):
        table = FakeStatusTable(rows={"k1": ("C1", "W1", row_cells(source="X"))})
        report, _ = run_poller(table)
        self.assertTrue(report.succeeded)

    def test_only_source_matches_passes(self):
        table = FakeStatusTable(rows={"k1": ("C1", "W1", row_cells(destination="Y"))})
        report, _ = run_poller(table)
        self.assertTrue(report.succeeded)

    def test_neither_endpoint_matches_fails_without_wait(self):
        table = FakeStatusTable(rows={"k1": ("C1", "W1", row_cells(source="X", destination="Y"))},
                                statuses=(3,), wait_config=10)
        report, sleeps = run_poller(table)
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertIn("source nor destination", report.reason)
        self.assertEqual(sleeps, [11.0])
        self.assertEqual(table.wait_config_reads, 0)

    def test_job_name_must_match_exactly(self):
        table = FakeStatusTable(rows={"k1": ("C1", "W1", row_cells(job_name="j"))})
        report, _ = run_poller(table)
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertIn("job name", report.reason)

    def test_only_destination_group_matches_passes(self):
        table = FakeStatusTable(rows={"k1": ("C1", "W1", row_cells(source_group="other"))})
        report, _ = run_poller(table)
        self.assertTrue(report.succeeded)

    def test_neither_group_matches_fails(self):
        table = FakeStatusTable(rows={
            "k1": ("C1", "W1", row_cells(source_group="x", destination_group="y")),
        })
        report, _ = run_poller(table)
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertIn("group", report.reason)


class TestFirstCheck(unittest.TestCase):

    def test_active_on_first_read(self):
        table = FakeStatusTable(statuses=(7,), wait_config=10)
        report, sleeps = run_poller(table)
        self.assertEqual(report.state, PollState.SUCCESS)
        self.assertEqual(report.row_reads, 1)
        self.assertEqual(sleeps, [11.0])
        self.assertIsNone(report.buffer_wait)
        self.assertEqual(table.wait_config_reads, 0)

    def test_status_as_text(self):
        report, _ = run_poller(FakeStatusTable(statuses=("7",)))
        self.assertTrue(report.succeeded)

    def test_accepted_on_first_read_is_not_final(self):
        table = FakeStatusTable(statuses=(1, 2), wait_config=10)
        report, sleeps = run_poller(table)
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertEqual(report.row_reads, 2)
        self.assertEqual(sleeps, [11.0, 15.0])

    def test_unreadable_status_fails(self):
        table = FakeStatusTable(statuses=("pending",), wait_config=10)
        report, sleeps = run_poller(table)
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertIn("not an integer", report.reason)
        self.assertEqual(sleeps, [11.0])

    def test_sequence_rows_supported(self):
        class ListTable(FakeStatusTable):
            def fetch_row(self, key):
                cells = super().fetch_row(key)
                return [cells.get(i) for i in range(19)]

        report, _ = run_poller(ListTable(statuses=(7,)))
        self.assertTrue(report.succeeded)


class TestSecondCheck(unittest.TestCase):

    def test_waits_buffer_plus_margin_then_accepted(self):
        table = FakeStatusTable(statuses=(3, 1), wait_config=10)
        report, sleeps = run_poller(table)
        self.assertEqual(report.state, PollState.SUCCESS)
        self.assertEqual(sleeps, [11.0, 15.0])
        self.assertEqual(report.buffer_wait, 15.0)
        self.assertEqual(report.row_reads, 2)

    def test_active_after_wait(self):
        report, _ = run_poller(FakeStatusTable(statuses=(3, 7), wait_config=4))
        self.assertTrue(report.succeeded)
        self.assertEqual(report.buffer_wait, 9.0)

    def test_other_status_after_wait_fails(self):
        report, _ = run_poller(FakeStatusTable(statuses=(3, 3), wait_config=10))
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertEqual(report.statuses, [3, 3])

    def test_exactly_one_re_read(self):
        # Would become active on a third read, but there is none
        table = FakeStatusTable(statuses=(3, 3, 7), wait_config=10)
        report, sleeps = run_poller(table)
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertEqual(len(table.row_reads), 2)
        self.assertEqual(len(sleeps), 2)

    def test_zero_buffer_waits_margin_only(self):
        report, sleeps = run_poller(FakeStatusTable(statuses=(3, 7), wait_config=0))
        self.assertTrue(report.succeeded)
        self.assertEqual(sleeps[-1], 5.0)

    def test_custom_margin(self):
        report, sleeps = run_poller(FakeStatusTable(statuses=(3, 7), wait_config=10), margin_seconds=2)
        self.assertEqual(sleeps, [11.0, 12.0])

    def test_missing_buffer_config_fails_without_second_wait(self):
        table = FakeStatusTable(statuses=(3, 7), wait_config=None)
        report, sleeps = run_poller(table)
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertIn("buffer time", report.reason)
        self.assertEqual(sleeps, [11.0])
        self.assertIsNone(report.buffer_wait)
        self.assertEqual(report.row_reads, 1)

    def test_sentinel_buffer_config_fails(self):
        report, sleeps = run_poller(FakeStatusTable(statuses=(3, 7), wait_config=-1))
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertEqual(sleeps, [11.0])

    def test_empty_status_waits_for_buffer(self):
        report, sleeps = run_poller(FakeStatusTable(statuses=(None, 7), wait_config=10))
        self.assertTrue(report.succeeded)
        self.assertEqual(report.statuses, [None, 7])

    def test_empty_string_status_fails_without_buffer_wait(self):
        table = FakeStatusTable(statuses=("", 7), wait_config=10)
        report, sleeps = run_poller(table)
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertIn("not an integer", report.reason)
        self.assertEqual(sleeps, [11.0])
        self.assertIsNone(report.buffer_wait)
        self.assertEqual(table.wait_config_reads, 0)

    def test_row_gone_on_re_read_fails(self):
        class VanishingTable(FakeStatusTable):
            def fetch_row(self, key):
                row = super().fetch_row(key)
                return row if len(self.row_reads) == 1 else None

        report, _ = run_poller(VanishingTable(statuses=(3, 7), wait_config=10))
        self.assertEqual(report.state, PollState.FAILURE)
        self.assertIn("disappeared", report.reason)


class TestEndToEndScenarios(unittest.TestCase):

    def test_active_immediately(self):
        table = FakeStatusTable(
            rows={"k1": ("C1", "W1", row_cells(source="A", destination="B", job_name="J"))},
            statuses=(7,),
        )
        report, sleeps = run_poller(table)
        self.assertTrue(report.succeeded)
        self.assertEqual(report.row_reads, 1)
        self.assertEqual(
            [(f, t) for f, t, _ in report.history],
            [("initial", "settling"), ("settling", "first_check"), ("first_check", "success")],
        )

    def test_accepted_after_fifteen_second_wait(self):
        table = FakeStatusTable(statuses=(3, 1), wait_config=10)
        report, sleeps = run_poller(table)
        self.assertTrue(report.succeeded)
        self.assertEqual(sleeps, [11.0, 15.0])
        self.assertEqual(
            [t for _, t, _ in report.history],
            ["settling", "first_check", "awaiting_buffer", "second_check", "success"],
        )


class TestStateMachine(unittest.TestCase):

    def test_illegal_transition_raises(self):
        poller = WorkOrderPoller(make_params(), FakeStatusTable(), sleep_fn=lambda s: None)
        with self.assertRaises(InvalidTransition):
            poller._transition(PollState.SUCCESS)

    def test_terminal_after_run(self):
        report, _ = run_poller(FakeStatusTable())
        self.assertTrue(report.is_terminal)

    def test_run_resets_report(self):
        table = FakeStatusTable(statuses=(7,))
        poller = WorkOrderPoller(make_params(), table, sleep_fn=lambda s: None)
        first = poller.run()
        second = poller.run()
        self.assertIsNot(first, second)
        self.assertEqual(second.row_reads, 1)

    def test_observer_receives_events(self):
        events = []

        class Observer:
            def on_poll_transition(self, from_state, to_state, reason):
                events.append(("transition", to_state))

            def on_wait(self, phase, seconds):
                events.append(("wait", phase, seconds))

        poller = WorkOrderPoller(
            make_params(), FakeStatusTable(statuses=(3, 1), wait_config=10),
            sleep_fn=lambda s: None, observer=Observer(),
        )
        poller.run()
        self.assertIn(("wait", "settle", 11.0), events)
        self.assertIn(("wait", "buffer", 15.0), events)
        self.assertEqual(events[-1], ("transition", "success"))

    def test_report_to_dict(self):
        report, _ = run_poller(FakeStatusTable(statuses=(3, 1), wait_config=10))
        d = report.to_dict()
        self.assertEqual(d["state"], "success")
        self.assertEqual(d["row_reads"], 2)
        self.assertEqual(d["buffer_wait"], 15.0)


if __name__ == "__main__":
    unittest.main()
