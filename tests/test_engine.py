"""Tests for batch orchestration."""

import asyncio

import pytest

from statement_recon.matching.engine import CancellationToken, ReconciliationEngine
from statement_recon.models.transaction import BatchProgress

from conftest import make_candidate, make_item, make_transaction


@pytest.fixture
def engine(config):
    config.matching.chunk_size = 2
    return ReconciliationEngine(config)


def _batch(count):
    return [
        make_transaction(description=f"LINHA {n}", amount_minor=100 + n, row_number=n)
        for n in range(1, count + 1)
    ]


class TestRun:
    def test_items_follow_statement_order(self, engine, index):
        transactions = _batch(5)

        result = engine.reconcile(transactions, index)

        assert result.total == 5
        assert result.processed == 5
        assert not result.cancelled
        assert [i.transaction.row_number for i in result.items] == [1, 2, 3, 4, 5]

    def test_progress_reported_per_chunk(self, engine, index):
        events: list[BatchProgress] = []

        engine.reconcile(_batch(5), index, on_progress=events.append)

        assert [(e.processed, e.total) for e in events] == [(2, 5), (4, 5), (5, 5)]
        assert events[-1].fraction == 1.0

    def test_empty_batch(self, engine, index):
        events = []

        result = engine.reconcile([], index, on_progress=events.append)

        assert result.items == []
        assert result.total == 0
        assert events == []

    def test_cancellation_between_chunks(self, engine, index):
        token = CancellationToken()

        def on_progress(progress):
            if progress.processed >= 2:
                token.cancel()

        result = engine.reconcile(_batch(5), index, on_progress=on_progress, cancel_token=token)

        assert result.cancelled
        assert result.processed == 2
        assert result.total == 5

    def test_cancelled_before_start(self, engine, index):
        token = CancellationToken()
        token.cancel()

        result = engine.reconcile(_batch(3), index, cancel_token=token)

        assert result.cancelled
        assert result.items == []

    def test_run_inside_event_loop(self, engine, index):
        result = asyncio.run(engine.run([make_transaction()], index))

        assert result.items[0].selected_installment_id == "P1"

    def test_duplicate_identifier_skips_scoring(self, engine, index):
        txn = make_transaction(amount_minor=20000, posted="2025-02-01", external_id="TX123")

        (item,) = engine.reconcile([txn], index).items

        assert item.duplicate_identifier
        assert item.candidates == []
        assert item.selected_installment_id is None
        assert not item.confirmed

    def test_auto_selects_and_confirms_strong_match(self, engine, index):
        (item,) = engine.reconcile([make_transaction()], index).items

        assert item.selected_installment_id == "P1"
        assert item.confirmed
        assert item.is_commit_eligible

    def test_conflicts_flagged_after_run(self, engine, index):
        transactions = [make_transaction(row_number=1), make_transaction(row_number=2)]

        result = engine.reconcile(transactions, index)

        assert all(i.confirmed for i in result.items)
        assert all(i.conflicted for i in result.items)

    def test_prepare_builds_index(self, engine, store):
        assert len(engine.prepare(store)) == len(store)


class TestAutoSelection:
    def test_selects_without_confirming_in_review_band(self, engine):
        item = make_item([make_candidate("P1", score=0.85)])

        engine.apply_auto_selection(item)

        assert item.selected_installment_id == "P1"
        assert not item.confirmed

    def test_below_threshold_is_left_alone(self, engine):
        item = make_item([make_candidate("P1", score=0.79)])

        engine.apply_auto_selection(item)

        assert item.selected_installment_id is None

    def test_several_open_candidates_need_a_human(self, engine):
        item = make_item([make_candidate("P1", 0.99), make_candidate("P2", 0.95)])

        engine.apply_auto_selection(item)

        assert item.selected_installment_id is None

    def test_settled_candidates_do_not_count(self, engine):
        item = make_item(
            [
                make_candidate("P4", 0.99, was_already_settled=True),
                make_candidate("P1", 0.92),
            ]
        )

        engine.apply_auto_selection(item)

        assert item.selected_installment_id == "P1"
        assert item.confirmed

    def test_lone_settled_candidate_is_not_selected(self, engine):
        item = make_item([make_candidate("P4", 0.99, was_already_settled=True)])

        engine.apply_auto_selection(item)

        assert item.selected_installment_id is None

    def test_thresholds_are_configurable(self, config):
        config.matching.auto_select_threshold = 0.5
        config.matching.auto_confirm_threshold = 0.6
        engine = ReconciliationEngine(config)
        item = make_item([make_candidate("P1", score=0.65)])

        engine.apply_auto_selection(item)

        assert item.selected_installment_id == "P1"
        assert item.confirmed


class TestSummary:
    def test_counts(self, engine, index):
        transactions = [
            make_transaction(row_number=1),
            make_transaction(
                amount_minor=20000, posted="2025-02-01", row_number=2, external_id="TX123"
            ),
            make_transaction(description="TARIFA", amount_minor=990, row_number=3),
        ]
        result = engine.reconcile(transactions, index)

        summary = engine.generate_summary(result, "statement.csv", 1.5)

        assert summary.statement_filename == "statement.csv"
        assert summary.total_transactions == 3
        assert summary.processed_count == 3
        assert summary.with_candidates_count == 1
        assert summary.auto_selected_count == 1
        assert summary.confirmed_count == 1
        assert summary.duplicate_count == 1
        assert summary.unmatched_count == 1
        assert summary.conflict_count == 0
        assert summary.total_outbound_minor == 15000 + 20000 + 990
        assert summary.confirmed_amount_minor == 15000
        assert summary.match_rate == pytest.approx(100 / 3)
        assert summary.processing_time_seconds == 1.5
        assert not summary.cancelled
