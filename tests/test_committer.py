"""Tests for the settlement committer."""

from datetime import date

import pytest

from statement_recon.models.transaction import (
    CommitOutcome,
    PaymentMethod,
    ReconciliationItem,
)
from statement_recon.settlement.committer import (
    SettlementCommitter,
    compose_settlement_note,
    resolve_payment_method,
)
from statement_recon.utils.exceptions import ConfigurationError, ConflictError

from conftest import make_transaction

TODAY = date(2025, 3, 15)


def _confirmed(installment_id, row_number=1, override=False, **txn_kwargs):
    return ReconciliationItem(
        transaction=make_transaction(row_number=row_number, **txn_kwargs),
        selected_installment_id=installment_id,
        confirmed=True,
        override_settlement=override,
    )


@pytest.fixture
def committer(store, config):
    return SettlementCommitter(store, config.settlement, today=lambda: TODAY)


class TestResolvePaymentMethod:
    def test_exact_match_wins(self, payment_methods):
        methods = [PaymentMethod("TEDX", "TED Express")] + payment_methods

        assert resolve_payment_method("ted", methods).id == "TED"

    def test_containment_either_way(self, payment_methods):
        assert resolve_payment_method("Boleto", payment_methods).id == "BOLETO"
        assert resolve_payment_method("PIX TRANSFERENCIA", payment_methods).id == "PIX"

    def test_unknown_or_blank(self, payment_methods):
        assert resolve_payment_method("Cheque", payment_methods) is None
        assert resolve_payment_method("  ", payment_methods) is None
        assert resolve_payment_method(None, payment_methods) is None


class TestSettlementNote:
    def test_marker_prefix(self):
        txn = make_transaction(description="PAGTO ACME", external_id=" TX9 ")

        assert compose_settlement_note(txn, "Paid: {description}") == "[STMT:TX9] Paid: PAGTO ACME"

    def test_without_identifier(self):
        txn = make_transaction(description="PAGTO ACME")

        assert compose_settlement_note(txn, "Paid: {description}") == "Paid: PAGTO ACME"


class TestCommit:
    def test_inserts_settlement(self, committer, store):
        item = _confirmed("P1", external_id="TX900", payment_method_tag="pix")

        result = committer.commit([item])

        assert result.inserted == 1
        assert result.overridden == 0
        assert result.errors == []
        installment = store.get_installment("P1")
        assert installment.settled
        assert installment.settled_at == TODAY
        assert installment.settled_amount_minor == 15000
        assert installment.payment_method == "PIX"
        assert installment.bank_account == "ACC-001"
        assert installment.settlement_note == (
            "[STMT:TX900] Automatic settlement from bank statement: "
            "PAGAMENTO FORNECEDOR ACME LTDA"
        )

    def test_falls_back_to_default_payment_method(self, committer, store):
        committer.commit([_confirmed("P1", payment_method_tag="Cheque")])

        assert store.get_installment("P1").payment_method == "BOLETO"

    def test_override_clears_then_writes(self, committer, store):
        item = _confirmed("P4", override=True, amount_minor=20000)

        result = committer.commit([item])

        assert result.overridden == 1
        assert result.inserted == 0
        assert result.outcomes[0].outcome == CommitOutcome.OVERRIDDEN
        installment = store.get_installment("P4")
        assert installment.settled
        assert installment.settled_at == TODAY
        assert installment.payment_method == "BOLETO"
        assert "[STMT:TX123]" not in installment.settlement_note

    def test_settled_without_override_is_an_error(self, committer, store):
        result = committer.commit([_confirmed("P4", amount_minor=20000)])

        assert result.errored == 1
        assert "already settled" in result.errors[0]
        assert store.get_installment("P4").settled_at == date(2025, 2, 2)

    def test_conflicts_block_the_whole_batch(self, committer, store):
        items = [_confirmed("P1", row_number=1), _confirmed("P1", row_number=2)]

        with pytest.raises(ConflictError) as exc_info:
            committer.commit(items)

        assert exc_info.value.conflicts == {"P1": [0, 1]}
        assert not store.get_installment("P1").settled

    def test_missing_defaults(self, store, config):
        config.settlement.default_bank_account = None
        committer = SettlementCommitter(store, config.settlement)

        with pytest.raises(ConfigurationError):
            committer.commit([_confirmed("P1")])

    def test_identifier_consumed_earlier_in_the_batch(self, committer, store):
        items = [
            _confirmed("P1", row_number=1, external_id="TX7"),
            _confirmed("P2", row_number=2, external_id="TX7", amount_minor=48990),
        ]

        result = committer.commit(items)

        assert result.inserted == 1
        assert result.errored == 1
        assert result.errors[0].startswith("Row 2 -> installment P2:")
        assert "TX7" in result.errors[0]
        assert not store.get_installment("P2").settled

    def test_failures_do_not_roll_back_other_items(self, committer, store):
        items = [_confirmed("NOPE", row_number=1), _confirmed("P1", row_number=2)]

        result = committer.commit(items)

        assert result.errored == 1
        assert result.inserted == 1
        assert "Installment not found" in result.errors[0]
        assert store.get_installment("P1").settled

    def test_error_details_are_bounded(self, store, config):
        config.settlement.max_error_details = 1
        committer = SettlementCommitter(store, config.settlement)
        items = [_confirmed("X1", row_number=1), _confirmed("X2", row_number=2)]

        result = committer.commit(items)

        assert result.errored == 2
        assert len(result.errors) == 1

    def test_only_eligible_items_are_committed(self, committer, store):
        unconfirmed = _confirmed("P1")
        unconfirmed.confirmed = False
        duplicate = _confirmed("P2", row_number=2)
        duplicate.duplicate_identifier = True

        result = committer.commit([unconfirmed, duplicate])

        assert result.outcomes == []
        assert not store.get_installment("P1").settled
        assert not store.get_installment("P2").settled

    def test_clear_failure_is_reported(self, store, config):
        def broken_clear(installment_id):
            raise RuntimeError("locked")

        store.clear_settlement = broken_clear
        committer = SettlementCommitter(store, config.settlement)

        result = committer.commit([_confirmed("P4", override=True)])

        assert result.errored == 1
        assert "failed to clear previous settlement: locked" in result.errors[0]
        assert store.get_installment("P4").settlement_note.startswith("[STMT:TX123]")
