"""Tests for the installment store adapters."""

from datetime import date
from pathlib import Path

import pytest

from statement_recon.models.transaction import Settlement
from statement_recon.store.memory import InMemoryInstallmentStore
from statement_recon.store.tabular import TabularInstallmentStore
from statement_recon.utils.exceptions import CandidateLookupError, SettlementError

from conftest import make_installment

INSTALLMENTS_CSV = """id,account_id,counterparty_id,counterparty_name,description,amount_minor,due_date,installment_index,installment_count,settled,settled_at,settled_amount_minor,payment_method,bank_account,settlement_note
P1,C1,ACME,ACME LTDA,Insumos,15000,2025-03-12,1,2,false,,,,,
P2,C1,,Globex,Papel,48990,2025-03-20,2,3,,,,,,
P3,C2,,,Avulso,7000,2025-04-30,,,,,,,,
P4,C1,ACME,ACME LTDA,Insumos,20000,2025-02-01,2,2,true,2025-02-02,20000,PIX,ACC-001,[STMT:TX123] Automatic settlement
"""


class TestInMemoryStore:
    def test_rejects_duplicate_ids(self):
        with pytest.raises(ValueError):
            InMemoryInstallmentStore([make_installment("P1"), make_installment("P1")])

    def test_reads_return_copies(self, store):
        copy = store.get_installment("P1")
        copy.settled = True

        assert not store.get_installment("P1").settled

    def test_record_and_clear(self, store):
        settlement = Settlement(
            settled_at=date(2025, 3, 15),
            amount_minor=15000,
            payment_method="PIX",
            bank_account="ACC-001",
            note="[STMT:TX1] paid",
        )

        store.record_settlement("P1", settlement)

        assert [i.id for i in store.find_settled_by_marker("[STMT:TX1]")] == ["P1"]

        store.clear_settlement("P1")
        installment = store.get_installment("P1")

        assert not installment.settled
        assert installment.settlement_note is None
        assert store.find_settled_by_marker("[STMT:TX1]") == []

    def test_unknown_installment(self, store):
        with pytest.raises(SettlementError):
            store.get_installment("missing")

    def test_counterparty_names_skip_unknown_ids(self, store):
        assert store.load_counterparty_names(["ACME", "NOBODY"]) == {"ACME": "ACME LTDA"}


class TestTabularStore:
    @pytest.fixture
    def csv_path(self, tmp_path: Path) -> Path:
        path = tmp_path / "installments.csv"
        path.write_text(INSTALLMENTS_CSV, encoding="utf-8")
        return path

    def test_loads_rows(self, csv_path):
        store = TabularInstallmentStore.from_file(csv_path, payment_methods=["PIX", "TED"])

        assert len(store) == 4
        p1 = store.get_installment("P1")
        assert p1.amount_minor == 15000
        assert p1.due_date == date(2025, 3, 12)
        assert p1.installment_count == 2
        assert not p1.settled

        p3 = store.get_installment("P3")
        assert p3.counterparty_id is None
        assert p3.installment_index == 1

        p4 = store.get_installment("P4")
        assert p4.settled
        assert p4.settled_at == date(2025, 2, 2)
        assert p4.settled_amount_minor == 20000
        assert p4.settlement_note == "[STMT:TX123] Automatic settlement"

        assert [m.id for m in store.list_payment_methods()] == ["PIX", "TED"]

    def test_name_doubles_as_counterparty_id(self, csv_path):
        store = TabularInstallmentStore.from_file(csv_path)

        assert store.get_installment("P2").counterparty_id == "Globex"
        assert store.load_counterparty_names(["Globex", "ACME"]) == {
            "Globex": "Globex",
            "ACME": "ACME LTDA",
        }

    def test_save_round_trip(self, csv_path, tmp_path: Path):
        store = TabularInstallmentStore.from_file(csv_path)
        store.record_settlement(
            "P1",
            Settlement(date(2025, 3, 15), 15000, "PIX", "ACC-001", "[STMT:TX9] paid"),
        )
        output = tmp_path / "out" / "installments.csv"

        store.save(output)
        reloaded = TabularInstallmentStore.from_file(output)

        p1 = reloaded.get_installment("P1")
        assert p1.settled
        assert p1.settled_at == date(2025, 3, 15)
        assert p1.settlement_note == "[STMT:TX9] paid"
        assert reloaded.get_installment("P3").counterparty_id is None
        assert reloaded.load_counterparty_names(["ACME"]) == {"ACME": "ACME LTDA"}

    def test_missing_required_column(self, tmp_path: Path):
        path = tmp_path / "bad.csv"
        path.write_text("id,amount_minor\nP1,100\n", encoding="utf-8")

        with pytest.raises(CandidateLookupError, match="due_date"):
            TabularInstallmentStore.from_file(path)

    def test_invalid_value(self, tmp_path: Path):
        path = tmp_path / "bad.csv"
        path.write_text("id,amount_minor,due_date\nP1,abc,2025-03-01\n", encoding="utf-8")

        with pytest.raises(CandidateLookupError, match="line 2"):
            TabularInstallmentStore.from_file(path)

    def test_unreadable_file(self, tmp_path: Path):
        with pytest.raises(CandidateLookupError):
            TabularInstallmentStore.from_file(tmp_path / "missing.csv")
