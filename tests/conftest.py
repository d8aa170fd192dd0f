"""Shared fixtures for the reconciliation test suite."""

from datetime import date
from typing import Optional

import pytest

from statement_recon.config import ReconConfig
from statement_recon.matching.candidates import build_candidate_index
from statement_recon.models.transaction import (
    Installment,
    MatchCandidate,
    PaymentMethod,
    ReconciliationItem,
    Transaction,
)
from statement_recon.store.memory import InMemoryInstallmentStore


def make_transaction(
    description: str = "PAGAMENTO FORNECEDOR ACME LTDA",
    amount_minor: int = 15000,
    posted: str = "2025-03-10",
    external_id: Optional[str] = None,
    payment_method_tag: Optional[str] = None,
    row_number: Optional[int] = 1,
) -> Transaction:
    return Transaction(
        date=posted,
        description=description,
        amount_minor=amount_minor,
        external_id=external_id,
        payment_method_tag=payment_method_tag,
        row_number=row_number,
    )


def make_installment(
    installment_id: str = "P1",
    amount_minor: int = 15000,
    due_date: date = date(2025, 3, 12),
    counterparty_id: Optional[str] = "ACME",
    **kwargs,
) -> Installment:
    return Installment(
        id=installment_id,
        account_id=kwargs.pop("account_id", "C1"),
        amount_minor=amount_minor,
        due_date=due_date,
        counterparty_id=counterparty_id,
        **kwargs,
    )


def make_candidate(
    installment_id: str, score: float = 0.95, was_already_settled: bool = False
) -> MatchCandidate:
    return MatchCandidate(
        installment_id=installment_id,
        score=score,
        amount_diff_minor=0,
        date_diff_days=0,
        was_already_settled=was_already_settled,
    )


def make_item(
    candidates: list[MatchCandidate],
    row_number: int = 1,
    external_id: Optional[str] = None,
) -> ReconciliationItem:
    return ReconciliationItem(
        transaction=make_transaction(row_number=row_number, external_id=external_id),
        candidates=candidates,
    )


@pytest.fixture
def config() -> ReconConfig:
    config = ReconConfig()
    config.settlement.default_payment_method = "BOLETO"
    config.settlement.default_bank_account = "ACC-001"
    return config


@pytest.fixture
def counterparties() -> dict[str, str]:
    return {
        "ACME": "ACME LTDA",
        "GLOBEX": "Globex Comércio de Papéis",
    }


@pytest.fixture
def payment_methods() -> list[PaymentMethod]:
    return [
        PaymentMethod(id="PIX", name="PIX"),
        PaymentMethod(id="BOLETO", name="Boleto Bancário"),
        PaymentMethod(id="TED", name="TED"),
    ]


@pytest.fixture
def store(counterparties, payment_methods) -> InMemoryInstallmentStore:
    installments = [
        make_installment("P1", 15000, date(2025, 3, 12), "ACME", description="Insumos 1/2"),
        make_installment(
            "P2",
            48990,
            date(2025, 3, 20),
            "GLOBEX",
            description="Papel A4",
            installment_index=2,
            installment_count=3,
        ),
        make_installment("P3", 7000, date(2025, 4, 30), None, description="Sem fornecedor"),
        make_installment(
            "P4",
            20000,
            date(2025, 2, 1),
            "ACME",
            settled=True,
            settled_at=date(2025, 2, 2),
            settled_amount_minor=20000,
            payment_method="PIX",
            bank_account="ACC-001",
            settlement_note="[STMT:TX123] Automatic settlement from bank statement: ACME",
        ),
    ]
    return InMemoryInstallmentStore(
        installments, counterparties=counterparties, payment_methods=payment_methods
    )


@pytest.fixture
def index(store):
    return build_candidate_index(store)
