from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from trip_ledger.core.currencies import CurrencyCode
from trip_ledger.modules.categories.resolver import (
    UNRESOLVED,
    ByName,
    Catalog,
    CatalogCategory,
)
from trip_ledger.modules.expenses.models import PaymentType, Provenance
from trip_ledger.modules.extraction.schemas import CandidateOrigin, RawCandidate
from trip_ledger.modules.reconciliation.matcher import match, resolve_items


def _receipt(day: date, amount: str, currency=CurrencyCode.EUR, **kw) -> RawCandidate:
    return RawCandidate(
        origin=CandidateOrigin.RECEIPT,
        transaction_date=day,
        amount=Decimal(amount),
        currency=currency,
        **kw,
    )


def _statement(day: date, amount: str, currency=CurrencyCode.EUR, **kw) -> RawCandidate:
    return RawCandidate(
        origin=CandidateOrigin.STATEMENT,
        transaction_date=day,
        amount=Decimal(amount),
        currency=currency,
        **kw,
    )


def test_receipt_and_statement_within_tolerance_merge():
    receipt = _receipt(
        date(2024, 8, 16),
        "45.50",
        merchant="Konoba Dalmatino",
        category_name="Food",
        payment_method=PaymentType.CASH,
        line_items=("Grilled squid: 22.00", "House wine: 23.50"),
    )
    statement = _statement(
        date(2024, 8, 16), "45.45", merchant="KONOBA DALM SPLIT", category_name="Travel"
    )

    items = match([receipt], [statement])

    assert len(items) == 1
    item = items[0]
    assert item.provenance == Provenance.MERGED
    assert item.merchant == "Konoba Dalmatino"
    assert item.amount == Decimal("45.50")
    assert item.category_ref == ByName("Food")
    assert item.payment_method == PaymentType.CASH
    assert item.receipt is receipt
    assert item.statement is statement
    assert item.raw_items_text == "Grilled squid: 22.00\nHouse wine: 23.50"


def test_merged_item_falls_back_to_statement_values():
    receipt = _receipt(date(2024, 8, 16), "12.00")
    statement = _statement(
        date(2024, 8, 16),
        "12.05",
        merchant="Tisak",
        description="Newspaper",
        category_name="Shopping",
    )

    [item] = match([receipt], [statement])

    assert item.merchant == "Tisak"
    assert item.description == "Newspaper"
    assert item.category_ref == ByName("Shopping")
    assert item.payment_method == PaymentType.CARD


def test_different_dates_do_not_merge():
    receipt = _receipt(date(2024, 8, 16), "10.00", currency=CurrencyCode.USD, merchant="Kiosk")
    statement = _statement(date(2024, 8, 17), "10.00", currency=CurrencyCode.USD)

    items = match([receipt], [statement])

    assert [i.provenance for i in items] == [Provenance.STATEMENT, Provenance.RECEIPT]
    assert items[0].transaction_date == date(2024, 8, 17)
    assert items[0].merchant == "Unknown"
    assert items[0].payment_method == PaymentType.CARD
    assert items[1].merchant == "Kiosk"


def test_different_currencies_do_not_merge():
    items = match(
        [_receipt(date(2024, 8, 16), "10.00", currency=CurrencyCode.EUR)],
        [_statement(date(2024, 8, 16), "10.00", currency=CurrencyCode.HRK)],
    )
    assert sorted(i.provenance.value for i in items) == ["receipt", "statement"]


def test_tolerance_bound_is_exclusive():
    items = match(
        [_receipt(date(2024, 8, 16), "10.00")],
        [_statement(date(2024, 8, 16), "10.10")],
    )
    assert len(items) == 2

    items = match(
        [_receipt(date(2024, 8, 16), "10.00")],
        [_statement(date(2024, 8, 16), "10.09")],
    )
    assert len(items) == 1


def test_first_unconsumed_receipt_wins_and_is_used_once():
    first = _receipt(date(2024, 8, 16), "20.08", merchant="First")
    second = _receipt(date(2024, 8, 16), "20.00", merchant="Second")
    s1 = _statement(date(2024, 8, 16), "20.00")
    s2 = _statement(date(2024, 8, 16), "20.00")
    s3 = _statement(date(2024, 8, 16), "20.00")

    items = match([first, second], [s1, s2, s3])

    merged = [i for i in items if i.provenance == Provenance.MERGED]
    assert [i.merchant for i in merged] == ["First", "Second"]
    assert merged[0].statement is s1
    assert merged[1].statement is s2
    assert [i.provenance for i in items].count(Provenance.STATEMENT) == 1
    assert all(i.provenance != Provenance.RECEIPT for i in items)


def test_output_sorted_by_date_descending_with_stable_ties():
    r_old = _receipt(date(2024, 8, 12), "5.00", merchant="Old")
    r_new = _receipt(date(2024, 8, 18), "7.00", merchant="New")
    s_mid_a = _statement(date(2024, 8, 15), "30.00", merchant="Mid A")
    s_mid_b = _statement(date(2024, 8, 15), "31.00", merchant="Mid B")

    items = match([r_old, r_new], [s_mid_a, s_mid_b])

    assert [i.merchant for i in items] == ["New", "Mid A", "Mid B", "Old"]


def test_match_is_deterministic_for_the_same_input():
    receipts = [
        _receipt(date(2024, 8, 16), "45.50", merchant="A"),
        _receipt(date(2024, 8, 16), "45.48", merchant="B"),
    ]
    statements = [
        _statement(date(2024, 8, 16), "45.49"),
        _statement(date(2024, 8, 14), "3.00"),
    ]

    def snapshot():
        return [
            (i.provenance, i.merchant, i.amount, i.transaction_date)
            for i in match(receipts, statements)
        ]

    assert snapshot() == snapshot()


def test_empty_inputs():
    assert match([], []) == []

    only_receipts = match([_receipt(date(2024, 8, 16), "1.00")], [])
    assert [i.provenance for i in only_receipts] == [Provenance.RECEIPT]

    only_statements = match([], [_statement(date(2024, 8, 16), "1.00")])
    assert [i.provenance for i in only_statements] == [Provenance.STATEMENT]


def test_resolve_items_assigns_a_category_to_every_item():
    food = CatalogCategory(id=uuid.uuid4(), name="Food")
    other = CatalogCategory(id=uuid.uuid4(), name="Other")
    catalog = Catalog(categories=(food, other))

    items = match(
        [_receipt(date(2024, 8, 16), "9.00", category_name="food")],
        [
            _statement(date(2024, 8, 17), "4.00", category_name="Útiköltség"),
            _statement(date(2024, 8, 18), "2.00"),
        ],
    )
    resolve_items(items, catalog)

    by_amount = {i.amount: i for i in items}
    assert by_amount[Decimal("9.00")].category_id == food.id
    assert by_amount[Decimal("4.00")].category_id == other.id
    assert by_amount[Decimal("2.00")].category_ref is UNRESOLVED
    assert by_amount[Decimal("2.00")].category_id == other.id
