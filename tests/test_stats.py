"""Tests for balances, aggregations, family filters and report consolidation."""

import pytest

import stats
from conftest import make_family, make_transaction
from models import AgeType, FamilyMember, HistoryRecord, HistoryType, Status, TransactionType


def _member(age, age_type=AgeType.YEARS, member_id="m"):
    return FamilyMember(id=member_id, name="X", role="Filho", age=age, age_type=age_type)


def _aid(record_id, title, date="2024-01-10"):
    return HistoryRecord(id=record_id, date=date, type=HistoryType.AID, title=title)


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


def test_total_balance(sample_transactions):
    expected = sum(t.amount if t.type == TransactionType.INCOME else -t.amount for t in sample_transactions)
    assert stats.total_balance(sample_transactions) == expected
    assert stats.total_balance(sample_transactions) == 720.0


def test_total_balance_empty():
    assert stats.total_balance([]) == 0.0


def test_add_then_remove_restores_balance(sample_transactions):
    before = stats.total_balance(sample_transactions)
    extra = make_transaction("tx", 33.33, TransactionType.EXPENSE)
    after = [extra, *sample_transactions]
    assert stats.total_balance(after) == pytest.approx(before - 33.33)
    restored = [t for t in after if t.id != "tx"]
    assert stats.total_balance(restored) == before


def test_in_period_january_2024():
    assert stats.in_period("2024-01-15", 0, 2024)
    assert not stats.in_period("2024-02-01", 0, 2024)
    assert not stats.in_period("2023-01-15", 0, 2024)


def test_in_period_malformed_date():
    assert not stats.in_period("", 0, 2024)
    assert not stats.in_period("jan-2024", 0, 2024)


def test_period_transactions_scenario(sample_transactions):
    ids = [t.id for t in stats.period_transactions(sample_transactions, 0, 2024)]
    assert ids == ["t1", "t2", "t3"]


def test_period_totals(sample_transactions):
    totals = stats.period_totals(sample_transactions, 0, 2024)
    assert totals.income == 580.0
    assert totals.expense == 120.0
    assert totals.balance == 460.0
    assert stats.period_balance(sample_transactions, 1, 2024) == -40.0


def test_category_totals(sample_transactions):
    extra = make_transaction("t6", 20.0, TransactionType.EXPENSE, "2024-01-30", "Dízimos")
    totals = stats.category_totals([*sample_transactions, extra], 0, 2024)
    assert list(totals) == ["Dízimos", "Ajuda Social", "Ofertas"]
    assert totals["Dízimos"].income == 500.0
    assert totals["Dízimos"].expense == 20.0
    assert totals["Ajuda Social"].expense == 120.0


def test_category_totals_do_not_mutate_input(sample_transactions):
    snapshot = list(sample_transactions)
    stats.category_totals(sample_transactions, 0, 2024)
    assert sample_transactions == snapshot


def test_cash_flow_chart():
    chart = stats.cash_flow_chart(stats.PeriodTotals(income=10.0, expense=4.0))
    assert [c["name"] for c in chart] == ["Entradas", "Saídas"]
    assert [c["value"] for c in chart] == [10.0, 4.0]


def test_filter_by_type(sample_transactions):
    assert len(stats.filter_by_type(sample_transactions)) == 5
    expenses = stats.filter_by_type(sample_transactions, "Expense")
    assert {t.id for t in expenses} == {"t2", "t4"}


def test_monthly_summary(sample_transactions):
    df = stats.monthly_summary(sample_transactions)
    assert list(df.columns) == ["month", "income", "expense", "balance"]
    assert list(df["month"]) == ["2024-02", "2024-01", "2023-01"]
    jan = df[df["month"] == "2024-01"].iloc[0]
    assert jan["income"] == 580.0
    assert jan["expense"] == 120.0
    assert jan["balance"] == 460.0


def test_monthly_summary_empty():
    df = stats.monthly_summary([])
    assert df.empty
    assert list(df.columns) == ["month", "income", "expense", "balance"]


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


def test_aid_histogram_scenario():
    families = [
        make_family("f1", history=[_aid("h1", "Cesta Básica"), _aid("h2", "Roupas")]),
        make_family("f2", history=[_aid("h3", "Cesta Básica")]),
    ]
    result = stats.aid_histogram(families)
    assert (result[0].name, result[0].value) == ("Cesta Básica", 2)
    assert (result[1].name, result[1].value) == ("Roupas", 1)
    assert all(s.value == 0 for s in result[2:])
    assert {s.name for s in result[2:]} == {"Medicamentos", "Gás", "Financeiro", "Apoio Espiritual"}


def test_aid_histogram_colors_and_unknown_titles():
    families = [make_family("f1", history=[_aid("h1", "Móveis"), _aid("h2", "Móveis"), _aid("h3", "Gás")])]
    result = stats.aid_histogram(families)
    by_name = {s.name: s for s in result}
    assert result[0].name == "Móveis"
    assert by_name["Móveis"].fill == "#64748b"
    assert by_name["Gás"].fill == "#ef4444"
    assert by_name["Cesta Básica"].fill == "#f97316"


def test_aid_histogram_ignores_visits(sample_families):
    result = {s.name: s.value for s in stats.aid_histogram(sample_families)}
    assert result["Cesta Básica"] == 2
    assert result["Roupas"] == 1
    assert "Visita Pastoral" not in result


def test_dashboard_summary(sample_families, sample_transactions):
    summary = stats.dashboard_summary(sample_families, sample_transactions)
    assert summary == {"total_families": 3, "critical_families": 1, "total_balance": 720.0}


# ---------------------------------------------------------------------------
# Family filters
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("query", ["silva", "SILVA", "#fam-2024-001", "maria", ""])
def test_matches_search(query):
    family = make_family("f1", "Família Silva", code="#FAM-2024-001")
    assert stats.matches_search(family, query)


def test_matches_search_miss():
    assert not stats.matches_search(make_family(), "Oliveira")


def test_matches_status(sample_families):
    assert [f.id for f in stats.filter_families(sample_families, status="Critical")] == ["f2"]
    assert [f.id for f in stats.filter_families(sample_families, status=Status.ACTIVE)] == ["f1"]
    assert len(stats.filter_families(sample_families, status=stats.ALL)) == 3


def test_six_month_baby_matches_babies_only_not_one_to_five():
    family = make_family(members=[_member(6, AgeType.MONTHS)])
    assert stats.matches_age(family, babies_only=True)
    assert not stats.matches_age(family, min_age=1, max_age=5)


def test_eleven_month_baby_matches_babies_only():
    family = make_family(members=[_member(11, AgeType.MONTHS)])
    assert stats.matches_age(family, babies_only=True)


def test_babies_only_excludes_older_children():
    family = make_family(members=[_member(1), _member(8)])
    assert not stats.matches_age(family, babies_only=True)


def test_age_range_defaults():
    family = make_family(members=[_member(70)])
    assert stats.matches_age(family, min_age=60)
    assert not stats.matches_age(family, max_age=18)
    assert stats.matches_age(make_family(members=[_member(101)]))  # no criterion given
    assert not stats.matches_age(make_family(members=[_member(101)]), min_age=0)


def test_age_range_needs_some_member():
    assert not stats.matches_age(make_family(members=[]), min_age=0, max_age=100)


def test_filter_families_combines_criteria(sample_families):
    result = stats.filter_families(sample_families, query="família", babies_only=True)
    assert [f.id for f in result] == ["f1"]
    result = stats.filter_families(sample_families, min_age=10, max_age=15)
    assert [f.id for f in result] == ["f2"]


def test_children_count_and_baby_badge(sample_families):
    silva, souza, lima = sample_families
    assert stats.children_count(silva) == 1
    assert stats.children_count(souza) == 1
    assert stats.children_count(lima) == 0
    assert stats.has_baby(silva)
    assert not stats.has_baby(souza)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def test_consolidate_report_all(sample_families, sample_transactions):
    rows = stats.consolidate_report(sample_families, sample_transactions, 0, 2024)
    assert [r.id for r in rows] == ["t3", "h1", "t2", "t1", "h3"]
    by_id = {r.id: r for r in rows}
    assert by_id["h1"].type_label == "Doação"
    assert by_id["h1"].target == "Família Silva"
    assert by_id["h1"].amount is None
    assert not by_id["h1"].is_financial
    assert by_id["t1"].type_label == "Entrada"
    assert by_id["t1"].target == "Igreja (Receita)"
    assert by_id["t2"].type_label == "Saída"
    assert by_id["t2"].target == "Despesa Social"
    assert by_id["t2"].amount == 120.0


def test_consolidate_report_views(sample_families, sample_transactions):
    aid = stats.consolidate_report(sample_families, sample_transactions, 0, 2024, "aid")
    assert {r.id for r in aid} == {"h1", "h3"}
    financial = stats.consolidate_report(sample_families, sample_transactions, 0, 2024, "financial")
    assert {r.id for r in financial} == {"t1", "t2", "t3"}


def test_consolidate_report_same_day_keeps_aid_first():
    families = [make_family(history=[_aid("h1", "Gás", "2024-03-10")])]
    transactions = [make_transaction("t1", 10.0, date="2024-03-10")]
    rows = stats.consolidate_report(families, transactions, 2, 2024)
    assert [r.id for r in rows] == ["h1", "t1"]


def test_consolidate_report_unknown_view(sample_families, sample_transactions):
    with pytest.raises(ValueError):
        stats.consolidate_report(sample_families, sample_transactions, 0, 2024, "visits")
