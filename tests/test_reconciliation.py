"""
Reconciliation Tests

Tests for transaction matching, match review, export, reporting and the
end-to-end reconciliation pipeline.
"""

import csv
import pytest
from datetime import date
from decimal import Decimal
from io import StringIO
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from openpyxl import load_workbook

from categorization import Category, CategoryRule, RuleOrigin, RuleStore, StaleRuleStoreError
from receipt_processor import UNKNOWN_MERCHANT
from reconciliation import (
    EXPORT_COLUMNS,
    InvalidMatchTransition,
    MatchingEngine,
    MatchStatus,
    NO_MATCH_REASON,
    OcrJob,
    ReconciliationPipeline,
    TransactionMatch,
    apply_matches,
    approve_match,
    export_rows,
    find_match,
    format_report,
    reject_match,
    spending_by_month,
    summarize,
    to_csv,
    to_excel,
)

UTR = "432109876543"


@pytest.fixture
def matcher(config_dir):
    return MatchingEngine(config_dir)


@pytest.fixture
def pipeline(config_dir):
    return ReconciliationPipeline(config_dir, max_workers=2)


@pytest.fixture
def pending_match(make_transaction, make_receipt):
    return TransactionMatch(
        bank_transaction=make_transaction(utr=UTR),
        suggested_receipt=make_receipt(utr=UTR),
        match_score=135,
        match_reasons=["Exact amount match", "UTR match", "Same date", "Merchant match"],
    )


class TestMatchScoring:
    """Tests for pair scoring."""

    def test_full_match(self, matcher, make_transaction, make_receipt):
        score, reasons = matcher.score_pair(make_transaction(utr=UTR), make_receipt(utr=UTR))

        assert score == 135
        assert reasons == ["Exact amount match", "UTR match", "Same date", "Merchant match"]

    def test_adjacent_date(self, matcher, make_transaction, make_receipt):
        score, reasons = matcher.score_pair(
            make_transaction(), make_receipt(receipt_date=date(2024, 1, 16))
        )

        assert score == 85
        assert "Date within 1 day" in reasons
        assert "Same date" not in reasons

    def test_distant_date_scores_nothing(self, matcher, make_transaction, make_receipt):
        score, reasons = matcher.score_pair(
            make_transaction(), make_receipt(receipt_date=date(2024, 1, 20))
        )

        assert score == 65
        assert reasons == ["Exact amount match", "Merchant match"]

    def test_amount_tolerance(self, matcher, make_transaction, make_receipt):
        score, _ = matcher.score_pair(make_transaction(amount="100.00"), make_receipt(amount="100.009"))
        assert score >= 50

        score, _ = matcher.score_pair(make_transaction(amount="100.00"), make_receipt(amount="100.02"))
        assert score < 50

    def test_utr_never_lowers_score(self, matcher, make_transaction, make_receipt):
        without, _ = matcher.score_pair(make_transaction(), make_receipt())
        with_utr, _ = matcher.score_pair(make_transaction(utr=UTR), make_receipt(utr=UTR))

        assert with_utr == without + 40

    def test_merchant_overlap(self, matcher):
        assert matcher.merchant_overlaps("UPI-SWIGGYFOODS-BLR", "Swiggy") is True
        assert matcher.merchant_overlaps("POS AMAZON PAY INDIA", "Amazon") is True
        assert matcher.merchant_overlaps("PAY TO ABC", "ABC") is False
        assert matcher.merchant_overlaps("UPI-SWIGGY-MERCHANT@PAYTM", UNKNOWN_MERCHANT) is False
        assert matcher.merchant_overlaps("", "Swiggy") is False

    def test_missing_config_uses_defaults(self, tmp_path):
        matcher = MatchingEngine(tmp_path)
        assert matcher.MIN_SCORE == 40
        assert matcher.weights["exact_amount"] == 50


class TestMatchingEngine:
    """Tests for greedy matching."""

    def test_matches_pair(self, matcher, make_transaction, make_receipt):
        matches = matcher.match([make_transaction(utr=UTR)], [make_receipt(utr=UTR)])

        assert len(matches) == 1
        assert matches[0].suggested_receipt.id == "receipt_1"
        assert matches[0].match_score == 135
        assert matches[0].status == MatchStatus.PENDING
        assert matches[0].id == "bank_1"

    def test_below_threshold(self, matcher, make_transaction, make_receipt):
        receipt = make_receipt(amount="999.00", merchant="Zomato")
        matches = matcher.match([make_transaction()], [receipt])

        assert matches[0].suggested_receipt is None
        assert matches[0].match_score == 0
        assert matches[0].match_reasons == [NO_MATCH_REASON]

    def test_zero_amount_receipt_matches_on_utr(self, matcher, make_transaction, make_receipt):
        receipt = make_receipt(
            amount="0", receipt_date=date(2024, 3, 1), merchant=UNKNOWN_MERCHANT, utr=UTR
        )
        matches = matcher.match([make_transaction(utr=UTR)], [receipt])

        assert matches[0].match_score == 40
        assert matches[0].match_reasons == ["UTR match"]

    def test_zero_amount_receipt_needs_utr(self, matcher, make_transaction, make_receipt):
        receipt = make_receipt(amount="0")
        matches = matcher.match([make_transaction()], [receipt])

        assert matcher.score_pair(make_transaction(), receipt)[0] >= matcher.MIN_SCORE
        assert matches[0].suggested_receipt is None
        assert matches[0].match_reasons == [NO_MATCH_REASON]

    def test_receipt_used_once(self, matcher, make_transaction, make_receipt):
        transactions = [make_transaction(id="bank_1"), make_transaction(id="bank_2")]
        matches = matcher.match(transactions, [make_receipt()])

        assert [m.id for m in matches] == ["bank_1", "bank_2"]
        assert matches[0].suggested_receipt.id == "receipt_1"
        assert matches[1].suggested_receipt is None

    def test_first_seen_receipt_wins_ties(self, matcher, make_transaction, make_receipt):
        receipts = [make_receipt(id="r1"), make_receipt(id="r2")]
        matches = matcher.match([make_transaction()], receipts)

        assert matches[0].suggested_receipt.id == "r1"

    def test_highest_score_wins(self, matcher, make_transaction, make_receipt):
        receipts = [
            make_receipt(id="r1", receipt_date=date(2024, 1, 16)),
            make_receipt(id="r2"),
        ]
        matches = matcher.match([make_transaction()], receipts)

        assert matches[0].suggested_receipt.id == "r2"

    def test_sorted_by_descending_score(self, matcher, make_transaction, make_receipt):
        transactions = [
            make_transaction(id="bank_1", amount="10.00", description="ATM"),
            make_transaction(id="bank_2", amount="20.00", description="ATM"),
            make_transaction(id="bank_3"),
        ]
        matches = matcher.match(transactions, [make_receipt()])

        assert [m.id for m in matches] == ["bank_3", "bank_1", "bank_2"]

    def test_deterministic(self, matcher, make_transaction, make_receipt):
        transactions = [make_transaction(id=f"bank_{i}") for i in range(3)]
        receipts = [make_receipt(id=f"r{i}") for i in range(2)]

        first = [(m.id, m.suggested_receipt.id if m.suggested_receipt else None)
                 for m in matcher.match(transactions, receipts)]
        second = [(m.id, m.suggested_receipt.id if m.suggested_receipt else None)
                  for m in matcher.match(transactions, receipts)]
        assert first == second

    def test_skips_matched_records(self, matcher, make_transaction, make_receipt):
        transactions = [make_transaction(id="bank_1", matched=True), make_transaction(id="bank_2")]
        receipts = [make_receipt(id="r1", matched=True), make_receipt(id="r2")]

        matches = matcher.match(transactions, receipts)
        assert [m.id for m in matches] == ["bank_2"]
        assert matches[0].suggested_receipt.id == "r2"

    def test_existing_approved_match(self, matcher, make_transaction, make_receipt):
        existing = TransactionMatch(
            bank_transaction=make_transaction(id="bank_1"),
            suggested_receipt=make_receipt(id="r1"),
            match_score=95,
            status=MatchStatus.APPROVED,
        )
        transactions = [make_transaction(id="bank_1"), make_transaction(id="bank_2")]
        receipts = [make_receipt(id="r1"), make_receipt(id="r2")]

        matches = matcher.match(transactions, receipts, existing_matches=[existing])
        assert [m.id for m in matches] == ["bank_2"]
        assert matches[0].suggested_receipt.id == "r2"

    def test_existing_rejected_match_frees_receipt(self, matcher, make_transaction, make_receipt):
        existing = TransactionMatch(
            bank_transaction=make_transaction(id="bank_1"),
            suggested_receipt=make_receipt(id="r1"),
            status=MatchStatus.REJECTED,
        )
        transactions = [make_transaction(id="bank_1"), make_transaction(id="bank_2")]

        matches = matcher.match(transactions, [make_receipt(id="r1")], existing_matches=[existing])
        assert [m.id for m in matches] == ["bank_2"]
        assert matches[0].suggested_receipt.id == "r1"

    def test_existing_pending_match_is_rematched(self, matcher, make_transaction, make_receipt):
        existing = TransactionMatch(bank_transaction=make_transaction(id="bank_1"))
        matches = matcher.match([make_transaction(id="bank_1")], [make_receipt()], existing_matches=[existing])

        assert matches[0].suggested_receipt is not None

    def test_match_dict_round_trip(self, pending_match):
        restored = TransactionMatch.from_dict(pending_match.to_dict())

        assert restored.id == pending_match.id
        assert restored.suggested_receipt.utr == UTR
        assert restored.match_reasons == pending_match.match_reasons
        assert restored.status == MatchStatus.PENDING


class TestMatchReview:
    """Tests for approval and rejection."""

    def test_approve(self, pending_match):
        approved = approve_match(pending_match, "Food & Dining")

        assert approved.status == MatchStatus.APPROVED
        assert approved.bank_transaction.category == "Food & Dining"
        assert approved.bank_transaction.matched is True
        assert approved.bank_transaction.matched_receipt_id == "receipt_1"
        assert approved.suggested_receipt.matched is True
        assert approved.suggested_receipt.category == "Food & Dining"

        assert pending_match.status == MatchStatus.PENDING
        assert pending_match.bank_transaction.matched is False

    def test_approve_uses_suggested_category(self, pending_match):
        pending_match.suggested_category = "Shopping"
        assert approve_match(pending_match).bank_transaction.category == "Shopping"

    def test_approve_prefers_receipt_category(self, pending_match):
        pending_match.suggested_category = "Shopping"
        pending_match.suggested_receipt.category = "Entertainment"
        assert approve_match(pending_match).bank_transaction.category == "Entertainment"

    def test_approve_without_receipt(self, make_transaction):
        match = TransactionMatch(bank_transaction=make_transaction(), match_reasons=[NO_MATCH_REASON])
        approved = approve_match(match, "Miscellaneous")

        assert approved.status == MatchStatus.APPROVED
        assert approved.bank_transaction.category == "Miscellaneous"
        assert approved.bank_transaction.matched is False
        assert approved.bank_transaction.matched_receipt_id is None

    def test_approve_twice(self, pending_match):
        approved = approve_match(pending_match)
        with pytest.raises(InvalidMatchTransition):
            approve_match(approved)

    def test_reject(self, pending_match):
        rejected = reject_match(pending_match)

        assert rejected.status == MatchStatus.REJECTED
        assert rejected.bank_transaction.matched is False
        with pytest.raises(InvalidMatchTransition):
            reject_match(rejected)

    def test_cannot_approve_rejected(self, pending_match):
        with pytest.raises(InvalidMatchTransition):
            approve_match(reject_match(pending_match))

    def test_apply_matches(self, pending_match, make_transaction, make_receipt):
        approved = approve_match(pending_match, "Food & Dining")
        transactions = [make_transaction(utr=UTR), make_transaction(id="bank_2")]
        receipts = [make_receipt(utr=UTR), make_receipt(id="receipt_2")]

        new_txns, new_receipts = apply_matches([approved], transactions, receipts)

        assert new_txns[0].matched is True
        assert new_txns[1].matched is False
        assert new_receipts[0].matched is True
        assert new_receipts[1].matched is False
        assert transactions[0].matched is False

    def test_find_match(self, pending_match):
        assert find_match([pending_match], "bank_1") is pending_match
        with pytest.raises(KeyError):
            find_match([pending_match], "bank_9")


class TestExport:
    """Tests for CSV and Excel export."""

    def test_export_rows(self, pending_match, make_transaction):
        approved = approve_match(pending_match, "Food & Dining")
        bare = approve_match(TransactionMatch(bank_transaction=make_transaction(id="bank_2")))
        pending = TransactionMatch(bank_transaction=make_transaction(id="bank_3"))

        rows = export_rows([approved, bare, pending])

        assert len(rows) == 2
        assert rows[0]["Merchant"] == "Swiggy"
        assert rows[0]["UTR"] == UTR
        assert rows[0]["Receipt"] == "Yes"
        assert rows[0]["Notes"] == "Exact amount match; UTR match; Same date; Merchant match"
        assert rows[1]["Category"] == "Uncategorized"
        assert rows[1]["Receipt"] == "No"

    def test_to_csv(self, pending_match):
        content = to_csv([approve_match(pending_match, "Food & Dining")])
        rows = list(csv.DictReader(StringIO(content)))

        assert content.splitlines()[0] == ",".join(EXPORT_COLUMNS)
        assert len(rows) == 1
        assert rows[0]["Date"] == "2024-01-15"
        assert rows[0]["Amount"] == "1250.00"
        assert rows[0]["Category"] == "Food & Dining"
        assert rows[0]["Match Score"] == "135"

    def test_to_csv_empty(self):
        assert to_csv([]).strip() == ",".join(EXPORT_COLUMNS)

    def test_to_excel(self, pending_match, tmp_path):
        path = to_excel([approve_match(pending_match, "Food & Dining")], tmp_path / "out" / "export.xlsx")

        assert path.exists()
        wb = load_workbook(path)
        ws = wb.active
        assert ws.title == "Transactions"
        assert ws["A1"].value == "Date"
        assert ws["A1"].font.bold is True
        assert ws["B2"].value == 1250.0
        assert ws["B2"].number_format == "#,##0.00"
        assert ws.freeze_panes == "A2"


class TestReporting:
    """Tests for summaries and the text report."""

    @pytest.fixture
    def reviewed(self, make_transaction, make_receipt):
        return [
            TransactionMatch(
                bank_transaction=make_transaction(id="b1", category="Food & Dining"),
                suggested_receipt=make_receipt(id="r1"),
                match_score=135,
                status=MatchStatus.APPROVED,
            ),
            TransactionMatch(
                bank_transaction=make_transaction(id="b2", amount="350.00", txn_date=date(2024, 2, 3)),
                suggested_receipt=make_receipt(id="r2"),
                match_score=85,
                status=MatchStatus.APPROVED,
            ),
            TransactionMatch(
                bank_transaction=make_transaction(id="b3"),
                suggested_receipt=make_receipt(id="r3"),
                match_score=50,
                status=MatchStatus.REJECTED,
            ),
            TransactionMatch(bank_transaction=make_transaction(id="b4"), match_reasons=[NO_MATCH_REASON]),
            TransactionMatch(
                bank_transaction=make_transaction(id="b5"),
                suggested_receipt=make_receipt(id="r5"),
                match_score=65,
            ),
        ]

    def test_summarize(self, reviewed):
        summary = summarize(reviewed)

        assert summary.total_transactions == 5
        assert summary.with_receipt == 4
        assert summary.high_confidence == 2
        assert summary.approved == 2
        assert summary.rejected == 1
        assert summary.pending == 2
        assert summary.needs_training == 1
        assert summary.approved_amount == Decimal("1600.00")
        assert summary.match_rate == pytest.approx(80.0)
        assert summary.categorization_rate == pytest.approx(50.0)
        assert list(summary.category_breakdown) == ["Food & Dining", "Uncategorized"]

    def test_summarize_empty(self):
        summary = summarize([])
        assert summary.match_rate == 0.0
        assert summary.categorization_rate == 0.0
        assert summary.to_dict()["total_transactions"] == 0

    def test_spending_by_month(self, reviewed):
        monthly = spending_by_month(reviewed)

        assert list(monthly) == ["2024-01", "2024-02"]
        assert monthly["2024-01"]["total"] == Decimal("1250.00")
        assert monthly["2024-01"]["categories"] == {"Food & Dining": Decimal("1250.00")}
        assert monthly["2024-02"]["categories"] == {"Uncategorized": Decimal("350.00")}

    def test_format_report(self, reviewed):
        report = format_report(summarize(reviewed), spending_by_month(reviewed))

        assert "Transactions: 5" in report
        assert "With receipt: 4 (80.0%)" in report
        assert "Approved amount: ₹1,600.00" in report
        assert "  Food & Dining: ₹1,250.00" in report
        assert "  2024-02: ₹350.00" in report


class TestReconciliationPipeline:
    """Tests for ReconciliationPipeline."""

    def test_load_statements(self, pipeline, sample_csv_content, tmp_path):
        first = tmp_path / "january.csv"
        first.write_text(sample_csv_content)
        second = tmp_path / "january-copy.csv"
        second.write_text(
            "Txn Date,Description,Debit,Credit,Ref No\n"
            "15/01/2024,UPI-SWIGGY-MERCHANT@PAYTM,1250.00,,432109876543\n"
            "20/01/2024,UPI-ZOMATO-ORDER@YBL,450.00,,\n"
        )
        unsupported = tmp_path / "notes.txt"
        unsupported.write_text("not a statement")

        result = pipeline.load_statements([first, second, unsupported])

        assert len(result.transactions) == 4
        assert result.duplicates == 1
        assert len(result.files) == 3
        assert result.transactions[0].description == "UPI-SWIGGY-MERCHANT@PAYTM"
        assert result.transactions[-1].amount == Decimal("450.00")
        assert len(result.errors) == 1
        assert result.errors[0].startswith("notes.txt")

    def test_load_statements_keeps_repeats_within_a_file(self, pipeline, tmp_path):
        path = tmp_path / "statement.csv"
        path.write_text(
            "Date,Description,Amount\n"
            "15/01/2024,UPI-CHAI POINT,40.00\n"
            "15/01/2024,UPI-CHAI POINT,40.00\n"
        )

        result = pipeline.load_statements([path])
        assert len(result.transactions) == 2
        assert result.duplicates == 0

    def test_load_missing_file(self, pipeline, tmp_path):
        result = pipeline.load_statements([tmp_path / "missing.csv"])

        assert result.transactions == []
        assert len(result.errors) == 1

    def test_extract_receipts(self, pipeline, swiggy_receipt_text):
        result = pipeline.extract_receipts([
            OcrJob(raw_text=swiggy_receipt_text, confidence=90, receipt_id="r1"),
            OcrJob(raw_text="", receipt_id="r2"),
        ])

        assert [r.id for r in result.receipts] == ["r1", "r2"]
        assert result.receipts[0].merchant == "Swiggy"
        assert result.receipts[0].extracted_data.confidence == pytest.approx(0.9)
        assert result.receipts[1].merchant == UNKNOWN_MERCHANT
        assert result.errors == []

    def test_run_matching_with_rules(self, pipeline, default_rules, make_transaction, make_receipt):
        result = pipeline.run_matching([make_transaction(utr=UTR)], [make_receipt(utr=UTR)], default_rules)

        match = result.matches[0]
        assert match.suggested_category == "Food & Dining"
        assert match.category_confidence == pytest.approx(0.9)
        assert result.rules.get("sys_food_delivery").usage_count == 1

    def test_run_matching_without_rules(self, pipeline, make_transaction, make_receipt):
        result = pipeline.run_matching([make_transaction()], [make_receipt()])

        assert result.rules is None
        assert result.matches[0].suggested_category is None

    def test_approve_learns_rule(self, pipeline, default_rules, pending_match):
        outcome = pipeline.approve([pending_match], "bank_1", default_rules, category="Food & Dining")

        approved = outcome.matches[0]
        assert approved.status == MatchStatus.APPROVED
        assert approved.bank_transaction.category == "Food & Dining"
        assert outcome.approved == [approved]
        assert len(outcome.rules.user_rules) == 1
        assert outcome.rules.version > default_rules.version

    def test_approve_stale_rules(self, pipeline, default_rules, pending_match):
        with pytest.raises(StaleRuleStoreError):
            pipeline.approve([pending_match], "bank_1", default_rules, expected_version=5)

    def test_approve_unknown_match(self, pipeline, default_rules, pending_match):
        with pytest.raises(KeyError):
            pipeline.approve([pending_match], "bank_9", default_rules)

    def test_approve_twice(self, pipeline, default_rules, pending_match):
        outcome = pipeline.approve([pending_match], "bank_1", default_rules, category="Shopping")
        with pytest.raises(InvalidMatchTransition):
            pipeline.approve(outcome.matches, "bank_1", outcome.rules, category="Shopping")

    def test_approve_unknown_category(self, pipeline, default_rules, pending_match):
        with pytest.raises(ValueError):
            pipeline.approve([pending_match], "bank_1", default_rules, category="Groceries")

    def test_approve_override_penalizes_suggesting_rule(self, pipeline, make_transaction, make_receipt):
        store = RuleStore(rules=(
            CategoryRule(
                id="u_food",
                name="Swiggy Orders",
                category=Category.FOOD_AND_DINING,
                patterns=["swiggy"],
                confidence=0.9,
                created_by=RuleOrigin.USER,
            ),
        ))
        matched = pipeline.run_matching([make_transaction()], [make_receipt()], store)
        assert matched.matches[0].suggested_category == "Food & Dining"

        outcome = pipeline.approve(matched.matches, "bank_1", matched.rules, category="Shopping")

        corrected = outcome.rules.get("u_food")
        assert corrected.confidence == pytest.approx(0.8)
        assert corrected.metadata.correction_count == 1
        assert outcome.matches[0].bank_transaction.category == "Shopping"

    def test_approve_confirming_suggestion_keeps_confidence(self, pipeline, default_rules, make_transaction, make_receipt):
        matched = pipeline.run_matching([make_transaction()], [make_receipt()], default_rules)

        outcome = pipeline.approve(matched.matches, "bank_1", matched.rules, category="Food & Dining")

        assert all(r.metadata.correction_count == 0 for r in outcome.rules)

    def test_approve_without_category_leaves_rules(self, pipeline, default_rules, pending_match):
        outcome = pipeline.approve([pending_match], "bank_1", default_rules)

        assert outcome.matches[0].bank_transaction.category is None
        assert outcome.rules is default_rules

    def test_reject(self, pipeline, pending_match):
        matches = pipeline.reject([pending_match], "bank_1")
        assert matches[0].status == MatchStatus.REJECTED

    def test_bulk_approve(self, pipeline, default_rules, make_transaction, make_receipt):
        transactions = [
            make_transaction(id="bank_1", utr=UTR),
            make_transaction(id="bank_2", amount="75.00", description="NEFT 9999"),
            make_transaction(id="bank_3", amount="499.00", description="NEFT 5555"),
        ]
        receipts = [
            make_receipt(id="r1", utr=UTR),
            make_receipt(id="r2", amount="75.00", merchant="Corner Shop"),
        ]
        matched = pipeline.run_matching(transactions, receipts, default_rules)

        outcome = pipeline.bulk_approve(matched.matches, matched.rules)

        by_id = {m.id: m for m in outcome.matches}
        assert len(outcome.approved) == 2
        assert by_id["bank_1"].bank_transaction.category == "Food & Dining"
        assert by_id["bank_2"].bank_transaction.category == Category.MISCELLANEOUS.value
        assert by_id["bank_3"].status == MatchStatus.PENDING
        assert all(r.name.startswith("Bulk Rule") for r in outcome.rules.user_rules)
        assert len(outcome.rules.user_rules) == 2

    def test_bulk_approve_explicit_category(self, pipeline, default_rules, pending_match):
        outcome = pipeline.bulk_approve([pending_match], default_rules, category="Entertainment")
        assert outcome.matches[0].bank_transaction.category == "Entertainment"

    def test_group_similar(self, pipeline, make_transaction, make_receipt):
        def receipt_match(i, merchant, status=MatchStatus.PENDING):
            return TransactionMatch(
                bank_transaction=make_transaction(id=f"bank_{i}"),
                suggested_receipt=make_receipt(id=f"r{i}", merchant=merchant),
                status=status,
            )

        matches = [
            receipt_match(1, "Swiggy"),
            receipt_match(2, "Zomato"),
            receipt_match(3, "swiggy"),
            receipt_match(4, "Swiggy"),
            receipt_match(5, "Swiggy", MatchStatus.APPROVED),
            TransactionMatch(bank_transaction=make_transaction(id="bank_6", description="ATM CASH WITHDRAWAL AT 1")),
            TransactionMatch(bank_transaction=make_transaction(id="bank_7", description="ATM CASH WITHDRAWAL AT 2")),
        ]

        groups = pipeline.group_similar(matches)

        assert [g.key for g in groups] == ["swiggy", "atm cash withdrawal "]
        assert [g.size for g in groups] == [3, 2]

    def test_end_to_end(self, pipeline, sample_rows, swiggy_receipt_text):
        transactions = pipeline.normalizer.normalize(sample_rows)
        receipts = pipeline.extract_receipts([OcrJob(raw_text=swiggy_receipt_text, confidence=0.95)]).receipts

        result = pipeline.run_matching(transactions, receipts, pipeline.default_rules())
        top = result.matches[0]

        assert len(result.matches) == len(transactions)
        assert top.suggested_receipt.merchant == "Swiggy"
        assert top.match_score >= 120
        assert top.bank_transaction.utr == UTR
        assert top.suggested_category == Category.FOOD_AND_DINING.value

        outcome = pipeline.approve(result.matches, top.id, result.rules, expected_version=result.rules.version)
        assert outcome.matches[0].bank_transaction.category == "Food & Dining"
        assert outcome.matches[0].bank_transaction.matched_receipt_id == top.suggested_receipt.id
        assert isinstance(outcome.rules, RuleStore)
