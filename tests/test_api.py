"""
API Tests

Tests for the FastAPI endpoints using the test client.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from fastapi.testclient import TestClient

from api.main import app

UTR = "432109876543"


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def transaction_json():
    return {
        "id": "bank_1",
        "date": "2024-01-15",
        "amount": 1250.0,
        "description": "UPI-SWIGGY-MERCHANT@PAYTM",
        "utr": UTR,
    }


@pytest.fixture
def receipt_json():
    return {
        "id": "receipt_1",
        "date": "2024-01-15",
        "amount": 1250.0,
        "merchant": "Swiggy",
        "utr": UTR,
        "extracted_data": {"confidence": 0.9, "raw_text": ""},
    }


@pytest.fixture
def matched(client, transaction_json, receipt_json):
    """Run a matching pass and return its response body."""
    response = client.post("/api/matches", json={
        "transactions": [transaction_json],
        "receipts": [receipt_json],
    })
    assert response.status_code == 200
    return response.json()


class TestHealth:
    """Tests for service endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_root(self, client):
        assert client.get("/").json()["name"] == "UPI Reconciliation API"


class TestStatementEndpoints:
    """Tests for statement upload."""

    def test_normalize_csv(self, client, sample_csv_content):
        response = client.post(
            "/api/statements/normalize",
            files={"file": ("statement.csv", sample_csv_content.encode(), "text/csv")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["file_name"] == "statement.csv"
        assert body["header_row_index"] == 2
        assert len(body["transactions"]) == 3
        assert body["transactions"][0]["utr"] == UTR
        assert body["total_amount"] == pytest.approx(3761.5)

    def test_unsupported_file(self, client):
        response = client.post(
            "/api/statements/normalize",
            files={"file": ("statement.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert response.status_code == 400

    def test_empty_statement(self, client):
        response = client.post(
            "/api/statements/normalize",
            files={"file": ("statement.csv", b"", "text/csv")},
        )
        assert response.status_code == 400


class TestReceiptEndpoints:
    """Tests for receipt extraction."""

    def test_extract(self, client, swiggy_receipt_text):
        response = client.post("/api/receipts/extract", json={
            "raw_text": swiggy_receipt_text,
            "confidence": 92,
            "receipt_id": "r1",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "r1"
        assert body["merchant"] == "Swiggy"
        assert body["amount"] == 1250.0
        assert body["utr"] == UTR
        assert body["date"] == "2024-01-15"
        assert body["extracted_data"]["confidence"] == pytest.approx(0.92)

    def test_extract_rejects_bad_confidence(self, client):
        response = client.post("/api/receipts/extract", json={"raw_text": "x", "confidence": 250})
        assert response.status_code == 422

    def test_extract_batch(self, client, swiggy_receipt_text):
        response = client.post("/api/receipts/extract/batch", json={
            "items": [
                {"raw_text": swiggy_receipt_text, "receipt_id": "r1"},
                {"raw_text": "", "receipt_id": "r2"},
            ],
        })

        assert response.status_code == 200
        body = response.json()
        assert [r["id"] for r in body["receipts"]] == ["r1", "r2"]
        assert body["receipts"][1]["merchant"] == "Unknown Merchant"
        assert body["errors"] == []


class TestMatchEndpoints:
    """Tests for matching and review."""

    def test_run_matching(self, matched):
        match = matched["matches"][0]

        assert match["id"] == "bank_1"
        assert match["match_score"] == 135
        assert match["suggested_receipt"]["id"] == "receipt_1"
        assert match["suggested_category"] == "Food & Dining"
        assert matched["rules"]["version"] >= 1

    def test_run_matching_without_categories(self, client, transaction_json, receipt_json):
        response = client.post("/api/matches", json={
            "transactions": [transaction_json],
            "receipts": [receipt_json],
            "categorize": False,
        })

        assert response.status_code == 200
        assert response.json()["rules"] is None

    def test_approve(self, client, matched):
        response = client.post("/api/matches/approve", json={
            "matches": matched["matches"],
            "match_id": "bank_1",
            "category": "Food & Dining",
            "rules": matched["rules"],
            "expected_version": matched["rules"]["version"],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["approved"][0]["status"] == "approved"
        assert body["matches"][0]["bank_transaction"]["matched"] is True
        assert body["rules"]["version"] > matched["rules"]["version"]

        again = client.post("/api/matches/approve", json={
            "matches": body["matches"],
            "match_id": "bank_1",
            "rules": body["rules"],
        })
        assert again.status_code == 409

    def test_approve_unknown_match(self, client, matched):
        response = client.post("/api/matches/approve", json={
            "matches": matched["matches"],
            "match_id": "bank_9",
        })
        assert response.status_code == 404

    def test_approve_stale_rules(self, client, matched):
        response = client.post("/api/matches/approve", json={
            "matches": matched["matches"],
            "match_id": "bank_1",
            "rules": matched["rules"],
            "expected_version": matched["rules"]["version"] + 1,
        })
        assert response.status_code == 409

    def test_approve_unknown_category(self, client, matched):
        response = client.post("/api/matches/approve", json={
            "matches": matched["matches"],
            "match_id": "bank_1",
            "category": "Groceries",
        })
        assert response.status_code == 400

    def test_reject(self, client, matched):
        response = client.post("/api/matches/reject", json={
            "matches": matched["matches"],
            "match_id": "bank_1",
        })

        assert response.status_code == 200
        assert response.json()[0]["status"] == "rejected"

    def test_bulk_approve(self, client, matched):
        response = client.post("/api/matches/bulk-approve", json={
            "matches": matched["matches"],
            "rules": matched["rules"],
        })

        assert response.status_code == 200
        body = response.json()
        assert len(body["approved"]) == 1
        assert body["approved"][0]["bank_transaction"]["category"] == "Food & Dining"

    def test_summary(self, client, matched):
        response = client.post("/api/matches/summary", json={"matches": matched["matches"]})

        assert response.status_code == 200
        body = response.json()
        assert body["summary"]["total_transactions"] == 1
        assert body["summary"]["pending"] == 1
        assert "UPI Reconciliation Report" in body["report"]

    @pytest.mark.parametrize("path", ["/api/matches/summary", "/api/matches/similar", "/api/exports/csv"])
    def test_unknown_status_rejected(self, client, matched, path):
        match = dict(matched["matches"][0], status="archived")

        response = client.post(path, json={"matches": [match]})
        assert response.status_code == 422


class TestRuleEndpoints:
    """Tests for rule management."""

    def test_defaults(self, client):
        body = client.get("/api/rules/defaults").json()

        assert len(body["rules"]) == 15
        assert all(r["created_by"] == "system" for r in body["rules"])

    def test_categorize(self, client):
        body = client.post("/api/rules/categorize", json={"text": "Swiggy"}).json()

        assert body["category"] == "Food & Dining"
        assert body["method"] == "pattern"
        assert body["rule_id"] == "sys_food_delivery"

    def test_categorize_no_match(self, client):
        body = client.post("/api/rules/categorize", json={"text": "xyz"}).json()
        assert body["category"] is None

    def test_categorize_empty_rules(self, client):
        response = client.post("/api/rules/categorize", json={"text": "Swiggy", "rules": {"rules": []}})
        assert response.status_code == 400

    def test_add_and_remove_rule(self, client):
        added = client.post("/api/rules/add", json={
            "name": "Chai Point",
            "category": "Food & Dining",
            "patterns": ["chai point"],
        })
        assert added.status_code == 200
        rules = added.json()
        user_rules = [r for r in rules["rules"] if r["created_by"] == "user"]
        assert len(user_rules) == 1

        removed = client.post("/api/rules/remove", json={"rule_id": user_rules[0]["id"], "rules": rules})
        assert removed.status_code == 200
        assert len(removed.json()["rules"]) == 15

    def test_remove_system_rule(self, client):
        rules = client.get("/api/rules/defaults").json()
        response = client.post("/api/rules/remove", json={"rule_id": "sys_fuel", "rules": rules})
        assert response.status_code == 409


class TestExportEndpoints:
    """Tests for CSV export."""

    def test_export_csv(self, client, matched):
        approved = client.post("/api/matches/approve", json={
            "matches": matched["matches"],
            "match_id": "bank_1",
            "category": "Food & Dining",
        }).json()

        response = client.post("/api/exports/csv", json={"matches": approved["matches"]})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0].startswith("Date,Amount,UTR")
        assert len(lines) == 2
