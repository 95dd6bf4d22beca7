"""
HTTP surface tests: auth, role guards, and the main finance endpoints.
"""

import pytest

from conftest import PASSWORD, auth_headers


class TestAuth:
    def test_login_and_me(self, client, finance_user):
        resp = client.post("/api/auth/login", json={"username": finance_user.username, "password": PASSWORD})
        assert resp.status_code == 200
        token = resp.get_json()["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.get_json()["user"]["role"] == "finance"

    def test_bad_password(self, client, finance_user):
        resp = client.post("/api/auth/login", json={"username": finance_user.username, "password": "wrong"})
        assert resp.status_code == 401

    def test_logout_revokes_token(self, client, finance_headers):
        assert client.post("/api/auth/logout", headers=finance_headers).status_code == 200
        assert client.get("/api/auth/me", headers=finance_headers).status_code == 401


class TestRoleGuards:
    def test_missing_token(self, client, db_session):
        resp = client.get("/api/finance/expenses")
        assert resp.status_code == 401
        assert resp.get_json()["success"] is False

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/finance/expenses", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    @pytest.mark.parametrize("role", ["property_manager", "ceo"])
    def test_non_finance_roles_cannot_create_expenses(self, client, chart, make_user, role):
        headers = auth_headers(make_user(role))
        resp = client.post(
            "/api/finance/expenses",
            json={"amount": 10, "category": "Other", "description": "x"},
            headers=headers,
        )
        assert resp.status_code == 403

    def test_ceo_can_read_reports(self, client, chart, make_user):
        headers = auth_headers(make_user("ceo"))
        resp = client.get("/api/finance/trial-balance/report", headers=headers)
        assert resp.status_code == 200

    def test_finance_cannot_create_accounts(self, client, chart, finance_headers):
        resp = client.post(
            "/api/finance/accounts",
            json={"code": "5011", "name": "Security", "type": "Expense"},
            headers=finance_headers,
        )
        assert resp.status_code == 403

    def test_property_manager_can_file_maintenance(self, client, chart, make_user):
        headers = auth_headers(make_user("property_manager"))
        resp = client.post("/api/maintenance", json={"issue": "Broken window", "amount": 40}, headers=headers)
        assert resp.status_code == 201

        request_id = resp.get_json()["request"]["request_id"]
        resp = client.patch(
            f"/api/maintenance/{request_id}/finance-approval",
            json={"finance_status": "approved"},
            headers=headers,
        )
        assert resp.status_code == 403


class TestAccountsApi:
    def test_list_by_type(self, client, chart, finance_headers):
        resp = client.get("/api/finance/accounts?type=Asset", headers=finance_headers)
        assert resp.status_code == 200
        codes = [a["code"] for a in resp.get_json()["accounts"]]
        assert codes[0] == "1000"
        assert all(code.startswith("1") for code in codes)

    def test_admin_creates_account(self, client, chart, admin_headers):
        resp = client.post(
            "/api/finance/accounts",
            json={"code": "5011", "name": "Security Services", "type": "Expense"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["account"]["code"] == "5011"

    def test_duplicate_code_is_409(self, client, chart, admin_headers):
        resp = client.post(
            "/api/finance/accounts",
            json={"code": "1000", "name": "Cash again", "type": "Asset"},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_resolve(self, client, chart, finance_headers):
        resp = client.get("/api/finance/accounts/resolve?payment_method=Ecocash", headers=finance_headers)
        assert resp.status_code == 200
        assert resp.get_json()["account"]["code"] == "1003"

    def test_expense_accounts_skip_inactive(self, client, chart, finance_headers):
        from conftest import deactivate

        deactivate(chart["5010"])
        resp = client.get("/api/finance/accounts/expense-accounts", headers=finance_headers)
        codes = [a["code"] for a in resp.get_json()["accounts"]]
        assert "5010" not in codes
        assert codes[0] == "5001"

    def test_resolve_needs_one_key(self, client, chart, finance_headers):
        resp = client.get("/api/finance/accounts/resolve", headers=finance_headers)
        assert resp.status_code == 400


class TestExpensesApi:
    def test_create_approve_delete(self, client, chart, finance_headers):
        resp = client.post(
            "/api/finance/expenses",
            json={"amount": 100, "category": "Maintenance", "description": "Fix geyser"},
            headers=finance_headers,
        )
        assert resp.status_code == 201
        expense_id = resp.get_json()["expense"]["expense_id"]

        resp = client.patch(
            f"/api/finance/expenses/{expense_id}/approve",
            json={"payment_method": "Cash"},
            headers=finance_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["expense"]["payment_status"] == "Paid"

        resp = client.patch(
            f"/api/finance/expenses/{expense_id}/approve",
            json={"payment_method": "Cash"},
            headers=finance_headers,
        )
        assert resp.status_code == 409

        resp = client.delete(f"/api/finance/expenses/{expense_id}", headers=finance_headers)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["entries_deleted"] == 4
        assert body["transactions_deleted"] == 2

    def test_validation_error_is_400(self, client, chart, finance_headers):
        resp = client.post(
            "/api/finance/expenses",
            json={"amount": "abc", "category": "Maintenance", "description": "x"},
            headers=finance_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["details"]["field"] == "amount"

    def test_missing_expense_is_404(self, client, chart, finance_headers):
        resp = client.get("/api/finance/expenses/EXP-NOPE", headers=finance_headers)
        assert resp.status_code == 404

    def test_unresolvable_payment_account_is_500(self, client, chart, finance_headers):
        from conftest import deactivate

        resp = client.post(
            "/api/finance/expenses",
            json={"amount": 5, "category": "Other", "description": "x"},
            headers=finance_headers,
        )
        expense_id = resp.get_json()["expense"]["expense_id"]
        deactivate(chart["1000"], chart["1001"], chart["1002"], chart["1003"], chart["1004"])

        resp = client.patch(
            f"/api/finance/expenses/{expense_id}/approve",
            json={"payment_method": "Cash"},
            headers=finance_headers,
        )
        assert resp.status_code == 500
        assert "Cash" in resp.get_json()["error"]

        resp = client.get(f"/api/finance/expenses/{expense_id}", headers=finance_headers)
        assert resp.get_json()["expense"]["payment_status"] == "Pending"


class TestManualEntries:
    def test_balanced_entry(self, client, chart, finance_headers):
        resp = client.post(
            "/api/finance/transactions/manual",
            json={
                "description": "Owner capital injection",
                "date": "2026-01-01",
                "lines": [
                    {"account_code": "1001", "debit": 1000},
                    {"account_code": "3000", "credit": 1000},
                ],
            },
            headers=finance_headers,
        )
        assert resp.status_code == 201
        txn = resp.get_json()["transaction"]
        assert txn["total_debit_cents"] == txn["total_credit_cents"] == 100000
        assert txn["is_cash_movement"] is True

        resp = client.get(f"/api/finance/transactions/{txn['transaction_id']}", headers=finance_headers)
        assert resp.status_code == 200

    def test_imbalanced_entry_is_400(self, client, chart, finance_headers):
        resp = client.post(
            "/api/finance/transactions/manual",
            json={
                "description": "Oops",
                "lines": [
                    {"account_code": "1001", "debit": 1000},
                    {"account_code": "3000", "credit": 999},
                ],
            },
            headers=finance_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["details"] == {"total_debit_cents": 100000, "total_credit_cents": 99900}

        verify = client.get("/api/finance/transactions/verify", headers=finance_headers)
        assert verify.get_json()["is_balanced"] is True
        assert client.get("/api/finance/transactions", headers=finance_headers).get_json()["transactions"] == []

    def test_unknown_account_is_404(self, client, chart, finance_headers):
        resp = client.post(
            "/api/finance/transactions/manual",
            json={
                "description": "x",
                "lines": [
                    {"account_code": "8888", "debit": 1},
                    {"account_code": "3000", "credit": 1},
                ],
            },
            headers=finance_headers,
        )
        assert resp.status_code == 404


class TestReportsApi:
    @pytest.fixture
    def booked(self, client, chart, finance_headers):
        client.post(
            "/api/finance/other-income",
            json={
                "amount": 50,
                "category": "Rental",
                "description": "Hall hire",
                "payment_status": "Received",
                "payment_method": "Bank Transfer",
                "income_date": "2026-03-20",
            },
            headers=finance_headers,
        )

    def test_income_statement(self, client, booked, finance_headers):
        resp = client.get("/api/finance/proper-accounting/income-statement?period=2026-03", headers=finance_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["income"]["total_cents"] == 5000

    def test_bad_period_is_400(self, client, chart, finance_headers):
        resp = client.get("/api/finance/proper-accounting/income-statement?period=2026-13", headers=finance_headers)
        assert resp.status_code == 400

    def test_account_details_requires_code(self, client, chart, finance_headers):
        resp = client.get("/api/finance/proper-accounting/account-details", headers=finance_headers)
        assert resp.status_code == 400

    def test_account_details(self, client, booked, finance_headers):
        resp = client.get(
            "/api/finance/proper-accounting/account-details?account_code=4000&year=2026&month=3",
            headers=finance_headers,
        )
        assert resp.get_json()["data"]["totals"]["credit_cents"] == 5000

    def test_balance_sheet_and_trial_balance(self, client, booked, finance_headers):
        bs = client.get("/api/finance/balance-sheet/report?as_of=2026-12-31", headers=finance_headers)
        tb = client.get("/api/finance/trial-balance/report?as_of=2026-12-31", headers=finance_headers)
        assert bs.get_json()["data"]["accounting_equation"]["is_balanced"] is True
        assert tb.get_json()["data"]["is_balanced"] is True

    def test_cash_flow_defaults_to_cash_basis(self, client, booked, finance_headers):
        resp = client.get("/api/finance/cash-flow/report?period=2026", headers=finance_headers)
        data = resp.get_json()["data"]
        assert data["basis"] == "cash"
        assert data["net_change_in_cash_cents"] == 5000
        assert data["reconciled"] is True

    def test_general_ledger(self, client, booked, finance_headers):
        resp = client.get("/api/finance/general-ledger/1001?period=2026", headers=finance_headers)
        assert resp.get_json()["data"]["closing_balance_cents"] == 5000

        missing = client.get("/api/finance/general-ledger/8888?period=2026", headers=finance_headers)
        assert missing.status_code == 404


class TestSystem:
    def test_health(self, client, chart):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"

    def test_health_degraded_without_payables(self, client, chart):
        from conftest import deactivate

        deactivate(chart["2000"])
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "degraded"

    def test_audit_log_admin_only(self, client, chart, admin_headers, finance_headers):
        client.post(
            "/api/finance/accounts",
            json={"code": "5011", "name": "Security Services", "type": "Expense"},
            headers=admin_headers,
        )
        assert client.get("/api/finance/audit-log", headers=finance_headers).status_code == 403

        resp = client.get("/api/finance/audit-log?action=account.create", headers=admin_headers)
        logs = resp.get_json()["logs"]
        assert [log["record_id"] for log in logs] == ["5011"]
