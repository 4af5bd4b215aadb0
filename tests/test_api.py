from datetime import date, timedelta

from conftest import make_budget, make_transaction


def add_transaction(client, user_id, **overrides):
    body = {
        "userId": user_id,
        "type": "expense",
        "amount": 10,
        "category": "Food & Dining",
        "description": "",
        "date": date.today().isoformat(),
    }
    body.update(overrides)
    return client.post("/api/transactions", json=body)


def test_root_and_health(client):
    assert client.get("/").status_code == 200
    assert client.get("/health").json() == {"status": "ok"}


def test_categories(client):
    categories = client.get("/api/categories").json()["categories"]
    assert "Food & Dining" in categories
    assert "Income" in categories


class TestTransactions:
    def test_create_and_list_newest_first(self, client, user):
        older = (date.today() - timedelta(days=3)).isoformat()
        response = add_transaction(client, user.id, amount=25.5, date=older, description="Lunch")
        assert response.status_code == 201
        created = response.json()
        assert created["userId"] == user.id
        assert created["description"] == "Lunch"

        add_transaction(client, user.id, type="income", amount=500, category="Income")

        transactions = client.get("/api/transactions", params={"userId": user.id}).json()["transactions"]
        assert [t["amount"] for t in transactions] == [500, 25.5]

    def test_filters(self, client, user):
        add_transaction(client, user.id, amount=1, category="Shopping")
        add_transaction(client, user.id, amount=2, category="Housing")
        add_transaction(client, user.id, type="income", amount=3, category="Income")

        expenses = client.get("/api/transactions", params={"userId": user.id, "type": "expense"})
        assert sorted(t["amount"] for t in expenses.json()["transactions"]) == [1, 2]

        housing = client.get("/api/transactions", params={"userId": user.id, "category": "Housing"})
        assert [t["amount"] for t in housing.json()["transactions"]] == [2]

    def test_scoped_by_user(self, client, storage, user):
        add_transaction(client, user.id)
        assert client.get("/api/transactions", params={"userId": 99}).json() == {"transactions": []}

    def test_validation(self, client, user):
        for bad in (
            {"amount": 0},
            {"amount": -5},
            {"amount": "lots"},
            {"type": "transfer"},
            {"category": "food & dining"},
            {"date": "19/10/2026"},
        ):
            response = add_transaction(client, user.id, **bad)
            assert response.status_code == 400, bad
            assert response.json()["detail"] == "Invalid request data"

    def test_missing_field(self, client, user):
        response = client.post("/api/transactions", json={"userId": user.id, "type": "expense"})
        assert response.status_code == 400
        assert response.json()["errors"]

    def test_unknown_user(self, client):
        assert add_transaction(client, 42).status_code == 404

    def test_expense_refreshes_budget_spent(self, client, storage, user):
        budget = storage.add_budget(make_budget(user.id, "Food & Dining", 200))
        add_transaction(client, user.id, amount=100)
        add_transaction(client, user.id, type="income", amount=100)
        assert storage.get_budget(budget.id).spent == 100


class TestBudgets:
    def test_create_and_list_with_derived_spent(self, client, storage, user):
        response = client.post(
            "/api/budgets", json={"userId": user.id, "category": "Shopping", "amount": 300}
        )
        assert response.status_code == 201
        assert response.json()["spent"] == 0

        storage.add_transaction(make_transaction(user.id, "expense", 120, "Shopping"))
        storage.add_transaction(
            make_transaction(user.id, "expense", 70, "Shopping", date.today() - timedelta(days=62))
        )

        [budget] = client.get("/api/budgets", params={"userId": user.id}).json()["budgets"]
        assert budget["category"] == "Shopping"
        assert budget["spent"] == 120

    def test_duplicate_category(self, client, user):
        body = {"userId": user.id, "category": "Housing", "amount": 1000}
        assert client.post("/api/budgets", json=body).status_code == 201
        response = client.post("/api/budgets", json=body)
        assert response.status_code == 409
        assert "already exists" in response.json()["detail"]

    def test_income_budget_rejected(self, client, user):
        response = client.post(
            "/api/budgets", json={"userId": user.id, "category": "Income", "amount": 10}
        )
        assert response.status_code == 400

    def test_patch_spent(self, client, storage, user):
        budget = storage.add_budget(make_budget(user.id, "Utilities", 150))
        response = client.patch(f"/api/budgets/{budget.id}/spent", json={"spent": 75})
        assert response.status_code == 200
        assert response.json()["spent"] == 75

        assert client.patch(f"/api/budgets/{budget.id}/spent", json={"spent": -1}).status_code == 400
        assert client.patch(f"/api/budgets/{budget.id}/spent", json={"spent": "x"}).status_code == 400
        assert client.patch("/api/budgets/999/spent", json={"spent": 1}).status_code == 404


class TestGoals:
    def goal_body(self, user_id, **overrides):
        body = {
            "userId": user_id,
            "name": "New laptop",
            "targetAmount": 1200,
            "currentAmount": 300,
            "deadline": (date.today() + timedelta(days=30)).isoformat(),
            "category": "Purchase",
        }
        body.update(overrides)
        return body

    def test_create_and_list(self, client, user):
        response = client.post("/api/goals", json=self.goal_body(user.id))
        assert response.status_code == 201
        goal = response.json()
        assert goal["isCompleted"] is False
        assert goal["progress"] == 25.0
        assert goal["overdue"] is False
        assert goal["note"] == ""

        goals = client.get("/api/goals", params={"userId": user.id}).json()["goals"]
        assert [g["name"] for g in goals] == ["New laptop"]

    def test_progress_auto_completes(self, client, user):
        goal = client.post("/api/goals", json=self.goal_body(user.id)).json()
        response = client.patch(
            f"/api/goals/{goal['id']}/progress", json={"currentAmount": 1250, "userId": user.id}
        )
        assert response.status_code == 200
        assert response.json()["isCompleted"] is True
        assert response.json()["progress"] == 100.0

    def test_manual_toggle(self, client, user):
        goal = client.post("/api/goals", json=self.goal_body(user.id)).json()
        done = client.patch(
            f"/api/goals/{goal['id']}/complete", json={"isCompleted": True, "userId": user.id}
        )
        assert done.json()["isCompleted"] is True
        reopened = client.patch(
            f"/api/goals/{goal['id']}/complete", json={"isCompleted": False, "userId": user.id}
        )
        assert reopened.json()["isCompleted"] is False

    def test_overdue_flag(self, client, user):
        past = (date.today() - timedelta(days=1)).isoformat()
        goal = client.post("/api/goals", json=self.goal_body(user.id, deadline=past)).json()
        assert goal["overdue"] is True

    def test_delete(self, client, user):
        goal = client.post("/api/goals", json=self.goal_body(user.id)).json()
        assert client.delete(f"/api/goals/{goal['id']}", params={"userId": user.id + 1}).status_code == 404
        response = client.delete(f"/api/goals/{goal['id']}", params={"userId": user.id})
        assert response.json() == {"message": "Goal deleted successfully"}
        assert client.get("/api/goals", params={"userId": user.id}).json() == {"goals": []}

    def test_invalid_goal(self, client, user):
        response = client.post("/api/goals", json=self.goal_body(user.id, targetAmount=0))
        assert response.status_code == 400


class TestFinanceData:
    def test_combined_data(self, client, storage, user):
        storage.add_budget(make_budget(user.id, "Food & Dining", 200))
        storage.add_transaction(make_transaction(user.id, "expense", 150, "Food & Dining"))

        data = client.get("/api/finance/data", params={"userId": user.id}).json()
        assert len(data["transactions"]) == 1
        assert data["budgets"][0]["spent"] == 150

    def test_storage_failure_degrades_to_empty(self, client, storage, user, monkeypatch):
        def broken(user_id):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(storage, "get_transactions", broken)
        response = client.get("/api/finance/data", params={"userId": user.id})
        assert response.status_code == 200
        assert response.json() == {"transactions": [], "budgets": []}

    def test_summary(self, client, storage, user):
        storage.add_transaction(make_transaction(user.id, "income", 1000, "Income"))
        storage.add_transaction(make_transaction(user.id, "expense", 50, "Shopping"))

        summary = client.get("/api/finance/summary", params={"userId": user.id}).json()
        assert summary["monthlyIncome"] == 1000
        assert summary["monthlyExpenses"] == 50
        assert summary["totalBalance"] == 950
        assert summary["incomeChange"] == 100
        assert summary["incomeChangeDisplay"] == "100.0%"

    def test_report_and_insights(self, client, storage, user):
        storage.add_transaction(make_transaction(user.id, "expense", 400, "Food & Dining"))

        report = client.get("/api/reports", params={"userId": user.id, "timeFrame": "year"}).json()
        assert report["timeFrame"] == "year"
        assert report["expensesByCategory"] == [{"name": "Food & Dining", "value": 400}]
        assert len(report["trend"]) == 6

        insights = client.get("/api/insights", params={"userId": user.id}).json()["insights"]
        assert insights[0]["title"] == "Savings Opportunity"


class TestAlerts:
    def test_check_is_not_repeated(self, client, storage, user):
        storage.add_budget(make_budget(user.id, "Food & Dining", 500))
        storage.add_transaction(make_transaction(user.id, "expense", 420, "Food & Dining"))

        first = client.post("/api/alerts/check", params={"userId": user.id}).json()
        assert [a["threshold"] for a in first["alerts"]] == [80]
        assert first["alerts"][0]["message"] == "You have used 84% of your Food & Dining budget."

        second = client.post("/api/alerts/check", params={"userId": user.id}).json()
        assert second["alerts"] == []

        listed = client.get("/api/alerts", params={"userId": user.id}).json()
        assert len(listed["alerts"]) == 1
        assert listed["unreadCount"] == 1

    def test_read_and_clear(self, client, storage, user):
        storage.add_budget(make_budget(user.id, "Shopping", 300))
        storage.add_budget(make_budget(user.id, "Housing", 1000))
        storage.add_transaction(make_transaction(user.id, "expense", 380, "Shopping"))
        storage.add_transaction(make_transaction(user.id, "expense", 950, "Housing"))

        raised = client.post("/api/alerts/check", params={"userId": user.id}).json()["alerts"]
        assert sorted(a["status"] for a in raised) == ["danger", "warning"]

        first_id = raised[0]["id"]
        assert client.patch(f"/api/alerts/{first_id}/read", params={"userId": user.id}).status_code == 200
        assert client.get("/api/alerts", params={"userId": user.id}).json()["unreadCount"] == 1
        assert client.patch("/api/alerts/999/read", params={"userId": user.id}).status_code == 404

        client.post("/api/alerts/read-all", params={"userId": user.id})
        assert client.get("/api/alerts", params={"userId": user.id}).json()["unreadCount"] == 0

        client.delete("/api/alerts", params={"userId": user.id})
        assert client.get("/api/alerts", params={"userId": user.id}).json()["alerts"] == []


def test_export_report(client, storage, user):
    storage.add_transaction(make_transaction(user.id, "expense", 20, "Shopping", description="Socks"))
    storage.add_transaction(make_transaction(user.id, "expense", 5, "Shopping"))
    storage.add_transaction(make_transaction(user.id, "income", 100, "Income"))

    response = client.get("/api/export-report", params={"userId": user.id})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "alice_financial_report.csv" in response.headers["content-disposition"]

    lines = response.text.splitlines()
    assert lines[0] == "Date,Type,Category,Amount,Description"
    assert f"{date.today().isoformat()},expense,Shopping,20.0,Socks" in lines
    assert "Shopping,25.0" in lines
    assert not any(line.startswith("Income,") for line in lines)
