from datetime import date

import pytest

from app.services.assistant_tools import TOOLS, UnknownToolError, execute_tool, list_tools
from app.services.transaction_service import create_transaction


@pytest.fixture
def categories(db, user_id):
    food = db.insert("categories", {"user_id": user_id, "name": "Hrana", "type": "expense", "icon": "🍔"})
    fun = db.insert("categories", {"user_id": user_id, "name": "Zabava", "type": "expense", "icon": "🎮"})
    salary = db.insert("categories", {"user_id": user_id, "name": "Plaća", "type": "income", "icon": "💶"})
    db.session.commit()
    return {"food": food, "fun": fun, "salary": salary}


@pytest.fixture
def history(db, user_id, categories):
    create_transaction(db, user_id, 1200.0, date(2025, 10, 1), "income", categories["salary"]["id"], "Plaća")
    create_transaction(db, user_id, 30.0, date(2025, 10, 5), "expense", categories["food"]["id"], "LIDL Zagreb")
    create_transaction(db, user_id, 12.5, date(2025, 10, 6), "expense", categories["food"]["id"], "Wolt narudžba")
    create_transaction(db, user_id, 59.99, date(2025, 10, 7), "expense", categories["fun"]["id"], "Steam")
    create_transaction(db, user_id, 20.0, date(2025, 9, 20), "expense", categories["food"]["id"], "Lidl")
    db.session.commit()


def test_list_tools_describes_every_tool():
    tools = {tool["name"]: tool for tool in list_tools()}

    assert set(tools) == {
        "search_transactions",
        "analyze_category_spending",
        "get_financial_overview",
        "get_available_categories",
        "create_expense_transaction",
        "modify_transaction",
    }
    assert len(tools) == len(TOOLS)
    search = tools["search_transactions"]["parameters"]
    assert "searchTerm" in search["properties"]
    assert "categoryName" in search["properties"]
    assert tools["create_expense_transaction"]["parameters"]["required"] == ["amount", "category"]


def test_unknown_tool(db, user_id):
    with pytest.raises(UnknownToolError):
        execute_tool(db, user_id, "delete_everything", {})


@pytest.mark.parametrize(
    "name,arguments",
    [
        ("search_transactions", {"type": "savings"}),
        ("search_transactions", {"unexpected": True}),
        ("create_expense_transaction", {"amount": -5, "category": "Hrana"}),
        ("create_expense_transaction", {"category": "Hrana"}),
        ("modify_transaction", {"transactionId": "x", "date": "31/12/2025"}),
    ],
)
def test_invalid_arguments_are_reported(db, user_id, name, arguments):
    result = execute_tool(db, user_id, name, arguments)

    assert result["success"] is False
    assert result["error"]


def test_search_transactions_by_term(db, user_id, history):
    result = execute_tool(db, user_id, "search_transactions", {"searchTerm": "lidl", "endDate": "2025-12-31"})

    assert result["success"] is True
    assert [t["date"] for t in result["transactions"]] == ["2025-10-05", "2025-09-20"]
    assert result["summary"]["expense_amount"] == 50.0
    assert result["transactions"][0]["category"]["name"] == "Hrana"


def test_search_transactions_by_partial_category(db, user_id, history):
    result = execute_tool(db, user_id, "search_transactions", {
        "categoryName": "zab",
        "startDate": "2025-10-01",
        "endDate": "2025-10-31",
    })

    assert result["search_criteria"]["category_found"] == "Zabava"
    assert [t["amount"] for t in result["transactions"]] == [59.99]


def test_search_transactions_sort_and_limit(db, user_id, history):
    result = execute_tool(db, user_id, "search_transactions", {
        "type": "expense",
        "sortBy": "amount",
        "sortOrder": "asc",
        "limit": 2,
        "endDate": "2025-12-31",
    })

    assert [t["amount"] for t in result["transactions"]] == [12.5, 20.0]
    assert result["summary"]["total_count"] == 2


def test_search_transactions_accepts_snake_case(db, user_id, history):
    result = execute_tool(db, user_id, "search_transactions", {"search_term": "steam", "end_date": "2025-12-31"})

    assert [t["description"] for t in result["transactions"]] == ["Steam"]


def test_analyze_category_spending(db, user_id, history):
    result = execute_tool(db, user_id, "analyze_category_spending", {
        "startDate": "2025-09-01",
        "endDate": "2025-10-31",
        "groupByMonth": True,
    })

    food, fun = result["categories"]
    assert food["category"] == "Hrana"
    assert food["total_amount"] == 62.5
    assert food["transaction_count"] == 3
    assert food["monthly_breakdown"] == {"2025-09": 20.0, "2025-10": 42.5}
    assert len(food["example_transactions"]) == 3
    assert fun["total_amount"] == 59.99
    assert result["summary"]["total_transactions"] == 4


def test_analyze_category_spending_filters_names(db, user_id, history):
    result = execute_tool(db, user_id, "analyze_category_spending", {
        "categoryNames": ["ZABAVA"],
        "startDate": "2025-10-01",
        "endDate": "2025-10-31",
        "includeTransactionExamples": False,
    })

    assert [c["category"] for c in result["categories"]] == ["Zabava"]
    assert "example_transactions" not in result["categories"][0]


def test_financial_overview_compares_previous_period(db, user_id, history):
    result = execute_tool(db, user_id, "get_financial_overview", {
        "startDate": "2025-10-01",
        "endDate": "2025-10-31",
    })

    current = result["current_period"]
    assert current["income"] == 1200.0
    assert current["expense"] == 102.49
    assert current["transaction_count"] == 4
    assert result["user_settings"]["currency"] == "EUR"

    assert [c["category"] for c in result["top_categories"]] == ["Zabava", "Hrana"]

    previous = result["previous_period"]
    assert previous["period"] == {"start": "2025-08-31", "end": "2025-09-30"}
    assert previous["expense"] == 20.0
    assert previous["changes"]["expense_change"] == 82.49


def test_available_categories_with_usage(db, user_id, history):
    result = execute_tool(db, user_id, "get_available_categories", {"type": "expense"})

    assert [c["name"] for c in result["categories"]] == ["Hrana", "Zabava"]
    assert result["categories"][0]["transaction_count"] == 3
    assert result["summary"] == {"total_categories": 2, "income_categories": 0, "expense_categories": 2}


def test_create_expense_transaction(db, user_id, categories):
    result = execute_tool(db, user_id, "create_expense_transaction", {
        "amount": 15.999,
        "category": "hrana",
        "date": "2025-11-02",
        "description": "Pekara",
    })

    assert result["success"] is True
    assert result["transaction"]["amount"] == 16.0
    assert result["transaction"]["category"] == "Hrana"
    month = db.find_one("year_history", {"user_id": user_id, "year": 2025, "month": 11})
    assert month["expense"] == pytest.approx(16.0)


def test_create_expense_transaction_requires_expense_category(db, user_id, categories):
    result = execute_tool(db, user_id, "create_expense_transaction", {"amount": 10, "category": "Plaća"})

    assert result == {"success": False, "error": "Expense category 'Plaća' not found"}
    assert db.count("transactions", {"user_id": user_id}) == 0


def test_modify_transaction(db, user_id, categories):
    created = create_transaction(db, user_id, 30.0, date(2025, 10, 5), "expense", categories["food"]["id"])
    db.session.commit()

    result = execute_tool(db, user_id, "modify_transaction", {
        "transactionId": created["id"],
        "amount": 45,
        "category": "zabava",
    })

    assert result["success"] is True
    assert result["transaction"]["amount"] == 45.0
    assert result["transaction"]["category_id"] == categories["fun"]["id"]
    month = db.find_one("year_history", {"user_id": user_id, "year": 2025, "month": 10})
    assert month["expense"] == pytest.approx(45.0)


def test_modify_missing_transaction(db, user_id):
    result = execute_tool(db, user_id, "modify_transaction", {"transactionId": "missing", "amount": 1})

    assert result["success"] is False
    assert "not found" in result["error"]
