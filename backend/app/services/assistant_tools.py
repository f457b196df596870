"""
Assistant Tools

Named tools a conversational assistant can call with JSON arguments. Each tool
has a description, a pydantic argument model (camelCase JSON, exposed as JSON
Schema) and a handler returning a JSON-serialisable dict.

Tools:
- search_transactions
- analyze_category_spending
- get_financial_overview
- get_available_categories
- create_expense_transaction
- modify_transaction
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, date as Date, timedelta
from typing import Any, Callable, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from app.database.db_service import DatabaseService
from app.services.category_service import category_lookup, find_category_by_name, list_categories
from app.services.stats_service import summarize
from app.services.transaction_classifier import INCOME, EXPENSE
from app.services.transaction_service import (
    create_transaction,
    get_transaction,
    list_transactions,
    update_transaction,
    TransactionNotFoundError,
    CategoryMismatchError,
)
from app.services.user_settings_service import get_or_create_settings

logger = logging.getLogger(__name__)

MAX_SEARCH_LIMIT = 200
MAX_EXAMPLES = 5

KindFilter = Literal["income", "expense", "both"]


class UnknownToolError(Exception):
    """Raised when a tool name is not registered."""


class ToolArguments(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    arguments: Type[ToolArguments]
    handler: Callable[[DatabaseService, str, Any], Dict[str, Any]]


TOOLS: Dict[str, Tool] = {}


def register_tool(name: str, description: str, arguments: Type[ToolArguments]):
    def decorator(handler):
        TOOLS[name] = Tool(name=name, description=description, arguments=arguments, handler=handler)
        return handler
    return decorator


def _money(value: float) -> float:
    return round(value or 0.0, 2)


def _kind_or_none(kind: str) -> Optional[str]:
    return None if kind == "both" else kind


def _start_of_month(day: date) -> date:
    return day.replace(day=1)


def _category_summary(category: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not category:
        return None
    return {
        "id": category["id"],
        "name": category["name"],
        "icon": category["icon"],
        "description": category.get("description"),
    }


# search_transactions

class SearchTransactionsArgs(ToolArguments):
    search_term: Optional[str] = Field(default=None, description="Case-insensitive keyword matched against transaction descriptions")
    category_name: Optional[str] = Field(default=None, description="Category name, exact match first then partial, case-insensitive")
    type: KindFilter = "both"
    start_date: Optional[date] = Field(default=None, description="First day (YYYY-MM-DD); all history when omitted")
    end_date: Optional[date] = Field(default=None, description="Last day (YYYY-MM-DD), inclusive; today when omitted")
    limit: int = Field(default=50, ge=1, description=f"Maximum number of transactions (capped at {MAX_SEARCH_LIMIT})")
    sort_by: Literal["date", "amount"] = "date"
    sort_order: Literal["asc", "desc"] = "desc"


@register_tool(
    "search_transactions",
    "Search the user's transactions by description keyword, category, type and date range. "
    "Use categoryName for category questions and searchTerm for merchants or keywords.",
    SearchTransactionsArgs,
)
def search_transactions(db: DatabaseService, user_id: str, args: SearchTransactionsArgs) -> Dict[str, Any]:
    end = args.end_date or date.today()
    transactions = list_transactions(db, user_id, args.start_date, end, _kind_or_none(args.type))

    if args.search_term:
        term = args.search_term.lower()
        transactions = [t for t in transactions if term in (t["description"] or "").lower()]

    category_found = None
    if args.category_name:
        category_found = find_category_by_name(db, user_id, args.category_name)
        if category_found:
            transactions = [t for t in transactions if t["category_id"] == category_found["id"]]

    transactions.sort(key=lambda t: t[args.sort_by], reverse=args.sort_order == "desc")
    limit = min(args.limit, MAX_SEARCH_LIMIT)
    transactions = transactions[:limit]

    categories = category_lookup(db, user_id)
    income = sum(t["amount"] for t in transactions if t["type"] == INCOME)
    expense = sum(t["amount"] for t in transactions if t["type"] == EXPENSE)

    return {
        "success": True,
        "transactions": [
            {
                "id": t["id"],
                "amount": t["amount"],
                "description": t["description"],
                "date": t["date"],
                "type": t["type"],
                "category": _category_summary(categories.get(t["category_id"])),
            }
            for t in transactions
        ],
        "summary": {
            "total_count": len(transactions),
            "total_amount": _money(income + expense),
            "income_amount": _money(income),
            "expense_amount": _money(expense),
            "net_amount": _money(income - expense),
        },
        "search_criteria": {
            "search_term": args.search_term,
            "category_name": args.category_name,
            "category_found": category_found["name"] if category_found else None,
            "type": args.type,
            "start_date": args.start_date.isoformat() if args.start_date else None,
            "end_date": end.isoformat(),
            "limit": limit,
            "sort_by": args.sort_by,
            "sort_order": args.sort_order,
        },
    }


# analyze_category_spending

class AnalyzeCategorySpendingArgs(ToolArguments):
    category_names: Optional[List[str]] = Field(default=None, description="Categories to analyze (partial, case-insensitive); all when omitted")
    type: KindFilter = "expense"
    start_date: Optional[date] = Field(default=None, description="Defaults to the first day of the current month")
    end_date: Optional[date] = Field(default=None, description="Defaults to today")
    include_transaction_examples: bool = True
    group_by_month: bool = False


@register_tool(
    "analyze_category_spending",
    "Totals, counts and averages per category for a period, with optional monthly breakdown "
    "and example transactions. Defaults to the current month.",
    AnalyzeCategorySpendingArgs,
)
def analyze_category_spending(db: DatabaseService, user_id: str, args: AnalyzeCategorySpendingArgs) -> Dict[str, Any]:
    today = date.today()
    start = args.start_date or _start_of_month(today)
    end = args.end_date or today

    categories = category_lookup(db, user_id)
    wanted = [name.lower() for name in args.category_names or [] if name.strip()]

    grouped: Dict[str, Dict[str, Any]] = {}
    for transaction in list_transactions(db, user_id, start, end, _kind_or_none(args.type)):
        category = categories.get(transaction["category_id"])
        name = category["name"] if category else "Unknown"
        if wanted and not any(w in name.lower() for w in wanted):
            continue

        entry = grouped.setdefault(name, {
            "category": name,
            "type": transaction["type"],
            "icon": category["icon"] if category else "",
            "description": (category or {}).get("description") or "",
            "total_amount": 0.0,
            "transaction_count": 0,
            "monthly_breakdown": defaultdict(float),
            "examples": [],
        })
        entry["total_amount"] += transaction["amount"]
        entry["transaction_count"] += 1
        entry["monthly_breakdown"][transaction["date"][:7]] += transaction["amount"]
        if len(entry["examples"]) < MAX_EXAMPLES:
            entry["examples"].append({
                "amount": transaction["amount"],
                "description": transaction["description"],
                "date": transaction["date"],
            })

    results = []
    for entry in grouped.values():
        result = {
            "category": entry["category"],
            "type": entry["type"],
            "icon": entry["icon"],
            "description": entry["description"],
            "total_amount": _money(entry["total_amount"]),
            "transaction_count": entry["transaction_count"],
            "average_amount": _money(entry["total_amount"] / entry["transaction_count"]),
        }
        if args.group_by_month:
            result["monthly_breakdown"] = {
                month: _money(amount) for month, amount in sorted(entry["monthly_breakdown"].items())
            }
        if args.include_transaction_examples:
            result["example_transactions"] = entry["examples"]
        results.append(result)

    results.sort(key=lambda r: r["total_amount"], reverse=True)

    return {
        "success": True,
        "categories": results,
        "summary": {
            "total_categories": len(results),
            "total_amount": _money(sum(r["total_amount"] for r in results)),
            "total_transactions": sum(r["transaction_count"] for r in results),
        },
        "period": {"start": start.isoformat(), "end": end.isoformat()},
    }


# get_financial_overview

class FinancialOverviewArgs(ToolArguments):
    start_date: Optional[date] = Field(default=None, description="Defaults to the first day of the current month")
    end_date: Optional[date] = Field(default=None, description="Defaults to today")
    include_top_categories: bool = True
    top_categories_limit: int = Field(default=5, ge=1)
    compare_with_previous_period: bool = True


def _period_totals(db: DatabaseService, user_id: str, start: date, end: date):
    transactions = list_transactions(db, user_id, start, end)
    income = sum(t["amount"] for t in transactions if t["type"] == INCOME)
    expense = sum(t["amount"] for t in transactions if t["type"] == EXPENSE)
    return transactions, income, expense


@register_tool(
    "get_financial_overview",
    "Income, expenses, savings and savings rate for a period, with the user's currency and "
    "savings goal, top expense categories and a comparison with the previous period of the same length.",
    FinancialOverviewArgs,
)
def get_financial_overview(db: DatabaseService, user_id: str, args: FinancialOverviewArgs) -> Dict[str, Any]:
    today = date.today()
    start = args.start_date or _start_of_month(today)
    end = args.end_date or today

    transactions, income, expense = _period_totals(db, user_id, start, end)
    current = summarize(income, expense)
    user_settings = get_or_create_settings(db, user_id)
    savings_goal = user_settings["savings_goal"] or 0.0

    result = {
        "success": True,
        "current_period": {
            **current,
            "transaction_count": len(transactions),
            "period": {"start": start.isoformat(), "end": end.isoformat()},
        },
        "user_settings": {
            "currency": user_settings["currency"],
            "savings_goal": savings_goal,
            "savings_goal_progress": _money(current["savings"] / savings_goal * 100) if savings_goal > 0 else 0.0,
        },
    }

    if args.include_top_categories:
        categories = category_lookup(db, user_id)
        totals: Dict[str, float] = defaultdict(float)
        for transaction in transactions:
            if transaction["type"] == EXPENSE:
                totals[transaction["category_id"]] += transaction["amount"]

        top = sorted(totals.items(), key=lambda item: item[1], reverse=True)[:args.top_categories_limit]
        result["top_categories"] = [
            {
                "category": categories[category_id]["name"] if category_id in categories else "Unknown",
                "icon": categories[category_id]["icon"] if category_id in categories else "",
                "amount": _money(amount),
                "percentage": _money(amount / expense * 100) if expense > 0 else 0.0,
            }
            for category_id, amount in top
        ]

    if args.compare_with_previous_period:
        # Previous window has the same number of days and ends the day before ``start``
        span = (end - start).days + 1
        previous_end = start - timedelta(days=1)
        previous_start = start - timedelta(days=span)
        _, previous_income, previous_expense = _period_totals(db, user_id, previous_start, previous_end)
        previous = summarize(previous_income, previous_expense)
        result["previous_period"] = {
            **previous,
            "period": {"start": previous_start.isoformat(), "end": previous_end.isoformat()},
            "changes": {
                "income_change": _money(income - previous_income),
                "income_change_percent": _money((income - previous_income) / previous_income * 100) if previous_income > 0 else 0.0,
                "expense_change": _money(expense - previous_expense),
                "expense_change_percent": _money((expense - previous_expense) / previous_expense * 100) if previous_expense > 0 else 0.0,
                "savings_change": _money(current["savings"] - previous["savings"]),
            },
        }

    return result


# get_available_categories

class AvailableCategoriesArgs(ToolArguments):
    type: KindFilter = "both"
    include_usage_stats: bool = True


@register_tool(
    "get_available_categories",
    "List the user's income and expense categories, optionally with transaction counts and totals.",
    AvailableCategoriesArgs,
)
def get_available_categories(db: DatabaseService, user_id: str, args: AvailableCategoriesArgs) -> Dict[str, Any]:
    categories = list_categories(db, user_id, _kind_or_none(args.type))

    usage: Dict[str, List[float]] = defaultdict(list)
    if args.include_usage_stats:
        for transaction in list_transactions(db, user_id):
            usage[transaction["category_id"]].append(transaction["amount"])

    results = []
    for category in categories:
        entry = {
            "name": category["name"],
            "icon": category["icon"],
            "type": category["type"],
            "description": category.get("description"),
            "created_at": category.get("created_at"),
        }
        if args.include_usage_stats:
            amounts = usage.get(category["id"], [])
            total = sum(amounts)
            entry["transaction_count"] = len(amounts)
            entry["total_amount"] = _money(total)
            entry["average_amount"] = _money(total / len(amounts)) if amounts else 0.0
        results.append(entry)

    return {
        "success": True,
        "categories": results,
        "summary": {
            "total_categories": len(categories),
            "income_categories": sum(1 for c in categories if c["type"] == INCOME),
            "expense_categories": sum(1 for c in categories if c["type"] == EXPENSE),
        },
    }


# create_expense_transaction

class CreateExpenseArgs(ToolArguments):
    amount: float = Field(gt=0)
    category: str = Field(min_length=1, description="Name of an existing expense category")
    date: Optional[Date] = Field(default=None, description="YYYY-MM-DD, defaults to today")
    description: Optional[str] = None


@register_tool(
    "create_expense_transaction",
    "Record a new expense in one of the user's existing expense categories. Dates are YYYY-MM-DD.",
    CreateExpenseArgs,
)
def create_expense_transaction(db: DatabaseService, user_id: str, args: CreateExpenseArgs) -> Dict[str, Any]:
    category = find_category_by_name(db, user_id, args.category, EXPENSE)
    if not category:
        return {"success": False, "error": f"Expense category '{args.category}' not found"}

    transaction = create_transaction(
        db,
        user_id,
        amount=round(args.amount, 2),
        day=args.date or date.today(),
        kind=EXPENSE,
        category_id=category["id"],
        description=args.description or "",
    )
    db.session.commit()
    logger.info(f"Assistant created expense {transaction['id']} for user {user_id}")

    return {
        "success": True,
        "transaction": {
            "id": transaction["id"],
            "amount": transaction["amount"],
            "category": category["name"],
            "date": transaction["date"],
            "description": transaction["description"],
        },
        "message": f"Expense of {transaction['amount']:.2f} recorded in '{category['name']}' on {transaction['date']}",
    }


# modify_transaction

class ModifyTransactionArgs(ToolArguments):
    transaction_id: str = Field(min_length=1)
    amount: Optional[float] = Field(default=None, gt=0)
    category: Optional[str] = Field(default=None, description="New category name, same type as the transaction")
    date: Optional[Date] = None
    description: Optional[str] = None


@register_tool(
    "modify_transaction",
    "Change the amount, category, date or description of an existing transaction.",
    ModifyTransactionArgs,
)
def modify_transaction(db: DatabaseService, user_id: str, args: ModifyTransactionArgs) -> Dict[str, Any]:
    existing = get_transaction(db, user_id, args.transaction_id)

    changes = {
        "amount": round(args.amount, 2) if args.amount is not None else None,
        "date": args.date,
        "description": args.description,
    }
    if args.category is not None:
        category = find_category_by_name(db, user_id, args.category, existing["type"])
        if not category:
            return {"success": False, "error": f"{existing['type'].capitalize()} category '{args.category}' not found"}
        changes["category_id"] = category["id"]

    updated = update_transaction(db, user_id, args.transaction_id, changes)
    db.session.commit()

    return {
        "success": True,
        "transaction": {
            "id": updated["id"],
            "amount": updated["amount"],
            "category_id": updated["category_id"],
            "date": updated["date"],
            "description": updated["description"],
        },
    }


def list_tools() -> List[Dict[str, Any]]:
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.arguments.model_json_schema(by_alias=True),
        }
        for tool in TOOLS.values()
    ]


def execute_tool(db: DatabaseService, user_id: str, name: str, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate the arguments and run a tool.

    Invalid arguments and domain errors come back as {"success": False, "error": ...}
    so the assistant can correct itself.

    Raises:
        UnknownToolError: no tool with this name
    """
    tool = TOOLS.get(name)
    if tool is None:
        raise UnknownToolError(f"Unknown tool: {name}")

    try:
        args = tool.arguments.model_validate(arguments or {})
    except ValidationError as e:
        logger.info(f"Invalid arguments for tool {name}: {e.error_count()} error(s)")
        return {"success": False, "error": str(e)}

    logger.debug(f"Running tool {name} for user {user_id}")
    try:
        return tool.handler(db, user_id, args)
    except (TransactionNotFoundError, CategoryMismatchError) as e:
        db.session.rollback()
        return {"success": False, "error": str(e)}
