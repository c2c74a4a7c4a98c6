"""
HTTP routes.

Handlers stay thin: parse the request, call a flow, shape the JSON.
Errors are raised as domain exceptions and turned into responses by the
handlers in fintracker.api.errors.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request

from fintracker.api.schemas import (
    CategoriesResponse,
    LoginRequest,
    LoginResponse,
    VerifyResponse,
)
from fintracker.audit import create_correlation_id
from fintracker.models.expense import CATEGORIES, ExpenseDraft, ExpenseUpdate
from fintracker.orchestrator import AppComponents


router = APIRouter()


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


@router.get("/health")
async def health(components: AppComponents = Depends(get_components)):
    return {
        "status": "OK",
        "message": "FinTracker Backend is running",
        "storage": components.expense_storage.backend_name,
        "expenses": await components.expense_storage.count_expenses(),
    }


# Auth routes

@router.post("/auth/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    components: AppComponents = Depends(get_components),
):
    token, user = await components.auth_flow.login(
        credentials.username,
        credentials.password,
        correlation_id=create_correlation_id(),
    )
    return LoginResponse(token=token, user=user)


@router.get("/auth/verify", response_model=VerifyResponse)
async def verify(
    token: Optional[str] = Query(None),
    authorization: Optional[str] = Header(None),
    components: AppComponents = Depends(get_components),
):
    user = await components.auth_flow.verify(token or _bearer_token(authorization))
    return VerifyResponse(user=user)


@router.get("/categories", response_model=CategoriesResponse)
async def categories():
    return CategoriesResponse(categories=CATEGORIES)


# Expense routes

@router.get("/expenses")
async def list_expenses(
    user_id: Optional[str] = Query(None, alias="userId"),
    month: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
    components: AppComponents = Depends(get_components),
):
    expenses = await components.expense_flow.list_expenses(user_id, month=month, year=year)
    return {"expenses": [expense.to_api_dict() for expense in expenses]}


@router.post("/expenses")
async def create_expense(
    draft: ExpenseDraft,
    components: AppComponents = Depends(get_components),
):
    expense, warnings = await components.expense_flow.create_expense(
        draft, correlation_id=create_correlation_id()
    )
    return {"success": True, "expense": expense.to_api_dict(), "warnings": warnings}


@router.put("/expenses/{expense_id}")
async def update_expense(
    expense_id: str,
    update: ExpenseUpdate,
    components: AppComponents = Depends(get_components),
):
    expense, warnings = await components.expense_flow.update_expense(
        expense_id, update, correlation_id=create_correlation_id()
    )
    return {"success": True, "expense": expense.to_api_dict(), "warnings": warnings}


@router.delete("/expenses/{expense_id}")
async def delete_expense(
    expense_id: str,
    components: AppComponents = Depends(get_components),
):
    await components.expense_flow.delete_expense(
        expense_id, correlation_id=create_correlation_id()
    )
    return {"success": True}


# Dashboard route

@router.get("/dashboard")
async def dashboard(
    user_id: Optional[str] = Query(None, alias="userId"),
    as_of: Optional[date] = Query(None, alias="asOf"),
    components: AppComponents = Depends(get_components),
):
    summary = await components.dashboard_flow.get_dashboard(user_id, as_of=as_of)
    return summary.to_api_dict()
