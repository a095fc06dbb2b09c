import logging

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from balance import BalanceValidationError
from installments import InstallmentStatus
from periods import Scope, resolve_scope
from scheduler import SchedulerManager
from schemas import (
    BalanceIn,
    CategoryIn,
    CategoryOut,
    InstallmentPaymentIn,
    InstallmentStatusOut,
    RecurringRuleIn,
    RecurringRuleOut,
    TransactionIn,
    TransactionOut,
)
from services import LedgerService, RecurringRuleService
from store import NotFoundError, PersistenceError, SqlLedgerStore

logger = logging.getLogger(__name__)

app = FastAPI(title="Ledger")

store = SqlLedgerStore()
ledger = LedgerService(store)
scheduler_manager = SchedulerManager(ledger)


def get_ledger() -> LedgerService:
    return ledger


def get_rules(ledger: LedgerService = Depends(get_ledger)) -> RecurringRuleService:
    return RecurringRuleService(ledger.store)


@app.on_event("startup")
async def startup_event():
    await ledger.load()
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"persistence_error: path={request.url.path} detail={exc}")
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


def scope_from_request(request: Request) -> Scope:
    try:
        return resolve_scope(request.query_params.get("scope"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def month_from_request(request: Request, ledger: LedgerService) -> tuple[int, int]:
    scope = resolve_scope(request.query_params.get("month"), today=ledger.clock())
    if scope.is_all:
        today = ledger.clock()
        return today.year, today.month
    return scope.year, scope.month


def _status_out(status: InstallmentStatus) -> InstallmentStatusOut:
    return InstallmentStatusOut.model_validate(status)


@app.get("/api/summary")
def api_summary(request: Request, ledger: LedgerService = Depends(get_ledger)):
    scope = scope_from_request(request)
    data = ledger.summary(scope).as_dict()
    data["top_categories"] = ledger.top_categories(scope)
    if not scope.is_all:
        data["monthly_commitment"] = ledger.monthly_commitment(scope.year, scope.month)
    return data


@app.get("/api/transactions", response_model=list[TransactionOut])
def api_transactions(request: Request, ledger: LedgerService = Depends(get_ledger)):
    return ledger.transactions_for(scope_from_request(request))


@app.post("/api/transactions", response_model=TransactionOut)
async def create_transaction(
    data: TransactionIn, ledger: LedgerService = Depends(get_ledger)
):
    return await ledger.save_transaction(data)


@app.put("/api/transactions/{transaction_id}", response_model=TransactionOut)
async def update_transaction(
    transaction_id: str,
    data: TransactionIn,
    ledger: LedgerService = Depends(get_ledger),
):
    txn = await ledger.update_transaction(transaction_id, data)
    if txn is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return txn


@app.delete("/api/transactions/{transaction_id}")
async def delete_transaction(
    transaction_id: str, ledger: LedgerService = Depends(get_ledger)
):
    await ledger.delete_transaction(transaction_id)
    return Response(status_code=204)


@app.get("/api/categories", response_model=list[CategoryOut])
def api_categories(ledger: LedgerService = Depends(get_ledger)):
    return ledger.categories


@app.post("/api/categories", response_model=CategoryOut)
async def save_category(data: CategoryIn, ledger: LedgerService = Depends(get_ledger)):
    return await ledger.save_category(data)


@app.delete("/api/categories/{category_id}")
async def delete_category(
    category_id: str, ledger: LedgerService = Depends(get_ledger)
):
    await ledger.delete_category(category_id)
    return Response(status_code=204)


@app.get("/api/balance")
def api_balance(ledger: LedgerService = Depends(get_ledger)):
    return {
        "balance": ledger.balance(),
        "initial_balance": ledger.initial_balance_cents,
    }


@app.put("/api/balance")
async def set_balance(data: BalanceIn, ledger: LedgerService = Depends(get_ledger)):
    try:
        initial = await ledger.set_actual_balance(data.actual_balance)
    except BalanceValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"balance": ledger.balance(), "initial_balance": initial}


@app.get("/api/installments", response_model=list[InstallmentStatusOut])
def api_installments(request: Request, ledger: LedgerService = Depends(get_ledger)):
    try:
        year, month = month_from_request(request, ledger)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [_status_out(s) for s in ledger.installment_schedule(year, month)]


@app.post("/api/installments/{parent_id}/pay", response_model=TransactionOut)
async def pay_installment(
    parent_id: str,
    data: InstallmentPaymentIn,
    ledger: LedgerService = Depends(get_ledger),
):
    try:
        return await ledger.pay_installment(
            parent_id, data.installment_number, data.year, data.month
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/api/recurring")
async def api_recurring(
    request: Request,
    ledger: LedgerService = Depends(get_ledger),
    rules: RecurringRuleService = Depends(get_rules),
):
    try:
        year, month = month_from_request(request, ledger)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    overview = await rules.overview(ledger.transactions, year, month)
    return [
        {
            "rule": RecurringRuleOut.model_validate(rule).model_dump(),
            "state": state.value,
        }
        for rule, state in overview
    ]


@app.post("/api/recurring", response_model=RecurringRuleOut)
async def save_recurring(
    data: RecurringRuleIn, rules: RecurringRuleService = Depends(get_rules)
):
    return await rules.save(data)


@app.post("/api/recurring/{rule_id}/toggle", response_model=RecurringRuleOut)
async def toggle_recurring(
    rule_id: str,
    active: bool,
    rules: RecurringRuleService = Depends(get_rules),
):
    try:
        return await rules.toggle(rule_id, active)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.delete("/api/recurring/{rule_id}")
async def delete_recurring(
    rule_id: str, rules: RecurringRuleService = Depends(get_rules)
):
    try:
        await rules.delete(rule_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/recurring/{rule_id}/instances", response_model=list[TransactionOut])
def recurring_instances(rule_id: str, ledger: LedgerService = Depends(get_ledger)):
    return ledger.recurring_instances(rule_id)


@app.post("/api/recurring/materialize")
async def materialize_recurring(ledger: LedgerService = Depends(get_ledger)):
    created = await ledger.materialize_recurring()
    return {"created": len(created)}


@app.post("/api/sync")
async def sync(ledger: LedgerService = Depends(get_ledger)):
    await ledger.resync()
    return {"transactions": len(ledger.transactions)}
