import logging
import os
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
    func,
    insert,
    select,
    update,
)

from pocketwatch.bill_projection import Bill, Occurrence, occurrences_in_window, resolve_current_occurrence
from pocketwatch.calendar_math import ONE_DAY
from pocketwatch.pay_period import PayPeriod, PaySchedule, locate_pay_period
from pocketwatch.recurrence import (
    BILL_FREQUENCIES,
    ONE_TIME,
    PAY_FREQUENCIES,
    validate_frequency,
)
from pocketwatch.summary import (
    MonthlySummary,
    PayPeriodSummary,
    build_dashboard,
    monthly_summary,
    pay_period_summary,
    sort_bills_by_current_occurrence,
)

logging.basicConfig(level=os.getenv("POCKETWATCH_LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

app = FastAPI()

frontend_origin = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

database_url = os.getenv("DATABASE_URL", "sqlite:///./pocketwatch.db")
connect_args = {}
if database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(database_url, connect_args=connect_args)
metadata = MetaData()

PAY_SCHEDULE_ID = 1

bills = Table(
    "bills",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("due_date", Date, nullable=False),
    Column("frequency", String(20), nullable=False),
    # NULL marks bills saved before the flag existed.
    Column("existing_recurring", Boolean),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

pay_schedule = Table(
    "pay_schedule",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("last_payday", Date, nullable=False),
    Column("frequency", String(20), nullable=False),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
)


@app.on_event("startup")
def init_db() -> None:
    metadata.create_all(engine)


def today_provider() -> date:
    return date.today()


def get_reference_date(today: date | None = Query(None)) -> date:
    if today is not None:
        return today
    return today_provider()


class BillPayload(BaseModel):
    name: str
    amount: Decimal
    due_date: date | None = None
    frequency: str = "monthly"
    existing_recurring: bool | None = None

    @classmethod
    def validate_payload(cls, payload: "BillPayload") -> "BillPayload":
        payload.name = payload.name.strip()
        if not payload.name:
            raise ValueError("Bill name is required.")
        if payload.amount <= 0:
            raise ValueError("Amount must be positive.")
        if payload.due_date is None:
            raise ValueError("Next due date is required.")
        payload.frequency = validate_frequency(payload.frequency, BILL_FREQUENCIES)
        if payload.frequency == ONE_TIME:
            payload.existing_recurring = False
        return payload


class BillResponse(BaseModel):
    id: str
    name: str
    amount: Decimal
    due_date: date
    frequency: str
    existing_recurring: bool
    current_due_date: date | None = None
    created_at: datetime | None = None


class PaySchedulePayload(BaseModel):
    amount: Decimal
    last_payday: date | None = None
    frequency: str = "bi-weekly"

    @classmethod
    def validate_payload(cls, payload: "PaySchedulePayload") -> "PaySchedulePayload":
        if payload.amount <= 0:
            raise ValueError("Pay amount must be positive.")
        if payload.last_payday is None:
            raise ValueError("Last payday is required.")
        payload.frequency = validate_frequency(payload.frequency, PAY_FREQUENCIES)
        return payload


class PayScheduleResponse(BaseModel):
    amount: Decimal
    last_payday: date
    frequency: str
    updated_at: datetime | None = None


class PayPeriodResponse(BaseModel):
    start: date
    end: date
    last_day: date
    stalled: bool = False


class OccurrenceEntry(BaseModel):
    date: date
    amount: Decimal
    bill_id: str
    name: str


class OccurrencesResponse(BaseModel):
    start: date
    end: date
    total: Decimal
    occurrences: list[OccurrenceEntry]
    stalled_bill_ids: list[str] = []


class PayPeriodSummaryResponse(BaseModel):
    period: PayPeriodResponse
    pay_amount: Decimal
    bills_total: Decimal
    leftover: Decimal
    due_bills: list[OccurrenceEntry]
    stalled_bill_ids: list[str] = []


class MonthlySummaryResponse(BaseModel):
    month: date
    income: Decimal
    bills: Decimal
    net: Decimal
    stalled_bill_ids: list[str] = []


class DashboardResponse(BaseModel):
    setup_required: bool
    pay_period: PayPeriodSummaryResponse | None = None
    monthly: MonthlySummaryResponse | None = None


def row_to_bill(row) -> Bill:
    existing_recurring = row["existing_recurring"]
    return Bill(
        id=row["id"],
        name=row["name"],
        amount=row["amount"],
        due_date=row["due_date"],
        frequency=row["frequency"],
        existing_recurring=True if existing_recurring is None else bool(existing_recurring),
    )


def bill_response(row, current_due_date: date | None = None) -> BillResponse:
    bill = row_to_bill(row)
    return BillResponse(
        id=bill.id,
        name=bill.name,
        amount=bill.amount,
        due_date=bill.due_date,
        frequency=bill.frequency,
        existing_recurring=bill.existing_recurring,
        current_due_date=current_due_date,
        created_at=row["created_at"],
    )


def pay_period_response(period: PayPeriod) -> PayPeriodResponse:
    return PayPeriodResponse(
        start=period.start,
        end=period.end,
        last_day=max(period.start, period.end - ONE_DAY),
        stalled=period.stalled,
    )


def occurrence_entry(occurrence: Occurrence) -> OccurrenceEntry:
    return OccurrenceEntry(
        date=occurrence.date,
        amount=occurrence.amount,
        bill_id=occurrence.bill.id,
        name=occurrence.bill.name,
    )


def pay_period_summary_response(summary: PayPeriodSummary) -> PayPeriodSummaryResponse:
    return PayPeriodSummaryResponse(
        period=pay_period_response(summary.period),
        pay_amount=summary.pay_amount,
        bills_total=summary.bills_total,
        leftover=summary.leftover,
        due_bills=[occurrence_entry(occurrence) for occurrence in summary.due_bills],
        stalled_bill_ids=summary.stalled,
    )


def monthly_summary_response(summary: MonthlySummary) -> MonthlySummaryResponse:
    return MonthlySummaryResponse(
        month=summary.month,
        income=summary.income,
        bills=summary.bills,
        net=summary.net,
        stalled_bill_ids=summary.stalled,
    )


def list_bills() -> list[Bill]:
    with engine.begin() as conn:
        rows = conn.execute(select(bills)).mappings().all()
    return [row_to_bill(row) for row in rows]


def get_pay_schedule() -> PaySchedule | None:
    with engine.begin() as conn:
        row = conn.execute(
            select(pay_schedule).where(pay_schedule.c.id == PAY_SCHEDULE_ID)
        ).mappings().first()
    if not row:
        return None
    return PaySchedule(
        amount=row["amount"],
        last_payday=row["last_payday"],
        frequency=row["frequency"],
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/bills", response_model=list[BillResponse])
def list_bills_endpoint(today: date = Depends(get_reference_date)) -> list[BillResponse]:
    with engine.begin() as conn:
        rows = conn.execute(select(bills)).mappings().all()
    rows_by_id = {row["id"]: row for row in rows}
    ordered = sort_bills_by_current_occurrence((row_to_bill(row) for row in rows), today)
    return [bill_response(rows_by_id[bill.id], current) for bill, current in ordered]


@app.post("/bills", response_model=BillResponse)
def create_bill(payload: BillPayload, today: date = Depends(get_reference_date)) -> BillResponse:
    try:
        payload = BillPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    stmt = (
        insert(bills)
        .values(
            id=uuid4().hex,
            name=payload.name,
            amount=payload.amount,
            due_date=payload.due_date,
            frequency=payload.frequency,
            existing_recurring=bool(payload.existing_recurring),
        )
        .returning(*bills.c)
    )
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()

    if not row:
        raise HTTPException(status_code=500, detail="Failed to create bill.")
    logger.info("Added bill %s (%s).", row["id"], row["name"])
    return bill_response(row, resolve_current_occurrence(row_to_bill(row), today))


@app.put("/bills/{bill_id}", response_model=BillResponse)
def update_bill(
    bill_id: str,
    payload: BillPayload,
    today: date = Depends(get_reference_date),
) -> BillResponse:
    try:
        payload = BillPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    values = {
        "name": payload.name,
        "amount": payload.amount,
        "due_date": payload.due_date,
        "frequency": payload.frequency,
    }
    # An edit that leaves the flag out keeps whatever the bill already had.
    if payload.existing_recurring is not None:
        values["existing_recurring"] = payload.existing_recurring
    stmt = update(bills).where(bills.c.id == bill_id).values(**values).returning(*bills.c)
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()

    if not row:
        raise HTTPException(status_code=404, detail="Bill not found.")
    return bill_response(row, resolve_current_occurrence(row_to_bill(row), today))


@app.delete("/bills/{bill_id}")
def delete_bill(bill_id: str) -> dict:
    stmt = bills.delete().where(bills.c.id == bill_id)
    with engine.begin() as conn:
        result = conn.execute(stmt)
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Bill not found.")
    logger.info("Deleted bill %s.", bill_id)
    return {"status": "deleted"}


@app.get("/pay-schedule", response_model=PayScheduleResponse)
def read_pay_schedule() -> PayScheduleResponse:
    with engine.begin() as conn:
        row = conn.execute(
            select(pay_schedule).where(pay_schedule.c.id == PAY_SCHEDULE_ID)
        ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Pay schedule not configured.")
    return PayScheduleResponse(
        amount=row["amount"],
        last_payday=row["last_payday"],
        frequency=row["frequency"],
        updated_at=row["updated_at"],
    )


@app.put("/pay-schedule", response_model=PayScheduleResponse)
def replace_pay_schedule(payload: PaySchedulePayload) -> PayScheduleResponse:
    try:
        payload = PaySchedulePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        conn.execute(pay_schedule.delete())
        row = conn.execute(
            insert(pay_schedule)
            .values(
                id=PAY_SCHEDULE_ID,
                amount=payload.amount,
                last_payday=payload.last_payday,
                frequency=payload.frequency,
            )
            .returning(*pay_schedule.c)
        ).mappings().first()

    if not row:
        raise HTTPException(status_code=500, detail="Failed to save pay schedule.")
    logger.info("Pay schedule set to %s every %s from %s.", row["amount"], row["frequency"], row["last_payday"])
    return PayScheduleResponse(
        amount=row["amount"],
        last_payday=row["last_payday"],
        frequency=row["frequency"],
        updated_at=row["updated_at"],
    )


@app.delete("/pay-schedule")
def delete_pay_schedule() -> dict:
    with engine.begin() as conn:
        result = conn.execute(pay_schedule.delete())
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Pay schedule not configured.")
    return {"status": "deleted"}


@app.get("/pay-period", response_model=PayPeriodResponse | None)
def current_pay_period(today: date = Depends(get_reference_date)) -> PayPeriodResponse | None:
    schedule = get_pay_schedule()
    if schedule is None:
        return None
    return pay_period_response(locate_pay_period(schedule, today))


@app.get("/pay-period/summary", response_model=PayPeriodSummaryResponse | None)
def current_pay_period_summary(
    today: date = Depends(get_reference_date),
) -> PayPeriodSummaryResponse | None:
    summary = pay_period_summary(get_pay_schedule(), list_bills(), today)
    if summary is None:
        return None
    return pay_period_summary_response(summary)


@app.get("/monthly-summary", response_model=MonthlySummaryResponse | None)
def current_monthly_summary(
    today: date = Depends(get_reference_date),
) -> MonthlySummaryResponse | None:
    summary = monthly_summary(get_pay_schedule(), list_bills(), today)
    if summary is None:
        return None
    return monthly_summary_response(summary)


@app.get("/dashboard", response_model=DashboardResponse)
def dashboard(today: date = Depends(get_reference_date)) -> DashboardResponse:
    schedule = get_pay_schedule()
    result = build_dashboard(schedule, list_bills(), today)
    return DashboardResponse(
        setup_required=schedule is None,
        pay_period=pay_period_summary_response(result.pay_period) if result.pay_period else None,
        monthly=monthly_summary_response(result.monthly) if result.monthly else None,
    )


@app.get("/occurrences", response_model=OccurrencesResponse)
def bill_occurrences(
    start_date: date = Query(...),
    end_date: date = Query(...),
) -> OccurrencesResponse:
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="Start date must be on or before end date.")
    totals = occurrences_in_window(list_bills(), start_date, end_date)
    return OccurrencesResponse(
        start=start_date,
        end=end_date,
        total=totals.total,
        occurrences=[occurrence_entry(occurrence) for occurrence in totals.occurrences],
        stalled_bill_ids=totals.stalled,
    )
