"""
Monthly payroll runs for school staff.

A run takes the active staff list for a calendar month, works out each
member's gross pay (basic plus allowances, prorated for partial months),
applies statutory deductions and keeps the resulting payslips on a
PayrollPeriod that moves through an approval lifecycle.
"""
import calendar
import pandas as pd
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from bursar.core.config import settings
from bursar.core.errors import InvalidArgument, PayrollStateError
from bursar.core.utils import audit_log, setup_logging
from bursar.tax.statutory import DeductionResult, StatutoryDeductionCalculator, validate_gross

DRAFT = "DRAFT"
PENDING_APPROVAL = "PENDING_APPROVAL"
APPROVED = "APPROVED"
POSTED = "POSTED"
PAID = "PAID"

TRANSITIONS = {
    DRAFT: {PENDING_APPROVAL, APPROVED},
    PENDING_APPROVAL: {APPROVED, DRAFT},
    APPROVED: {POSTED},
    POSTED: {PAID},
    PAID: set(),
}

def prorate(gross: float, days_worked: float, days_in_month: float = None) -> float:
    if days_in_month is None:
        days_in_month = settings.DEFAULT_DAYS_IN_MONTH
    if days_in_month <= 0:
        raise InvalidArgument("days_in_month must be positive")
    if not 0 <= days_worked <= days_in_month:
        raise InvalidArgument(f"days_worked must be between 0 and {days_in_month}, got {days_worked}")
    return gross * (days_worked / days_in_month)


@dataclass
class StaffMember:
    staff_id: str
    first_name: str
    last_name: str
    basic_salary: float
    middle_name: str = ""
    department: str = ""
    allowances: Dict[str, float] = field(default_factory=dict)
    is_active: bool = True
    days_worked: Optional[float] = None
    days_in_month: Optional[float] = None

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p.strip() for p in parts if p and p.strip())

    @property
    def total_allowances(self) -> float:
        return sum(self.allowances.values())

    @property
    def gross_salary(self) -> float:
        return self.gross_for()

    def gross_for(self, days_in_month: float = None) -> float:
        """Basic plus allowances, prorated when `days_worked` is set.

        The member's own `days_in_month` wins over the one passed in.
        """
        gross = self.basic_salary + self.total_allowances
        if self.days_worked is not None:
            divisor = self.days_in_month if self.days_in_month is not None else days_in_month
            gross = prorate(gross, self.days_worked, divisor)
        return gross


@dataclass
class Payslip:
    staff_id: str
    staff_name: str
    department: str
    basic_salary: float
    allowances: float
    deductions: DeductionResult
    other_deductions: float = 0.0

    @property
    def gross_salary(self) -> float:
        return self.deductions.gross

    @property
    def net_salary(self) -> float:
        return self.deductions.net_salary - self.other_deductions

    def to_dict(self) -> Dict[str, object]:
        d = self.deductions.rounded()
        return {
            "staff_id": self.staff_id,
            "staff_name": self.staff_name,
            "department": self.department,
            "basic_salary": round(self.basic_salary, 2),
            "allowances": round(self.allowances, 2),
            "gross_salary": d.gross,
            "paye": d.paye,
            "nhif": d.nhif,
            "nssf": d.nssf,
            "total_deductions": d.total_deductions,
            "other_deductions": round(self.other_deductions, 2),
            "net_salary": round(self.net_salary, 2),
        }


@dataclass
class PayrollPeriod:
    month: int
    year: int
    status: str = DRAFT
    payment_date: Optional[date] = None

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise InvalidArgument(f"Month must be between 1 and 12, got {self.month}")
        if self.year < 1900:
            raise InvalidArgument(f"Implausible payroll year {self.year}")

    @property
    def period_name(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    @property
    def period_key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def start_date(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end_date(self) -> date:
        return date(self.year, self.month, self.days_in_month)

    @property
    def days_in_month(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    def transition(self, new_status: str):
        if new_status not in TRANSITIONS.get(self.status, set()):
            raise PayrollStateError(f"Cannot move payroll {self.period_key} from {self.status} to {new_status}")
        self.status = new_status


@dataclass
class PayrollRun:
    period: PayrollPeriod
    payslips: List[Payslip] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def summary(self) -> Dict[str, object]:
        total_employees = len(self.payslips)
        totals = {
            "gross": sum(p.gross_salary for p in self.payslips),
            "paye": sum(p.deductions.paye for p in self.payslips),
            "nssf": sum(p.deductions.nssf for p in self.payslips),
            "nhif": sum(p.deductions.nhif for p in self.payslips),
            "deductions": sum(p.deductions.total_deductions for p in self.payslips),
            "net": sum(p.net_salary for p in self.payslips),
        }
        return {
            "period": self.period.period_key,
            "period_name": self.period.period_name,
            "status": self.period.status,
            "total_employees": total_employees,
            "totals": {k: round(v, 2) for k, v in totals.items()},
            "averages": {
                "gross": round(totals["gross"] / total_employees, 2) if total_employees > 0 else 0,
                "net": round(totals["net"] / total_employees, 2) if total_employees > 0 else 0,
            },
        }

    def to_frame(self) -> pd.DataFrame:
        columns = ["staff_id", "staff_name", "department", "basic_salary", "allowances",
                   "gross_salary", "paye", "nhif", "nssf", "total_deductions",
                   "other_deductions", "net_salary"]
        return pd.DataFrame([p.to_dict() for p in self.payslips], columns=columns)

    def export(self, file_path: Union[str, Path]) -> Path:
        """Write payslips to Excel, or CSV when the path ends in .csv."""
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        df = self.to_frame()
        if path.suffix.lower() == ".csv":
            df.to_csv(path, index=False)
        else:
            df.to_excel(path, index=False)
        return path


class PayrollEngine:
    def __init__(self, calculator: StatutoryDeductionCalculator = None, actor: str = "system"):
        self.calculator = calculator or StatutoryDeductionCalculator()
        self.actor = actor
        self.logger = setup_logging("payroll")

    def compute_payslip(self, staff: StaffMember, period: PayrollPeriod = None) -> Payslip:
        days_in_month = period.days_in_month if period is not None else None
        gross = validate_gross(staff.gross_for(days_in_month))
        return Payslip(
            staff_id=staff.staff_id,
            staff_name=staff.full_name,
            department=staff.department,
            basic_salary=staff.basic_salary,
            allowances=staff.total_allowances,
            deductions=self.calculator.calculate(gross),
        )

    def run_payroll(self, staff: List[StaffMember], month: int, year: int) -> PayrollRun:
        period = PayrollPeriod(month=month, year=year)
        seen = set()
        for s in staff:
            if s.staff_id in seen:
                raise InvalidArgument(f"Duplicate staff id {s.staff_id} in payroll input")
            seen.add(s.staff_id)

        # compute everything before recording anything so a bad row fails the whole run
        payslips = [self.compute_payslip(s, period) for s in staff if s.is_active]
        run = PayrollRun(period=period, payslips=payslips)
        self.logger.info("Payroll %s computed for %d staff", period.period_key, len(payslips))
        audit_log("payroll", self.actor, "create", "payroll_period", period.period_key,
                  {"staff_count": len(payslips), "totals": run.summary()["totals"]})
        return run

    def _move(self, run: PayrollRun, new_status: str, **diff) -> PayrollRun:
        old_status = run.period.status
        run.period.transition(new_status)
        self.logger.info("Payroll %s moved %s -> %s", run.period.period_key, old_status, new_status)
        audit_log("payroll", self.actor, "update", "payroll_period", run.period.period_key,
                  {"from": old_status, "to": new_status, **diff})
        return run

    def submit_for_approval(self, run: PayrollRun) -> PayrollRun:
        return self._move(run, PENDING_APPROVAL)

    def approve(self, run: PayrollRun) -> PayrollRun:
        return self._move(run, APPROVED)

    def mark_posted(self, run: PayrollRun) -> PayrollRun:
        return self._move(run, POSTED)

    def mark_paid(self, run: PayrollRun, payment_date: date = None) -> PayrollRun:
        payment_date = payment_date or date.today()
        if payment_date < run.period.start_date:
            raise InvalidArgument(f"Payment date {payment_date} precedes period {run.period.period_key}")
        self._move(run, PAID, payment_date=payment_date.isoformat())
        run.period.payment_date = payment_date
        return run
