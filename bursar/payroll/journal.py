from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List

from bursar.core.errors import InvalidArgument, UnbalancedJournalError
from bursar.core.utils import atomic_write_json
from bursar.payroll.engine import POSTED, PayrollRun

# Payroll slice of the school chart of accounts
CHART_OF_ACCOUNTS = {
    "1020": "Assets:Bank Account - KCB",
    "2100": "Liabilities:Salary Payable",
    "2110": "Liabilities:PAYE Payable",
    "2120": "Liabilities:NSSF Payable",
    "2130": "Liabilities:NHIF/SHIF Payable",
    "5010": "Expenses:Salaries - Teaching",
    "5020": "Expenses:Salaries - Non-Teaching",
}

BANK = "1020"
SALARY_PAYABLE = "2100"
SALARY_EXPENSE_ACADEMIC = "5010"
SALARY_EXPENSE_ADMIN = "5020"

STATUTORY_ACCOUNTS = {
    "PAYE": "2110",
    "NSSF": "2120",
    "NHIF": "2130",
}

def expense_account_for(department: str) -> str:
    dept = (department or "").lower()
    if "non-teaching" in dept or "non teaching" in dept:
        return SALARY_EXPENSE_ADMIN
    if "teaching" in dept or "academic" in dept:
        return SALARY_EXPENSE_ACADEMIC
    return SALARY_EXPENSE_ADMIN


@dataclass
class JournalLine:
    account: str
    debit: float = 0.0
    credit: float = 0.0
    description: str = ""


@dataclass
class JournalEntry:
    entry_date: str
    description: str
    reference: str
    lines: List[JournalLine] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.utcnow().isoformat() + "Z")

    def __post_init__(self):
        for line in self.lines:
            if line.account not in CHART_OF_ACCOUNTS:
                raise InvalidArgument(f"Unknown account {line.account}")
        if not self.is_balanced():
            raise UnbalancedJournalError(
                f"Entry {self.reference} debits {self.total_debit} != credits {self.total_credit}"
            )

    @property
    def total_debit(self) -> float:
        return sum(l.debit for l in self.lines)

    @property
    def total_credit(self) -> float:
        return sum(l.credit for l in self.lines)

    def is_balanced(self) -> bool:
        return abs(self.total_debit - self.total_credit) < 1e-6

    def to_dict(self) -> Dict:
        return {
            "date": self.entry_date,
            "description": self.description,
            "ref": self.reference,
            "lines": [vars(l) for l in self.lines],
            "created_at": self.created_at,
        }


def _transfer(entry_date: str, description: str, reference: str,
              debit_acct: str, credit_acct: str, amount: float) -> JournalEntry:
    amount = round(amount, 2)
    return JournalEntry(entry_date, description, reference, [
        JournalLine(debit_acct, debit=amount, description=description),
        JournalLine(credit_acct, credit=amount, description=description),
    ])


class PayrollJournal:
    """Turns payroll runs into general ledger entries."""

    def _posting_amounts(self, run: PayrollRun):
        """Gross per expense account and statutory totals, rounded as posted."""
        by_account: Dict[str, float] = {}
        for slip in run.payslips:
            acct = expense_account_for(slip.department)
            by_account[acct] = by_account.get(acct, 0.0) + slip.gross_salary
        deductions = {
            "PAYE": sum(p.deductions.paye for p in run.payslips),
            "NSSF": sum(p.deductions.nssf for p in run.payslips),
            "NHIF": sum(p.deductions.nhif for p in run.payslips),
        }
        return (
            {acct: round(amount, 2) for acct, amount in by_account.items()},
            {kind: round(amount, 2) for kind, amount in deductions.items()},
        )

    def build_entries(self, run: PayrollRun) -> List[JournalEntry]:
        """
        Salary expense per expense account plus one liability entry for each
        non-zero statutory deduction. Entries are dated at period end.
        """
        period = run.period
        entry_date = period.end_date.isoformat()
        entries = []

        by_account, deductions = self._posting_amounts(run)
        for acct in sorted(by_account):
            if by_account[acct] <= 0:
                continue
            entries.append(_transfer(
                entry_date,
                f"Salary expense for {period.period_name} - {CHART_OF_ACCOUNTS[acct].split(' - ')[-1]}",
                f"PAYROLL-{period.period_key}-{acct}",
                acct, SALARY_PAYABLE, by_account[acct],
            ))

        for kind, amount in deductions.items():
            if amount <= 0:
                continue
            entries.append(_transfer(
                entry_date,
                f"{kind} deduction for {period.period_name}",
                f"{kind}-{period.period_key}",
                SALARY_PAYABLE, STATUTORY_ACCOUNTS[kind], amount,
            ))
        return entries

    def build_payment_entry(self, run: PayrollRun, payment_date: date) -> JournalEntry:
        """Pay out whatever build_entries left on Salary Payable."""
        if run.period.status != POSTED:
            raise InvalidArgument("Payroll must be posted to the ledger before recording payment")
        by_account, deductions = self._posting_amounts(run)
        total_net = sum(a for a in by_account.values() if a > 0) - sum(a for a in deductions.values() if a > 0)
        return _transfer(
            payment_date.isoformat(),
            f"Net salary payment for {run.period.period_name}",
            f"NETPAY-{run.period.period_key}",
            SALARY_PAYABLE, BANK, total_net,
        )

    def build_statutory_payment(self, kind: str, amount: float, payment_date: date, reference: str) -> JournalEntry:
        kind = kind.upper()
        if kind not in STATUTORY_ACCOUNTS:
            raise InvalidArgument(f"Unknown statutory deduction {kind}")
        if amount <= 0:
            raise InvalidArgument(f"Remittance amount must be positive, got {amount}")
        return _transfer(
            payment_date.isoformat(),
            f"{kind} remittance",
            reference,
            STATUTORY_ACCOUNTS[kind], BANK, amount,
        )

    def save(self, entries: List[JournalEntry], path: str):
        atomic_write_json(path, [e.to_dict() for e in entries])


def trial_balance(entries: List[JournalEntry]) -> Dict[str, float]:
    """Net balance per account, debits positive."""
    balances: Dict[str, float] = {}
    for entry in entries:
        for line in entry.lines:
            balances[line.account] = balances.get(line.account, 0.0) + line.debit - line.credit
    return {acct: round(bal, 2) for acct, bal in balances.items()}
