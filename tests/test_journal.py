import json
from datetime import date

import pytest

from bursar.core.errors import InvalidArgument, UnbalancedJournalError
from bursar.payroll.engine import PayrollEngine, StaffMember
from bursar.payroll.journal import (
    JournalEntry, JournalLine, PayrollJournal, expense_account_for, trial_balance,
)

def _posted_run(engine):
    staff = [
        StaffMember("T001", "Grace", "Achieng", 50000, department="Teaching"),
        StaffMember("A001", "Mary", "Njeri", 20000, department="Non-Teaching"),
    ]
    run = engine.run_payroll(staff, month=3, year=2026)
    engine.approve(run)
    return run

def test_department_accounts():
    assert expense_account_for("Teaching") == "5010"
    assert expense_account_for("Academic Affairs") == "5010"
    assert expense_account_for("Non-Teaching") == "5020"
    assert expense_account_for("") == "5020"

def test_payroll_entries_balance():
    engine = PayrollEngine()
    run = _posted_run(engine)
    entries = PayrollJournal().build_entries(run)
    refs = [e.reference for e in entries]
    assert refs == ["PAYROLL-2026-03-5010", "PAYROLL-2026-03-5020",
                    "PAYE-2026-03", "NSSF-2026-03", "NHIF-2026-03"]
    assert all(e.is_balanced() for e in entries)
    assert all(e.entry_date == "2026-03-31" for e in entries)

    tb = trial_balance(entries)
    assert tb["5010"] == 50000
    assert tb["5020"] == 20000
    assert tb["2110"] == -7383.35
    assert tb["2120"] == -(2160 + 1200)
    assert tb["2130"] == -(1200 + 750)
    net = sum(p.net_salary for p in run.payslips)
    assert tb["2100"] == pytest.approx(-net, abs=0.01)

def test_salary_payment_clears_payable():
    engine = PayrollEngine()
    run = _posted_run(engine)
    journal = PayrollJournal()
    entries = journal.build_entries(run)
    with pytest.raises(InvalidArgument):
        journal.build_payment_entry(run, date(2026, 3, 31))
    engine.mark_posted(run)
    entries.append(journal.build_payment_entry(run, date(2026, 3, 31)))
    tb = trial_balance(entries)
    assert tb["2100"] == 0
    assert tb["1020"] == pytest.approx(-(70000 - 7383.35 - 3360 - 1950))

def test_zero_deductions_skipped():
    engine = PayrollEngine()
    run = engine.run_payroll([StaffMember("V01", "Vol", "Unteer", 0)], month=1, year=2026)
    assert PayrollJournal().build_entries(run) == []

def test_statutory_remittance():
    entry = PayrollJournal().build_statutory_payment("paye", 7383.35, date(2026, 4, 9), "KRA-0001")
    assert [(l.account, l.debit, l.credit) for l in entry.lines] == [
        ("2110", 7383.35, 0.0), ("1020", 0.0, 7383.35)]
    with pytest.raises(InvalidArgument):
        PayrollJournal().build_statutory_payment("HOUSING_LEVY", 100, date(2026, 4, 9), "X")
    with pytest.raises(InvalidArgument):
        PayrollJournal().build_statutory_payment("NSSF", 0, date(2026, 4, 9), "X")

def test_unbalanced_entry_rejected():
    with pytest.raises(UnbalancedJournalError):
        JournalEntry("2026-01-31", "bad", "BAD-1", [
            JournalLine("5010", debit=100.0),
            JournalLine("2100", credit=90.0),
        ])

def test_unknown_account_rejected():
    with pytest.raises(InvalidArgument):
        JournalEntry("2026-01-31", "bad", "BAD-2", [JournalLine("9999", debit=1.0), JournalLine("2100", credit=1.0)])

def test_save_entries(tmp_path):
    engine = PayrollEngine()
    journal = PayrollJournal()
    entries = journal.build_entries(_posted_run(engine))
    path = tmp_path / "journal" / "2026-03.json"
    journal.save(entries, str(path))
    data = json.loads(path.read_text())
    assert len(data) == len(entries)
    assert data[0]["ref"] == "PAYROLL-2026-03-5010"

def test_payment_clears_payable_with_fractional_cents():
    engine = PayrollEngine()
    staff = [
        StaffMember("T%03d" % i, "Staff", str(i), 33333.33 + i * 1234.567, department="Teaching")
        for i in range(7)
    ] + [
        StaffMember("A%03d" % i, "Staff", str(i), 24001.01 + i * 987.655, department="Non-Teaching",
                    days_worked=17, days_in_month=31)
        for i in range(5)
    ]
    run = engine.run_payroll(staff, month=7, year=2026)
    engine.approve(run)
    journal = PayrollJournal()
    entries = journal.build_entries(run)
    engine.mark_posted(run)
    payment = journal.build_payment_entry(run, date(2026, 7, 31))

    posted_gross = sum(l.debit for e in entries for l in e.lines if l.account in ("5010", "5020"))
    posted_deductions = sum(l.credit for e in entries for l in e.lines if l.account in ("2110", "2120", "2130"))
    assert payment.lines[0].debit == round(posted_gross - posted_deductions, 2)
    assert trial_balance(entries + [payment])["2100"] == 0
