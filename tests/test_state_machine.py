"""Tests for the check-in / check-out state machine."""

import asyncio
from datetime import date

import pytest
from sqlalchemy import func, select

from presence.core.exceptions import (DayAlreadyClosed, EmployeeNotFound,
                                      InvalidToken, PresenceConflict,
                                      TokenAlreadyUsed, TokenExpired,
                                      TokenNotFound)
from presence.models.attendance import AttendanceRecord
from presence.models.employee import Employee
from presence.repositories.employees import EmployeeRef
from presence.repositories.office_settings import OfficeSettingsRepository
from presence.repositories.presence_tokens import PresenceTokenStore
from presence.services.classifier import ArrivalBand, DepartureBand
from presence.services.issuer import PresenceTokenIssuer
from presence.services.state_machine import (AttendanceStateMachine,
                                             PresenceEvent)

from conftest import ist


@pytest.fixture
def machine(cipher, clock) -> AttendanceStateMachine:
    return AttendanceStateMachine(cipher, clock=clock)


@pytest.fixture
def issue(database, cipher, clock):
    async def _issue(site_id: str = "default"):
        async with database.session_factory() as session:
            return await PresenceTokenIssuer(cipher, clock=clock).rotate(session, site_id)

    return _issue


@pytest.fixture
def scan(database, machine):
    async def _scan(cipher_text: str, ref: EmployeeRef, **kwargs):
        async with database.session_factory() as session:
            return await machine.confirm_presence(session, cipher_text, ref, **kwargs)

    return _scan


async def _records(database) -> list[AttendanceRecord]:
    async with database.session_factory() as session:
        result = await session.execute(select(AttendanceRecord).order_by(AttendanceRecord.id))
        return list(result.scalars().all())


async def _token_used(database, raw_value: str) -> bool:
    async with database.session_factory() as session:
        token = await PresenceTokenStore().lookup_by_raw_value(session, raw_value)
        return token.used


# ── Happy path ──────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_first_scan_checks_in(make_employee, issue, scan, database):
    employee = await make_employee()
    issued = await issue()

    outcome = await scan(issued.cipher_text, EmployeeRef.by_code("EMP-001"))

    assert outcome.event == PresenceEvent.CHECK_IN
    assert outcome.employee.id == employee.id
    assert outcome.record.status == "OPEN"
    assert outcome.record.work_day == date(2026, 10, 19)
    assert outcome.arrival_band == ArrivalBand.APPRECIATED
    assert outcome.departure_band == DepartureBand.NOT_CHECKED_OUT
    assert await _token_used(database, issued.raw_value) is True


@pytest.mark.asyncio
async def test_morning_in_evening_out(make_employee, issue, scan, clock, database):
    await make_employee()

    first = await issue()
    check_in = await scan(first.cipher_text, EmployeeRef.by_code("EMP-001"))

    clock.set(ist(2026, 10, 19, 18, 30))
    second = await issue()
    check_out = await scan(
        second.cipher_text, EmployeeRef.by_code("EMP-001"), latitude=12.97, longitude=77.59
    )

    assert check_out.event == PresenceEvent.CHECK_OUT
    assert check_out.record.id == check_in.record.id
    assert check_out.record.status == "CLOSED"
    assert check_out.arrival_band == ArrivalBand.APPRECIATED
    assert check_out.departure_band == DepartureBand.ON_TIME

    records = await _records(database)
    assert len(records) == 1
    assert records[0].check_out_latitude == pytest.approx(12.97)
    assert records[0].latitude is None


@pytest.mark.asyncio
async def test_session_flow_resolves_employee_by_user(make_user, make_employee, issue, scan):
    user = await make_user("employee")
    employee = await make_employee(user_id=user.id)
    issued = await issue()

    outcome = await scan(issued.cipher_text, EmployeeRef.by_user(user.id), device_id="phone-1")

    assert outcome.employee.id == employee.id
    assert outcome.record.device_id == "phone-1"


@pytest.mark.asyncio
async def test_events_alternate_over_a_day(make_employee, issue, scan, clock, database):
    await make_employee()
    events = []
    for _ in range(5):
        issued = await issue()
        events.append((await scan(issued.cipher_text, EmployeeRef.by_code("EMP-001"))).event)
        clock.advance(minutes=30)

    assert events == [
        PresenceEvent.CHECK_IN,
        PresenceEvent.CHECK_OUT,
        PresenceEvent.CHECK_IN,
        PresenceEvent.CHECK_OUT,
        PresenceEvent.CHECK_IN,
    ]
    records = await _records(database)
    assert [r.status for r in records] == ["CLOSED", "CLOSED", "OPEN"]


@pytest.mark.asyncio
async def test_half_day_flag_is_stored(make_employee, issue, scan):
    await make_employee()
    issued = await issue()
    outcome = await scan(issued.cipher_text, EmployeeRef.by_code("EMP-001"), is_half_day=True)
    assert outcome.record.is_half_day is True


@pytest.mark.asyncio
async def test_after_midnight_scan_starts_a_new_work_day(
    make_employee, issue, scan, clock, database
):
    await make_employee()
    clock.set(ist(2026, 10, 18, 23, 50))
    await scan((await issue()).cipher_text, EmployeeRef.by_code("EMP-001"))

    # 00:10 local: yesterday's OPEN record does not count for today
    clock.set(ist(2026, 10, 19, 0, 10))
    outcome = await scan((await issue()).cipher_text, EmployeeRef.by_code("EMP-001"))

    assert outcome.event == PresenceEvent.CHECK_IN
    assert outcome.record.work_day == date(2026, 10, 19)
    assert [r.work_day for r in await _records(database)] == [
        date(2026, 10, 18),
        date(2026, 10, 19),
    ]


# ── Token rejections ────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_expired_token_is_rejected_and_left_unused(
    make_employee, issue, scan, clock, database
):
    await make_employee()
    issued = await issue()
    clock.advance(seconds=31)

    with pytest.raises(TokenExpired):
        await scan(issued.cipher_text, EmployeeRef.by_code("EMP-001"))

    assert await _token_used(database, issued.raw_value) is False
    assert await _records(database) == []


@pytest.mark.asyncio
async def test_token_valid_until_the_last_second(make_employee, issue, scan, clock):
    await make_employee()
    issued = await issue()
    clock.advance(seconds=30)
    outcome = await scan(issued.cipher_text, EmployeeRef.by_code("EMP-001"))
    assert outcome.event == PresenceEvent.CHECK_IN


@pytest.mark.asyncio
async def test_reused_token_is_rejected(make_employee, issue, scan, database):
    await make_employee()
    issued = await issue()
    await scan(issued.cipher_text, EmployeeRef.by_code("EMP-001"))

    with pytest.raises(TokenAlreadyUsed):
        await scan(issued.cipher_text, EmployeeRef.by_code("EMP-001"))
    assert len(await _records(database)) == 1


@pytest.mark.asyncio
async def test_garbage_is_an_invalid_token(make_employee, scan):
    await make_employee()
    with pytest.raises(InvalidToken):
        await scan("not-a-token", EmployeeRef.by_code("EMP-001"))


@pytest.mark.asyncio
async def test_never_issued_token_is_not_found(make_employee, scan, cipher):
    await make_employee()
    with pytest.raises(TokenNotFound):
        await scan(cipher.encrypt("1760847600000-deadbeef"), EmployeeRef.by_code("EMP-001"))


@pytest.mark.asyncio
async def test_unknown_employee_does_not_spend_the_token(issue, scan, database):
    issued = await issue()
    with pytest.raises(EmployeeNotFound):
        await scan(issued.cipher_text, EmployeeRef.by_code("NOBODY"))
    assert await _token_used(database, issued.raw_value) is False


@pytest.mark.asyncio
async def test_inactive_employee_is_not_found(make_employee, issue, scan, database):
    employee = await make_employee()
    async with database.session_factory() as session:
        row = await session.get(Employee, employee.id)
        row.is_active = False
        await session.commit()

    with pytest.raises(EmployeeNotFound):
        await scan((await issue()).cipher_text, EmployeeRef.by_code("EMP-001"))


# ── Re-entry policy ─────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_closed_day_rejects_when_reentry_disabled(
    make_employee, issue, scan, clock, database
):
    await make_employee()
    async with database.session_factory() as session:
        await OfficeSettingsRepository().update(session, "default", {"allow_reentry": False})

    await scan((await issue()).cipher_text, EmployeeRef.by_code("EMP-001"))
    clock.advance(hours=8)
    await scan((await issue()).cipher_text, EmployeeRef.by_code("EMP-001"))

    clock.advance(minutes=5)
    third = await issue()
    with pytest.raises(DayAlreadyClosed):
        await scan(third.cipher_text, EmployeeRef.by_code("EMP-001"))

    # rejected before the token was spent
    assert await _token_used(database, third.raw_value) is False
    assert len(await _records(database)) == 1


# ── Concurrency ─────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_double_spend_has_exactly_one_winner(make_employee, issue, scan, database):
    await make_employee()
    issued = await issue()

    results = await asyncio.gather(
        scan(issued.cipher_text, EmployeeRef.by_code("EMP-001")),
        scan(issued.cipher_text, EmployeeRef.by_code("EMP-001")),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, BaseException)]
    losers = [r for r in results if isinstance(r, BaseException)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], TokenAlreadyUsed)
    assert len(await _records(database)) == 1


@pytest.mark.asyncio
async def test_concurrent_scans_never_leave_two_open_records(
    make_employee, issue, scan, database
):
    await make_employee()
    first, second = await issue(), await issue()

    results = await asyncio.gather(
        scan(first.cipher_text, EmployeeRef.by_code("EMP-001")),
        scan(second.cipher_text, EmployeeRef.by_code("EMP-001")),
        return_exceptions=True,
    )

    for r in results:
        if isinstance(r, BaseException):
            assert isinstance(r, PresenceConflict)
    events = [r.event for r in results if not isinstance(r, BaseException)]
    assert events.count(PresenceEvent.CHECK_IN) == 1

    async with database.session_factory() as session:
        open_count = await session.scalar(
            select(func.count())
            .select_from(AttendanceRecord)
            .where(AttendanceRecord.status == "OPEN")
        )
    assert open_count <= 1
