"""
Attendance state machine: turns a scanned QR token into a check-in or a
check-out.

Per (employee, local work day) the state is *no record*, OPEN or CLOSED:

    no record --scan--> OPEN      (CHECK_IN, new record)
    OPEN      --scan--> CLOSED    (CHECK_OUT, same record)
    CLOSED    --scan--> OPEN      (CHECK_IN, new record)   if the site allows re-entry
    CLOSED    --scan--> rejected  (DayAlreadyClosed)       otherwise

The token is consumed in its own committed transaction *before* the
attendance write.  If that write then fails the token stays spent and the
employee has to scan a fresh code; nothing here retries.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from presence.core.cipher import DecryptionError, TokenCipher
from presence.core.clock import Clock, ensure_utc, local_day, utcnow
from presence.core.config import settings
from presence.core.exceptions import (DayAlreadyClosed, EmployeeNotFound,
                                      InternalError, InvalidToken,
                                      PresenceConflict, TokenAlreadyUsed,
                                      TokenExpired, TokenNotFound)
from presence.models.attendance import (SOURCE_QR, STATUS_CLOSED, STATUS_OPEN,
                                        AttendanceRecord)
from presence.models.employee import Employee
from presence.repositories.attendance import AttendanceRepository
from presence.repositories.employees import EmployeeRef, EmployeeRepository
from presence.repositories.office_settings import OfficeSettingsRepository
from presence.repositories.presence_tokens import PresenceTokenStore
from presence.services.classifier import (ArrivalBand, DepartureBand,
                                          SitePolicy, arrival_band,
                                          departure_band)

logger = logging.getLogger(__name__)


class PresenceEvent(str, enum.Enum):
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"


@dataclass(frozen=True)
class PresenceOutcome:
    event: PresenceEvent
    record: AttendanceRecord
    employee: Employee
    arrival_band: ArrivalBand
    departure_band: DepartureBand


class AttendanceStateMachine:
    def __init__(
        self,
        cipher: TokenCipher,
        tokens: PresenceTokenStore | None = None,
        employees: EmployeeRepository | None = None,
        records: AttendanceRepository | None = None,
        offices: OfficeSettingsRepository | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.cipher = cipher
        self.tokens = tokens or PresenceTokenStore()
        self.employees = employees or EmployeeRepository()
        self.records = records or AttendanceRepository()
        self.offices = offices or OfficeSettingsRepository()
        self.clock = clock

    async def confirm_presence(
        self,
        db: AsyncSession,
        cipher_text: str,
        employee_ref: EmployeeRef,
        device_id: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
        is_half_day: bool = False,
    ) -> PresenceOutcome:
        # 1. decrypt
        try:
            raw_value = self.cipher.decrypt(cipher_text)
        except DecryptionError as exc:
            logger.warning("Rejected undecryptable presence token: %s", exc)
            raise InvalidToken() from exc

        # 2. token lifecycle
        now = self.clock()
        token = await self.tokens.lookup_by_raw_value(db, raw_value)
        if token is None:
            raise TokenNotFound()
        if token.used:
            raise TokenAlreadyUsed()
        if now > ensure_utc(token.expires_at):
            raise TokenExpired()

        # 3. identity
        employee = await self.employees.resolve(db, employee_ref)
        if employee is None:
            raise EmployeeNotFound()

        office = await self.offices.get_or_create(db, token.site_id or settings.DEFAULT_SITE_ID)
        policy = SitePolicy.from_office(office)
        today = local_day(now, policy.tz)

        # 4. rejected before spending the token when the day is already done
        if not policy.allow_reentry:
            await self._ensure_day_not_closed(db, employee.id, today)

        # a rollback below expires every loaded instance
        employee_id, token_id = employee.id, token.id

        # 5. consume
        if not await self.tokens.consume(db, token_id, now):
            logger.warning("Presence token %d lost a double-spend race", token_id)
            raise TokenAlreadyUsed()

        # 6./7. toggle
        try:
            event, record = await self._toggle(
                db,
                employee,
                today,
                now,
                office.site_id,
                policy,
                device_id=device_id,
                latitude=latitude,
                longitude=longitude,
                is_half_day=is_half_day,
            )
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception(
                "Attendance write failed for employee %d after token %d was spent",
                employee_id,
                token_id,
            )
            raise InternalError() from exc

        logger.info(
            "%s for %s (%s) at %s",
            event.value,
            employee.name,
            employee.employee_code,
            now.isoformat(),
        )
        return PresenceOutcome(
            event=event,
            record=record,
            employee=employee,
            arrival_band=arrival_band(record.check_in_time, policy.tz, policy.punctuality),
            departure_band=departure_band(record.check_out_time, policy.tz, policy.punctuality),
        )

    async def _ensure_day_not_closed(
        self, db: AsyncSession, employee_id: int, today: date
    ) -> None:
        latest = await self.records.get_latest_for_day(db, employee_id, today)
        if latest is not None and latest.status == STATUS_CLOSED:
            raise DayAlreadyClosed()

    async def _toggle(
        self,
        db: AsyncSession,
        employee: Employee,
        today: date,
        now: datetime,
        site_id: str,
        policy: SitePolicy,
        device_id: str | None,
        latitude: float | None,
        longitude: float | None,
        is_half_day: bool,
    ) -> tuple[PresenceEvent, AttendanceRecord]:
        open_record = await self.records.get_open_for_day(db, employee.id, today)

        if open_record is not None:
            extra: dict[str, object] = {}
            if latitude is not None and longitude is not None:
                extra.update(check_out_latitude=latitude, check_out_longitude=longitude)
            if not await self.records.close(db, open_record.id, now, **extra):
                raise PresenceConflict()
            await db.refresh(open_record)
            return PresenceEvent.CHECK_OUT, open_record

        if not policy.allow_reentry:
            # a concurrent scan may have closed the day since step 4
            await self._ensure_day_not_closed(db, employee.id, today)

        record = AttendanceRecord(
            employee_id=employee.id,
            site_id=site_id,
            work_day=today,
            check_in_time=now,
            status=STATUS_OPEN,
            is_half_day=is_half_day,
            source=SOURCE_QR,
            device_id=device_id,
            latitude=latitude,
            longitude=longitude,
            created_at=now,
            updated_at=now,
        )
        try:
            record = await self.records.add(db, record)
        except IntegrityError as exc:
            await db.rollback()
            raise PresenceConflict() from exc
        return PresenceEvent.CHECK_IN, record
