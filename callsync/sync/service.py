"""Persistence of reconciled call updates and their side effects"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from callsync.errors import UnroutableCallError
from callsync.models.call import CallRecord, AgentCallSession, ContactActivity
from callsync.models.organization import Contact
from callsync.models.provider import ProviderSettings
from callsync.sync.normalizer import CallUpdate, is_observed
from callsync.sync.reconciler import (
    CreateActivity,
    UpsertSession,
    SESSION_ENDED,
    reconcile,
    snapshot,
)

logger = structlog.get_logger()

# Two writers inserting the same provider call id: the loser retries as an update
MAX_APPLY_ATTEMPTS = 3


@dataclass
class ApplyResult:
    record: CallRecord
    created: bool
    status: str
    activity_created: bool


class CallSyncService:
    """Applies call updates from either ingress path against the store"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, provider_call_id: str) -> Optional[CallRecord]:
        result = await self.db.execute(
            select(CallRecord).where(CallRecord.provider_call_id == provider_call_id)
        )
        return result.scalar_one_or_none()

    async def find_provider_settings(self, update: CallUpdate) -> Optional[ProviderSettings]:
        """Configuration owning a call: by account sid, then by ExoPhone"""
        if is_observed(update.account_sid):
            result = await self.db.execute(
                select(ProviderSettings)
                .where(ProviderSettings.account_sid == update.account_sid)
                .order_by(ProviderSettings.is_active.desc(), ProviderSettings.created_at)
                .limit(1)
            )
            provider_settings = result.scalar_one_or_none()
            if provider_settings is not None:
                return provider_settings

        candidates = set()
        for number in (update.to_number, update.from_number):
            if is_observed(number):
                candidates.update(phone_variants(number))
        if not candidates:
            return None

        result = await self.db.execute(
            select(ProviderSettings)
            .where(ProviderSettings.caller_id.in_(sorted(candidates)))
            .order_by(ProviderSettings.is_active.desc(), ProviderSettings.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def apply(
        self,
        update: CallUpdate,
        org_id: Optional[UUID] = None,
        agent_id: Optional[UUID] = None,
        contact_id: Optional[UUID] = None,
    ) -> ApplyResult:
        """
        Merge one update and commit it with its side effects.

        ``org_id`` is only needed when the call has not been stored yet.
        ``agent_id`` and ``contact_id`` fill links the record does not have.
        On failure the transaction is rolled back and the record keeps its
        last committed state.
        """
        for attempt in range(1, MAX_APPLY_ATTEMPTS + 1):
            try:
                result = await self._apply_once(update, org_id, agent_id, contact_id)
                await self.db.commit()
                return result
            except IntegrityError:
                await self.db.rollback()
                if attempt == MAX_APPLY_ATTEMPTS:
                    raise
                logger.info(
                    "Concurrent write on call, retrying",
                    provider_call_id=update.provider_call_id,
                    attempt=attempt,
                )
            except Exception:
                await self.db.rollback()
                raise

    async def _apply_once(
        self,
        update: CallUpdate,
        org_id: Optional[UUID],
        agent_id: Optional[UUID],
        contact_id: Optional[UUID],
    ) -> ApplyResult:
        record = await self._load_for_update(update.provider_call_id)
        outcome = reconcile(snapshot(record) if record else None, update)

        if record is None:
            if org_id is None:
                raise UnroutableCallError(
                    f"No organization for new call {update.provider_call_id}"
                )
            record = CallRecord(org_id=org_id, agent_id=agent_id, contact_id=contact_id, **outcome.changes)
            self.db.add(record)
        else:
            for name, value in outcome.changes.items():
                setattr(record, name, value)
            if record.agent_id is None and agent_id is not None:
                record.agent_id = agent_id
            if record.contact_id is None and contact_id is not None:
                record.contact_id = contact_id

        if record.contact_id is None:
            record.contact_id = await self.resolve_contact(record.org_id, counterpart_numbers(record))

        await self.db.flush()

        activity_created = False
        for effect in outcome.effects:
            if isinstance(effect, CreateActivity):
                await self._create_activity(record)
                activity_created = True
            elif isinstance(effect, UpsertSession):
                await self._upsert_session(record, effect.status)

        await self.db.flush()

        logger.info(
            "Call record inserted" if outcome.created else "Call record updated",
            provider_call_id=record.provider_call_id,
            org_id=str(record.org_id),
            status=record.status,
            source=update.source,
            fields=sorted(name for name in outcome.changes if name != "raw_provider_payload"),
        )

        return ApplyResult(
            record=record,
            created=outcome.created,
            status=outcome.status,
            activity_created=activity_created,
        )

    async def _load_for_update(self, provider_call_id: str) -> Optional[CallRecord]:
        result = await self.db.execute(
            select(CallRecord)
            .where(CallRecord.provider_call_id == provider_call_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def resolve_contact(self, org_id: UUID, numbers: List[str]) -> Optional[UUID]:
        """Best-effort phone match; a miss leaves the call unlinked"""
        candidates = set()
        suffixes = set()
        for number in numbers:
            candidates.update(phone_variants(number))
            national = national_number(number)
            if national:
                suffixes.add(national)
        if not candidates:
            return None

        # Stored numbers may carry any country prefix
        matches = [Contact.phone.in_(sorted(candidates))]
        matches.extend(Contact.phone.like(f"%{suffix}") for suffix in sorted(suffixes))

        result = await self.db.execute(
            select(Contact.id)
            .where(Contact.org_id == org_id, or_(*matches))
            .order_by(Contact.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _create_activity(self, record: CallRecord) -> ContactActivity:
        label = "Outbound" if record.direction == "outbound" else "Inbound"
        activity = ContactActivity(
            org_id=record.org_id,
            contact_id=record.contact_id,
            call_record_id=record.id,
            activity_type="call",
            subject=f"{label} call - {record.status}",
            description=f"Call duration: {record.conversation_duration_sec or 0} seconds",
            created_by=record.agent_id,
            completed_at=record.ended_at or datetime.utcnow(),
            call_duration_sec=record.conversation_duration_sec,
        )
        self.db.add(activity)
        await self.db.flush()
        record.activity_id = activity.id

        logger.info(
            "Call activity created",
            provider_call_id=record.provider_call_id,
            activity_id=str(activity.id),
            contact_id=str(record.contact_id) if record.contact_id else None,
        )
        return activity

    async def _upsert_session(self, record: CallRecord, status: str) -> Optional[AgentCallSession]:
        result = await self.db.execute(
            select(AgentCallSession)
            .where(AgentCallSession.provider_call_id == record.provider_call_id)
            .with_for_update()
        )
        session = result.scalar_one_or_none()

        if session is None:
            if record.agent_id is None:
                return None
            session = AgentCallSession(
                org_id=record.org_id,
                agent_id=record.agent_id,
                contact_id=record.contact_id,
                provider_call_id=record.provider_call_id,
                status=status,
                started_at=record.started_at or datetime.utcnow(),
            )
            self.db.add(session)
        elif session.status != SESSION_ENDED and session.status != status:
            session.status = status
        else:
            return session

        if session.contact_id is None:
            session.contact_id = record.contact_id
        if status == SESSION_ENDED and session.ended_at is None:
            session.ended_at = record.ended_at or datetime.utcnow()

        logger.info(
            "Agent session updated",
            provider_call_id=record.provider_call_id,
            agent_id=str(session.agent_id),
            status=status,
        )
        return session


def counterpart_numbers(record: CallRecord) -> List[str]:
    """Customer-side number(s) of a call, most likely first"""
    if record.direction == "inbound":
        numbers = [record.from_number]
    elif record.direction == "outbound":
        numbers = [record.to_number]
    else:
        numbers = [record.to_number, record.from_number]
    return [number for number in numbers if number]


def national_number(number: Optional[str]) -> Optional[str]:
    """Last ten digits, the part of a number that survives prefix changes"""
    digits = re.sub(r"\D", "", number or "")
    return digits[-10:] if len(digits) >= 10 else None


def phone_variants(number: Optional[str]) -> List[str]:
    """Spellings a stored contact phone may use for the same number"""
    if not number:
        return []
    digits = re.sub(r"\D", "", number)
    if len(digits) < 6:
        return [number.strip()]
    national = digits[-10:]
    return list(dict.fromkeys([
        number.strip(),
        digits,
        f"+{digits}",
        national,
        f"0{national}",
    ]))
