# dropsync/services/stores.py
"""
Database access for tokens, pending authorizations, listings, messages and job runs.

Each store takes an ``async_sessionmaker`` (or any callable returning an
``AsyncSession`` usable as an async context manager) so it can be pointed at a
test database.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError

from dropsync.core.enums import EndReason, JobStatus, JobType
from dropsync.core.exceptions import PersistenceError
from dropsync.models import ApiToken, BuyerMessage, JobRun, Listing, PendingAuthorization
from dropsync.schemas.tokens import TokenRecord

logger = logging.getLogger(__name__)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TokenStore:

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def find_latest_active(self, service: str) -> Optional[TokenRecord]:
        """Most recently created active token for the service, if any."""
        stmt = (
            select(ApiToken)
            .where(ApiToken.service == service, ApiToken.active.is_(True))
            .order_by(ApiToken.created_at.desc(), ApiToken.id.desc())
            .limit(1)
        )
        try:
            async with self.session_factory() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load token for {service}: {e}") from e

        if row is None:
            return None
        return TokenRecord(
            service=row.service,
            access_token=row.access_token,
            refresh_token=row.refresh_token,
            expires_at=_utc(row.expires_at),
            scopes=list(row.scopes or []),
        )

    async def activate(self, record: TokenRecord) -> None:
        """
        Deactivate every active token for the service, then insert the new one.

        The two steps commit separately. A crash in between leaves zero active
        rows, a concurrent writer can leave two; readers take the newest.
        """
        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(ApiToken)
                    .where(ApiToken.service == record.service, ApiToken.active.is_(True))
                    .values(active=False)
                )
                await session.commit()

                session.add(ApiToken(
                    service=record.service,
                    access_token=record.access_token,
                    refresh_token=record.refresh_token,
                    expires_at=record.expires_at,
                    scopes=list(record.scopes),
                    active=True,
                ))
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to store token for {record.service}: {e}") from e

        logger.info(f"Stored new {record.service} token expiring at {record.expires_at.isoformat()}")


class PendingAuthorizationStore:
    """Inbox for authorization codes delivered to the redirect handler."""

    def __init__(self, session_factory, ttl_seconds: int = 3600):
        self.session_factory = session_factory
        self.ttl_seconds = ttl_seconds

    def _cutoff(self) -> datetime:
        return datetime.now(timezone.utc) - timedelta(seconds=self.ttl_seconds)

    async def add(self, service: str, code: str, state: Optional[str]) -> None:
        try:
            async with self.session_factory() as session:
                session.add(PendingAuthorization(
                    service=service,
                    authorization_code=code,
                    state=state,
                    processed=False,
                ))
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to store authorization code for {service}: {e}") from e

    async def claim_next(self, service: str, state: Optional[str]) -> Optional[PendingAuthorization]:
        """
        Claim the oldest unexpired, unprocessed code for ``service`` and ``state``.

        The row is marked processed and committed before it is returned. The
        conditional update means two consumers can never both claim one row.
        """
        conditions = [
            PendingAuthorization.service == service,
            PendingAuthorization.processed.is_(False),
            PendingAuthorization.created_at >= self._cutoff(),
        ]
        if state is not None:
            conditions.append(PendingAuthorization.state == state)

        try:
            async with self.session_factory() as session:
                candidates = (await session.execute(
                    select(PendingAuthorization)
                    .where(and_(*conditions))
                    .order_by(PendingAuthorization.created_at.asc(), PendingAuthorization.id.asc())
                    .limit(5)
                )).scalars().all()

                for candidate in candidates:
                    result = await session.execute(
                        update(PendingAuthorization)
                        .where(PendingAuthorization.id == candidate.id, PendingAuthorization.processed.is_(False))
                        .values(processed=True)
                    )
                    await session.commit()
                    if result.rowcount == 1:
                        candidate.processed = True
                        return candidate
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to claim authorization code for {service}: {e}") from e
        return None

    async def purge_expired(self) -> int:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(PendingAuthorization).where(PendingAuthorization.created_at < self._cutoff())
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to purge authorization codes: {e}") from e
        return result.rowcount or 0


class ListingStore:

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def create(self, **fields) -> Listing:
        try:
            async with self.session_factory() as session:
                listing = Listing(**fields)
                session.add(listing)
                await session.commit()
                await session.refresh(listing)
                return listing
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create listing {fields.get('sku')}: {e}") from e

    async def find(self, active: Optional[bool] = None, limit: Optional[int] = None, offset: int = 0,
                   newest_first: bool = False) -> List[Listing]:
        stmt = select(Listing)
        if active is not None:
            stmt = stmt.where(Listing.active.is_(active))
        if newest_first:
            stmt = stmt.order_by(Listing.listed_at.desc(), Listing.id.desc())
        else:
            stmt = stmt.order_by(Listing.id.asc())
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def active_supplier_ids(self) -> Set[str]:
        """Every supplier-side identifier carried by an active listing."""
        stmt = select(
            Listing.supplier_product_id,
            Listing.marketplace_product_id,
            Listing.item_id_on_site,
        ).where(Listing.active.is_(True))

        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).all()

        ids: Set[str] = set()
        for row in rows:
            ids.update(value for value in row if value)
        return ids

    async def find_active_by_supplier_id(self, supplier_product_id: str) -> Optional[Listing]:
        stmt = select(Listing).where(
            Listing.active.is_(True),
            Listing.supplier_product_id == supplier_product_id,
        ).limit(1)
        async with self.session_factory() as session:
            return (await session.execute(stmt)).scalar_one_or_none()

    async def find_by_sku(self, sku: str, active_only: bool = True) -> Optional[Listing]:
        stmt = select(Listing).where(Listing.sku == sku)
        if active_only:
            stmt = stmt.where(Listing.active.is_(True))
        async with self.session_factory() as session:
            return (await session.execute(stmt.order_by(Listing.id.desc()).limit(1))).scalar_one_or_none()

    async def end_listing(self, listing_id: int, reason: EndReason) -> bool:
        return await self.end_many([listing_id], reason) == 1

    async def end_many(self, listing_ids: Iterable[int], reason: EndReason) -> int:
        """Mark active listings ended. Already-ended rows are left alone."""
        listing_ids = list(listing_ids)
        if not listing_ids:
            return 0
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(Listing)
                    .where(Listing.id.in_(listing_ids), Listing.active.is_(True))
                    .values(active=False, ended_at=datetime.now(timezone.utc), end_reason=reason.value)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to end listings {listing_ids}: {e}") from e
        return result.rowcount or 0

    async def count(self, active: Optional[bool] = None) -> int:
        stmt = select(func.count(Listing.id))
        if active is not None:
            stmt = stmt.where(Listing.active.is_(active))

        async with self.session_factory() as session:
            return (await session.execute(stmt)).scalar_one()


class JobRunStore:

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def record_run(self, job_type: JobType, status: JobStatus, message: Optional[str] = None) -> None:
        try:
            async with self.session_factory() as session:
                row = (await session.execute(
                    select(JobRun).where(JobRun.job_type == job_type.value)
                )).scalar_one_or_none()
                if row is None:
                    row = JobRun(job_type=job_type.value)
                    session.add(row)
                row.status = status.value
                row.message = message
                row.last_run_at = datetime.now(timezone.utc)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to record {job_type.value} run: {e}") from e

    async def last_runs(self) -> Dict[str, dict]:
        async with self.session_factory() as session:
            rows = (await session.execute(select(JobRun))).scalars().all()
        return {
            row.job_type: {
                "status": row.status,
                "message": row.message,
                "last_run_at": _utc(row.last_run_at).isoformat() if row.last_run_at else None,
            }
            for row in rows
        }


class MessageStore:

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def exists(self, message_id: str) -> bool:
        async with self.session_factory() as session:
            row = (await session.execute(
                select(BuyerMessage.id).where(BuyerMessage.message_id == message_id)
            )).first()
        return row is not None

    async def save(self, **fields) -> BuyerMessage:
        try:
            async with self.session_factory() as session:
                message = BuyerMessage(**fields)
                session.add(message)
                await session.commit()
                return message
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save message {fields.get('message_id')}: {e}") from e

    async def unresolved_escalations(self) -> List[BuyerMessage]:
        async with self.session_factory() as session:
            rows = (await session.execute(
                select(BuyerMessage).where(
                    BuyerMessage.escalated.is_(True),
                    BuyerMessage.resolved.is_(False),
                ).order_by(BuyerMessage.received_at.desc())
            )).scalars().all()
        return list(rows)
