"""
Record store for profiles, customer links and subscription records.

Every write is a single-row statement keyed by user id, so concurrent
deliveries for the same user converge without in-process locking.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import select, text, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql import func

from dotts_api.core.errors import StoreUnavailableError
from dotts_api.db.models import BillingCustomer, Profile, Subscription

logger = logging.getLogger(__name__)

# Columns callers may set through upsert_subscription
SUBSCRIPTION_FIELDS = (
    "stripe_customer_id",
    "stripe_subscription_id",
    "price_id",
    "status",
    "current_period_end",
)


@dataclass(frozen=True)
class ProfileRecord:
    id: str
    email: Optional[str]
    plan: str


@dataclass(frozen=True)
class SubscriptionRecord:
    user_id: str
    stripe_customer_id: Optional[str]
    stripe_subscription_id: Optional[str]
    price_id: Optional[str]
    status: str
    current_period_end: Optional[datetime]


class RecordStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except (OperationalError, InterfaceError, PoolTimeoutError) as e:
            db.rollback()
            logger.error(f"Record store unavailable: {e}")
            raise StoreUnavailableError(f"Record store unavailable: {e.__class__.__name__}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _insert(self, db: Session, model):
        if db.get_bind().dialect.name == "postgresql":
            return postgresql.insert(model)
        return sqlite.insert(model)

    def ping(self) -> bool:
        with self._session() as db:
            db.execute(text("SELECT 1"))
        return True

    # Profiles

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        with self._session() as db:
            profile = db.get(Profile, user_id)
            if not profile:
                return None
            return ProfileRecord(id=profile.id, email=profile.email, plan=profile.plan)

    def set_plan(self, user_id: str, plan: str) -> None:
        with self._session() as db:
            db.execute(
                update(Profile)
                .where(Profile.id == user_id)
                .values(plan=plan, updated_at=func.now())
            )

    # Customer links

    def get_customer_id(self, user_id: str) -> Optional[str]:
        with self._session() as db:
            return db.execute(
                select(BillingCustomer.stripe_customer_id).where(BillingCustomer.user_id == user_id)
            ).scalar_one_or_none()

    def find_user_by_customer(self, customer_id: str) -> Optional[str]:
        with self._session() as db:
            return db.execute(
                select(BillingCustomer.user_id).where(BillingCustomer.stripe_customer_id == customer_id)
            ).scalar_one_or_none()

    def link_customer(self, user_id: str, customer_id: str) -> Optional[str]:
        """
        Link user_id to customer_id unless the user is already linked.

        Returns the customer id stored for the user afterwards, which is the
        existing one when another writer got there first. Returns None when
        customer_id is already linked to a different user.
        """
        try:
            with self._session() as db:
                stmt = (
                    self._insert(db, BillingCustomer)
                    .values(user_id=user_id, stripe_customer_id=customer_id)
                    .on_conflict_do_nothing(index_elements=["user_id"])
                )
                db.execute(stmt)
        except IntegrityError:
            owner = self.find_user_by_customer(customer_id)
            logger.warning(f"customer_id={customer_id} is linked to user_id={owner}, not linking user_id={user_id}")
            return None

        linked = self.get_customer_id(user_id)
        if linked != customer_id:
            logger.info(f"Customer link already present: user_id={user_id}, customer_id={linked}")
        return linked

    # Subscriptions

    def get_subscription(self, user_id: str) -> Optional[SubscriptionRecord]:
        with self._session() as db:
            row = db.execute(
                select(Subscription).where(Subscription.user_id == user_id)
            ).scalar_one_or_none()
            if not row:
                return None
            return SubscriptionRecord(
                user_id=row.user_id,
                stripe_customer_id=row.stripe_customer_id,
                stripe_subscription_id=row.stripe_subscription_id,
                price_id=row.price_id,
                status=row.status,
                current_period_end=row.current_period_end,
            )

    def upsert_subscription(self, user_id: str, values: Dict[str, Any]) -> None:
        """Insert or update the user's subscription record in one statement."""
        unknown = set(values) - set(SUBSCRIPTION_FIELDS)
        if unknown:
            raise ValueError(f"Unknown subscription fields: {sorted(unknown)}")
        if "status" not in values:
            raise ValueError("status is required")

        with self._session() as db:
            stmt = self._insert(db, Subscription).values(user_id=user_id, **values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id"],
                set_={**values, "updated_at": func.now()},
            )
            db.execute(stmt)
