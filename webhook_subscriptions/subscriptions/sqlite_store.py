"""SQLite-based subscription store.

Persists subscriptions and their delivery history with aiosqlite.
Uniqueness of (owner, event) and of result ids per subscription is
enforced by the schema, which is what makes concurrent creates and
re-reported results safe beyond the service's own checks.
"""

import os
import uuid
from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from webhook_subscriptions.errors import SubscriptionConflictError
from webhook_subscriptions.subscriptions.models import (
    SubscriptionConfig,
    SubscriptionDeliveryResult,
    WebhookSubscription,
)
from webhook_subscriptions.subscriptions.store import SubscriptionStore

logger = structlog.get_logger(__name__)

# Default database path
DEFAULT_DB_PATH = "./data/subscriptions.db"


class SqliteSubscriptionStore(SubscriptionStore):
    """SQLite-based storage for subscriptions and delivery history.

    Example:
        store = SqliteSubscriptionStore()
        await store.initialize()
        subscription_id = await store.add(subscription)
        history = await store.search_history(subscription_id, 100)
    """

    def __init__(self, db_path: str | None = None) -> None:
        """Initialize the subscription store.

        Args:
            db_path: Path to SQLite database file.
                    Defaults to SUBSCRIPTION_DB_PATH env var or ./data/subscriptions.db
        """
        self._db_path = db_path or os.environ.get("SUBSCRIPTION_DB_PATH", DEFAULT_DB_PATH)
        self._connection: aiosqlite.Connection | None = None
        self._logger = logger.bind(component="subscription_store")

    async def initialize(self) -> None:
        """Initialize the database and create tables."""
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._create_tables()
        self._logger.info("subscription_store_initialized", db_path=self._db_path)

    async def _create_tables(self) -> None:
        """Create the subscription and history tables if they don't exist."""
        assert self._connection is not None

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS subscriptions (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                event TEXT NOT NULL,
                created_by_id TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                url TEXT NOT NULL,
                secret TEXT,
                content_type TEXT NOT NULL,
                created_date_utc TEXT NOT NULL,
                last_modified_date_utc TEXT NOT NULL,
                UNIQUE (created_by_id, event)
            )
        """)
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS delivery_results (
                id TEXT NOT NULL COLLATE NOCASE,
                subscription_id TEXT NOT NULL,
                status_code INTEGER NOT NULL,
                status_description TEXT,
                attempted_date_utc TEXT NOT NULL,
                PRIMARY KEY (subscription_id, id)
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_subscriptions_event ON subscriptions(event)
        """)
        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_delivery_results_attempted
            ON delivery_results(subscription_id, attempted_date_utc DESC)
        """)

        await self._connection.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def find(self, user_id: str) -> list[WebhookSubscription] | None:
        """Find all subscriptions owned by a user."""
        assert self._connection is not None

        cursor = await self._connection.execute(
            "SELECT * FROM subscriptions WHERE created_by_id = ? ORDER BY created_date_utc",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_subscription(row) for row in rows]

    async def get_by_event(self, user_id: str, event: str) -> WebhookSubscription | None:
        """Get the subscription a user holds for an event."""
        assert self._connection is not None

        cursor = await self._connection.execute(
            "SELECT * FROM subscriptions WHERE created_by_id = ? AND event = ?",
            (user_id, event),
        )
        row = await cursor.fetchone()
        return self._row_to_subscription(row) if row else None

    async def get(self, subscription_id: str) -> WebhookSubscription | None:
        """Get a subscription by id."""
        assert self._connection is not None

        cursor = await self._connection.execute(
            "SELECT * FROM subscriptions WHERE id = ?",
            (subscription_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_subscription(row) if row else None

    async def add(self, subscription: WebhookSubscription) -> str:
        """Add a subscription and return its assigned id.

        Raises:
            SubscriptionConflictError: If the owner already subscribes to the event.
        """
        assert self._connection is not None

        subscription_id = uuid.uuid4().hex
        try:
            await self._connection.execute(
                """
                INSERT INTO subscriptions
                (id, name, event, created_by_id, is_active, url, secret,
                 content_type, created_date_utc, last_modified_date_utc)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    subscription_id,
                    subscription.name,
                    subscription.event,
                    subscription.created_by_id,
                    int(subscription.is_active),
                    subscription.config.url,
                    subscription.config.secret,
                    subscription.config.content_type,
                    subscription.created_date_utc.isoformat(),
                    subscription.last_modified_date_utc.isoformat(),
                ),
            )
            await self._connection.commit()
        except aiosqlite.IntegrityError as e:
            await self._connection.rollback()
            raise SubscriptionConflictError(subscription.event) from e

        self._logger.debug(
            "subscription_saved",
            subscription_id=subscription_id,
            event_name=subscription.event,
        )
        return subscription_id

    async def update(self, subscription_id: str, subscription: WebhookSubscription) -> None:
        """Replace the stored subscription with the given one."""
        assert self._connection is not None

        await self._connection.execute(
            """
            UPDATE subscriptions
            SET name = ?, event = ?, is_active = ?, url = ?, secret = ?,
                content_type = ?, last_modified_date_utc = ?
            WHERE id = ?
            """,
            (
                subscription.name,
                subscription.event,
                int(subscription.is_active),
                subscription.config.url,
                subscription.config.secret,
                subscription.config.content_type,
                subscription.last_modified_date_utc.isoformat(),
                subscription_id,
            ),
        )
        await self._connection.commit()

    async def delete(self, subscription_id: str) -> None:
        """Delete a subscription by id. History is kept."""
        assert self._connection is not None

        await self._connection.execute(
            "DELETE FROM subscriptions WHERE id = ?",
            (subscription_id,),
        )
        await self._connection.commit()

    async def search(
        self, event: str, active_only: bool
    ) -> list[WebhookSubscription] | None:
        """Search subscriptions to an event across all owners."""
        assert self._connection is not None

        query = "SELECT * FROM subscriptions WHERE event = ?"
        if active_only:
            query += " AND is_active = 1"

        cursor = await self._connection.execute(query, (event,))
        rows = await cursor.fetchall()
        return [self._row_to_subscription(row) for row in rows]

    async def search_history(
        self, subscription_id: str, limit: int
    ) -> list[SubscriptionDeliveryResult] | None:
        """Get the most recent delivery results of a subscription."""
        assert self._connection is not None

        cursor = await self._connection.execute(
            """
            SELECT * FROM delivery_results
            WHERE subscription_id = ?
            ORDER BY attempted_date_utc DESC
            LIMIT ?
            """,
            (subscription_id, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_result(row) for row in rows]

    async def add_history(
        self, subscription_id: str, result: SubscriptionDeliveryResult
    ) -> bool:
        """Record a delivery result; a result id already stored is ignored."""
        assert self._connection is not None

        cursor = await self._connection.execute(
            """
            INSERT OR IGNORE INTO delivery_results
            (id, subscription_id, status_code, status_description, attempted_date_utc)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                result.id,
                subscription_id,
                result.status_code,
                result.status_description,
                result.attempted_date_utc.isoformat(),
            ),
        )
        inserted = cursor.rowcount == 1
        await self._connection.commit()

        if not inserted:
            self._logger.debug(
                "delivery_result_already_stored",
                result_id=result.id,
                subscription_id=subscription_id,
            )
        return inserted

    def _row_to_subscription(self, row: aiosqlite.Row) -> WebhookSubscription:
        """Convert a database row to a WebhookSubscription."""
        return WebhookSubscription(
            id=row["id"],
            name=row["name"],
            event=row["event"],
            created_by_id=row["created_by_id"],
            is_active=bool(row["is_active"]),
            created_date_utc=datetime.fromisoformat(row["created_date_utc"]),
            last_modified_date_utc=datetime.fromisoformat(row["last_modified_date_utc"]),
            config=SubscriptionConfig(
                url=row["url"],
                secret=row["secret"],
                content_type=row["content_type"],
            ),
        )

    def _row_to_result(self, row: aiosqlite.Row) -> SubscriptionDeliveryResult:
        """Convert a database row to a SubscriptionDeliveryResult."""
        return SubscriptionDeliveryResult(
            id=row["id"],
            subscription_id=row["subscription_id"],
            status_code=row["status_code"],
            status_description=row["status_description"],
            attempted_date_utc=datetime.fromisoformat(row["attempted_date_utc"]),
        )
