# src/jewelrate/adapters/persistence/database.py
"""
Database - SQLAlchemy Engine and Table Definitions

This module declares the relational schema (products, inventory, stored
metal rates, orders, payments, audit log, reconciliation queue) and builds
the SQLAlchemy engine. Money and weights are stored as exact decimal text
so a price computed at quote time is reproduced bit-for-bit at checkout.

Files that USE this module:
- jewelrate.adapters.persistence.store (Store runs queries against these tables)
- jewelrate.app (create_db_engine at startup)
- tests.conftest (fresh database per test)

Files that this module USES:
- None (schema definitions only)
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.types import TypeDecorator

logger = logging.getLogger(__name__)


class DecimalText(TypeDecorator):
    """Stores Decimal values as their exact string form."""

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(Decimal(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


metadata = MetaData()

products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("price", DecimalText, nullable=False, default=Decimal("0")),
    Column("stock", Integer, nullable=False, default=0),
    Column("seller_id", Integer, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=True),
)

jewelry_inventory = Table(
    "jewelry_inventory",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=True, index=True),
    Column("seller_id", Integer, nullable=True, index=True),
    Column("metal", String(32), nullable=False),
    Column("metal_price", DecimalText, nullable=True),
    Column("hallmarked", Boolean, nullable=False, default=False),
    Column("purity", DecimalText, nullable=False),
    Column("net_weight", DecimalText, nullable=False),
    Column("extra_description", Text, nullable=True),
    Column("extra_weight", DecimalText, nullable=False, default=Decimal("0")),
    Column("extra_value", DecimalText, nullable=False, default=Decimal("0")),
    Column("gross_weight", DecimalText, nullable=False),
    Column("type", String(32), nullable=False),
    Column("ornament", String(64), nullable=True),
    Column("custom_ornament", String(255), nullable=True),
    Column("wastage_percent", DecimalText, nullable=False),
    Column("making_charge_per_gram", DecimalText, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=True),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)

metal_prices = Table(
    "metal_prices",
    metadata,
    Column("metal", String(32), primary_key=True),
    Column("price_per_gram", DecimalText, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
    Column("updated_by", Integer, nullable=True),
)

orders = Table(
    "orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("items", Text, nullable=False),  # JSON list of order lines
    Column("total", DecimalText, nullable=False),
    Column("address", Text, nullable=True),
    Column("payment_method", String(16), nullable=False),
    Column("status", String(16), nullable=False),
    Column("payment_status", String(16), nullable=False),
    Column("transaction_id", String(128), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=True),
)

payments = Table(
    "payments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", Integer, nullable=True, index=True),
    Column("external_order_id", String(128), nullable=False, unique=True),
    Column("amount", DecimalText, nullable=False),
    Column("currency", String(3), nullable=False),
    Column("status", String(16), nullable=False),
    Column("external_payment_id", String(128), nullable=True),
    Column("external_signature", String(256), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=True),
)

audit_logs = Table(
    "audit_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("admin_id", Integer, nullable=True),
    Column("action", String(64), nullable=False),
    Column("target_type", String(64), nullable=False),
    Column("target_id", String(64), nullable=True),
    Column("details", Text, nullable=True),  # JSON
    Column("created_at", DateTime(timezone=True), nullable=True),
)

reconciliation_issues = Table(
    "reconciliation_issues",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", Integer, nullable=False, index=True),
    Column("product_id", Integer, nullable=True),
    Column("quantity", Integer, nullable=False),
    Column("reason", String(255), nullable=False),
    Column("resolved", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=True),
)


def _install_sqlite_listeners(engine: Engine) -> None:
    """
    SQLite needs foreign keys switched on per connection, and write
    transactions must take the write lock up front so two checkouts
    cannot both read stock and then deadlock on the upgrade.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy's "begin" event issue BEGIN instead of pysqlite
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create the engine and make sure the schema exists.

    Args:
        database_url: SQLAlchemy URL (e.g. sqlite:///./data/jewelrate.db)
        echo: Log emitted SQL

    Returns:
        Engine bound to the database with all tables created
    """
    kwargs = {"echo": echo, "future": True}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
        _ensure_sqlite_dir(database_url)
    else:
        kwargs["pool_pre_ping"] = True

    engine = create_engine(database_url, **kwargs)
    if is_sqlite:
        _install_sqlite_listeners(engine)

    metadata.create_all(engine)
    logger.info("Database ready: %s", engine.url.render_as_string(hide_password=True))
    return engine


def _ensure_sqlite_dir(database_url: str) -> None:
    from pathlib import Path

    path: Optional[str] = database_url.split("///", 1)[1] if "///" in database_url else None
    if path and path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)


def check_database_connection(engine: Engine) -> bool:
    """
    Verify database connectivity.

    Returns:
        True if database is reachable

    Raises:
        RuntimeError: If the connection fails
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        raise RuntimeError(f"Database connection failed: {e}") from e
