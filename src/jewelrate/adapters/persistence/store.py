# src/jewelrate/adapters/persistence/store.py
"""
Store - Durable Read/Write and Conditional-Update Primitives

This module is the only place that talks SQL. Services receive a Store and
call its get/set/conditional-update methods; methods that take part in a
larger unit of work accept an open connection from Store.transaction().

Every state transition that must not race (stock decrement, payment
capture, marking an order paid, cancelling an unpaid order) is a single
UPDATE/DELETE guarded by a WHERE clause, with the affected row count
reported back to the caller.

Files that USE this module:
- jewelrate.application.* (all services persist through Store)
- jewelrate.app (builds the Store)
- tests.* (fixtures seed data through Store)

Files that this module USES:
- jewelrate.adapters.persistence.database (table definitions)
- jewelrate.domain.models (domain records)
"""
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Connection, Engine

from jewelrate.adapters.persistence.database import (
    audit_logs,
    jewelry_inventory,
    metal_prices,
    orders,
    payments,
    products,
    reconciliation_issues,
)
from jewelrate.domain.models import (
    CaptureStatus,
    InventoryItem,
    ItemType,
    Order,
    OrderLine,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Product,
    ReconciliationIssue,
    StoredMetalRate,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Store:
    """Relational store accessed through small, explicit primitives."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Open a transaction; commits on success, rolls back on any exception."""
        with self.engine.begin() as conn:
            yield conn

    @contextmanager
    def _conn(self, conn: Optional[Connection]) -> Iterator[Connection]:
        if conn is not None:
            yield conn
        else:
            with self.engine.begin() as own:
                yield own

    # ------------------------------------------------------------------
    # Stored metal rates
    # ------------------------------------------------------------------

    def list_metal_rates(self, conn: Optional[Connection] = None) -> List[StoredMetalRate]:
        with self._conn(conn) as c:
            rows = c.execute(select(metal_prices).order_by(metal_prices.c.metal)).mappings().all()
        return [self._rate_from_row(r) for r in rows]

    def get_metal_rate(self, metal: str, conn: Optional[Connection] = None) -> Optional[StoredMetalRate]:
        with self._conn(conn) as c:
            row = c.execute(
                select(metal_prices).where(metal_prices.c.metal == metal.lower())
            ).mappings().first()
        return self._rate_from_row(row) if row else None

    def upsert_metal_rate(self, metal: str, price_per_gram: Decimal,
                          updated_by: Optional[int] = None) -> None:
        """Seed or overwrite a stored rate (setup and migrations)."""
        metal = metal.lower()
        with self.transaction() as c:
            result = c.execute(
                update(metal_prices)
                .where(metal_prices.c.metal == metal)
                .values(price_per_gram=price_per_gram, updated_at=_now(), updated_by=updated_by)
            )
            if result.rowcount == 0:
                c.execute(
                    insert(metal_prices).values(
                        metal=metal, price_per_gram=price_per_gram,
                        updated_at=_now(), updated_by=updated_by,
                    )
                )

    def seed_metal_rates(self, defaults: Dict[str, Decimal]) -> int:
        """Insert rates for metals that have none yet; existing rows are left alone."""
        added = 0
        with self.transaction() as c:
            for metal, price in defaults.items():
                if self.get_metal_rate(metal, conn=c) is None:
                    c.execute(insert(metal_prices).values(
                        metal=metal.lower(), price_per_gram=price, updated_at=_now(), updated_by=None,
                    ))
                    added += 1
        return added

    def set_metal_rate(self, conn: Connection, metal: str, price_per_gram: Decimal,
                       updated_by: Optional[int]) -> bool:
        """Update an existing stored rate; False when the metal is unknown."""
        result = conn.execute(
            update(metal_prices)
            .where(metal_prices.c.metal == metal.lower())
            .values(price_per_gram=price_per_gram, updated_at=_now(), updated_by=updated_by)
        )
        return result.rowcount == 1

    def add_audit_log(self, conn: Connection, admin_id: Optional[int], action: str,
                      target_type: str, details: Dict[str, Any],
                      target_id: Optional[str] = None) -> None:
        conn.execute(
            insert(audit_logs).values(
                admin_id=admin_id,
                action=action,
                target_type=target_type,
                target_id=target_id,
                details=json.dumps(details, default=str),
                created_at=_now(),
            )
        )

    def list_audit_logs(self) -> List[Dict[str, Any]]:
        with self._conn(None) as c:
            rows = c.execute(select(audit_logs).order_by(audit_logs.c.id)).mappings().all()
        return [dict(r, details=json.loads(r["details"] or "{}")) for r in rows]

    # ------------------------------------------------------------------
    # Products and stock
    # ------------------------------------------------------------------

    def add_product(self, name: str, price: Decimal = Decimal("0"), stock: int = 0,
                    seller_id: Optional[int] = None) -> int:
        with self.transaction() as c:
            result = c.execute(
                insert(products).values(
                    name=name, price=price, stock=stock, seller_id=seller_id, created_at=_now()
                )
            )
            return int(result.inserted_primary_key[0])

    def get_product(self, product_id: int, conn: Optional[Connection] = None) -> Optional[Product]:
        with self._conn(conn) as c:
            row = c.execute(select(products).where(products.c.id == product_id)).mappings().first()
        if not row:
            return None
        return Product(
            id=row["id"], name=row["name"], price=row["price"],
            stock=row["stock"], seller_id=row["seller_id"],
        )

    def get_stock(self, product_id: int, conn: Optional[Connection] = None) -> Optional[int]:
        with self._conn(conn) as c:
            return c.execute(
                select(products.c.stock).where(products.c.id == product_id)
            ).scalar_one_or_none()

    def decrement_stock(self, conn: Connection, product_id: int, quantity: int) -> bool:
        """
        Conditionally decrement stock.

        Runs `stock = stock - qty WHERE id = ? AND stock >= qty` and reports
        whether exactly one row changed. This is the only stock decrement.
        """
        result = conn.execute(
            update(products)
            .where(products.c.id == product_id)
            .where(products.c.stock >= quantity)
            .values(stock=products.c.stock - quantity)
        )
        return result.rowcount == 1

    def delete_product(self, product_id: int) -> bool:
        with self.transaction() as c:
            return c.execute(delete(products).where(products.c.id == product_id)).rowcount == 1

    # ------------------------------------------------------------------
    # Jewelry inventory
    # ------------------------------------------------------------------

    def insert_inventory(self, item: InventoryItem) -> int:
        now = _now()
        with self.transaction() as c:
            result = c.execute(
                insert(jewelry_inventory).values(**self._inventory_values(item), created_at=now, updated_at=now)
            )
            return int(result.inserted_primary_key[0])

    def update_inventory(self, item_id: int, item: InventoryItem) -> bool:
        with self.transaction() as c:
            result = c.execute(
                update(jewelry_inventory)
                .where(jewelry_inventory.c.id == item_id)
                .values(**self._inventory_values(item), updated_at=_now())
            )
            return result.rowcount == 1

    def get_inventory(self, item_id: int) -> Optional[InventoryItem]:
        with self._conn(None) as c:
            row = c.execute(
                select(jewelry_inventory).where(jewelry_inventory.c.id == item_id)
            ).mappings().first()
        return self._inventory_from_row(row) if row else None

    def get_inventory_by_product(self, product_id: int,
                                 conn: Optional[Connection] = None) -> Optional[InventoryItem]:
        with self._conn(conn) as c:
            row = c.execute(
                select(jewelry_inventory)
                .where(jewelry_inventory.c.product_id == product_id)
                .order_by(jewelry_inventory.c.id)
            ).mappings().first()
        return self._inventory_from_row(row) if row else None

    def list_inventory_by_seller(self, seller_id: int) -> List[InventoryItem]:
        with self._conn(None) as c:
            rows = c.execute(
                select(jewelry_inventory)
                .where(jewelry_inventory.c.seller_id == seller_id)
                .order_by(jewelry_inventory.c.created_at.desc(), jewelry_inventory.c.id.desc())
            ).mappings().all()
        return [self._inventory_from_row(r) for r in rows]

    def delete_inventory(self, item_id: int) -> bool:
        with self.transaction() as c:
            return c.execute(
                delete(jewelry_inventory).where(jewelry_inventory.c.id == item_id)
            ).rowcount == 1

    def delete_inventory_by_product(self, product_id: int) -> int:
        with self.transaction() as c:
            return c.execute(
                delete(jewelry_inventory).where(jewelry_inventory.c.product_id == product_id)
            ).rowcount

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def insert_order(self, conn: Connection, order: Order) -> int:
        result = conn.execute(
            insert(orders).values(
                user_id=order.user_id,
                items=json.dumps([
                    {"id": line.product_id, "quantity": line.quantity,
                     "unitPrice": str(line.unit_price_snapshot)}
                    for line in order.items
                ]),
                total=order.total,
                address=order.address,
                payment_method=order.payment_method.value,
                status=order.status.value,
                payment_status=order.payment_status.value,
                transaction_id=order.transaction_id,
                created_at=order.created_at or _now(),
            )
        )
        return int(result.inserted_primary_key[0])

    def get_order(self, order_id: int, conn: Optional[Connection] = None) -> Optional[Order]:
        with self._conn(conn) as c:
            row = c.execute(select(orders).where(orders.c.id == order_id)).mappings().first()
        return self._order_from_row(row) if row else None

    def list_orders_for_user(self, user_id: int) -> List[Order]:
        with self._conn(None) as c:
            rows = c.execute(
                select(orders).where(orders.c.user_id == user_id).order_by(orders.c.id.desc())
            ).mappings().all()
        return [self._order_from_row(r) for r in rows]

    def mark_order_paid(self, conn: Connection, order_id: int, transaction_id: str) -> bool:
        """Move a pending or failed order to confirmed/paid; False if paid, COD or gone."""
        result = conn.execute(
            update(orders)
            .where(orders.c.id == order_id)
            .where(orders.c.payment_status.in_([PaymentStatus.PENDING.value, PaymentStatus.FAILED.value]))
            .values(
                status=OrderStatus.CONFIRMED.value,
                payment_status=PaymentStatus.PAID.value,
                transaction_id=transaction_id,
            )
        )
        return result.rowcount == 1

    def delete_unpaid_order(self, conn: Connection, order_id: int) -> bool:
        """Delete an order only while stock has not been committed for it."""
        result = conn.execute(
            delete(orders)
            .where(orders.c.id == order_id)
            .where(orders.c.payment_status.in_([PaymentStatus.PENDING.value, PaymentStatus.FAILED.value]))
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def insert_payment(self, payment: Payment) -> int:
        with self.transaction() as c:
            result = c.execute(
                insert(payments).values(
                    order_id=payment.order_id,
                    external_order_id=payment.external_order_id,
                    amount=payment.amount,
                    currency=payment.currency,
                    status=payment.status.value,
                    created_at=_now(),
                )
            )
            return int(result.inserted_primary_key[0])

    def get_payment_by_external_order(self, external_order_id: str,
                                      conn: Optional[Connection] = None) -> Optional[Payment]:
        with self._conn(conn) as c:
            row = c.execute(
                select(payments).where(payments.c.external_order_id == external_order_id)
            ).mappings().first()
        return self._payment_from_row(row) if row else None

    def get_payment_for_order(self, order_id: int) -> Optional[Payment]:
        with self._conn(None) as c:
            row = c.execute(
                select(payments).where(payments.c.order_id == order_id).order_by(payments.c.id.desc())
            ).mappings().first()
        return self._payment_from_row(row) if row else None

    def capture_payment(self, conn: Connection, external_order_id: str, external_payment_id: str,
                        signature: str, order_id: Optional[int] = None) -> bool:
        """Mark a payment captured unless it already is; False on replay."""
        values = {
            "status": CaptureStatus.CAPTURED.value,
            "external_payment_id": external_payment_id,
            "external_signature": signature,
        }
        if order_id is not None:
            values["order_id"] = order_id
        result = conn.execute(
            update(payments)
            .where(payments.c.external_order_id == external_order_id)
            .where(payments.c.status != CaptureStatus.CAPTURED.value)
            .values(**values)
        )
        return result.rowcount == 1

    def fail_payment(self, external_order_id: str) -> bool:
        """Mark a payment failed; a captured payment is never downgraded."""
        with self.transaction() as c:
            result = c.execute(
                update(payments)
                .where(payments.c.external_order_id == external_order_id)
                .where(payments.c.status != CaptureStatus.CAPTURED.value)
                .values(status=CaptureStatus.FAILED.value)
            )
            return result.rowcount == 1

    def fail_open_payments_for_order(self, conn: Connection, order_id: int) -> int:
        return conn.execute(
            update(payments)
            .where(payments.c.order_id == order_id)
            .where(payments.c.status == CaptureStatus.CREATED.value)
            .values(status=CaptureStatus.FAILED.value)
        ).rowcount

    # ------------------------------------------------------------------
    # Reconciliation queue
    # ------------------------------------------------------------------

    def add_reconciliation_issue(self, conn: Connection, issue: ReconciliationIssue) -> int:
        result = conn.execute(
            insert(reconciliation_issues).values(
                order_id=issue.order_id,
                product_id=issue.product_id,
                quantity=issue.quantity,
                reason=issue.reason,
                resolved=False,
                created_at=_now(),
            )
        )
        return int(result.inserted_primary_key[0])

    def list_reconciliation_issues(self, include_resolved: bool = False) -> List[ReconciliationIssue]:
        query = select(reconciliation_issues).order_by(reconciliation_issues.c.id)
        if not include_resolved:
            query = query.where(reconciliation_issues.c.resolved.is_(False))
        with self._conn(None) as c:
            rows = c.execute(query).mappings().all()
        return [
            ReconciliationIssue(
                id=r["id"], order_id=r["order_id"], product_id=r["product_id"],
                quantity=r["quantity"], reason=r["reason"],
                created_at=r["created_at"], resolved=bool(r["resolved"]),
            )
            for r in rows
        ]

    def resolve_reconciliation_issue(self, issue_id: int) -> bool:
        with self.transaction() as c:
            return c.execute(
                update(reconciliation_issues)
                .where(reconciliation_issues.c.id == issue_id)
                .values(resolved=True)
            ).rowcount == 1

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _rate_from_row(row) -> StoredMetalRate:
        return StoredMetalRate(
            metal=row["metal"],
            price_per_gram=row["price_per_gram"],
            updated_at=row["updated_at"],
            updated_by=row["updated_by"],
        )

    @staticmethod
    def _inventory_values(item: InventoryItem) -> Dict[str, Any]:
        return {
            "product_id": item.product_id,
            "seller_id": item.seller_id,
            "metal": item.metal,
            "metal_price": item.stored_metal_price,
            "hallmarked": bool(item.hallmarked),
            "purity": item.purity,
            "net_weight": item.net_weight,
            "extra_description": item.extra_description,
            "extra_weight": item.extra_weight,
            "extra_value": item.extra_value,
            "gross_weight": item.gross_weight,
            "type": item.item_type.value,
            "ornament": item.ornament,
            "custom_ornament": item.custom_ornament,
            "wastage_percent": item.wastage_percent,
            "making_charge_per_gram": item.making_charge_per_gram,
        }

    @staticmethod
    def _inventory_from_row(row) -> InventoryItem:
        return InventoryItem(
            id=row["id"],
            product_id=row["product_id"],
            seller_id=row["seller_id"],
            metal=row["metal"],
            stored_metal_price=row["metal_price"],
            hallmarked=bool(row["hallmarked"]),
            purity=row["purity"],
            net_weight=row["net_weight"],
            extra_description=row["extra_description"],
            extra_weight=row["extra_weight"],
            extra_value=row["extra_value"],
            gross_weight=row["gross_weight"],
            item_type=ItemType(row["type"]),
            ornament=row["ornament"],
            custom_ornament=row["custom_ornament"],
            wastage_percent=row["wastage_percent"],
            making_charge_per_gram=row["making_charge_per_gram"],
        )

    @staticmethod
    def _order_from_row(row) -> Order:
        lines = [
            OrderLine(
                product_id=int(line["id"]),
                quantity=int(line["quantity"]),
                unit_price_snapshot=Decimal(str(line.get("unitPrice", "0"))),
            )
            for line in json.loads(row["items"])
        ]
        return Order(
            id=row["id"],
            user_id=row["user_id"],
            items=lines,
            total=row["total"],
            address=row["address"],
            payment_method=PaymentMethod(row["payment_method"]),
            status=OrderStatus(row["status"]),
            payment_status=PaymentStatus(row["payment_status"]),
            transaction_id=row["transaction_id"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _payment_from_row(row) -> Payment:
        return Payment(
            id=row["id"],
            order_id=row["order_id"],
            external_order_id=row["external_order_id"],
            amount=row["amount"],
            currency=row["currency"],
            status=CaptureStatus(row["status"]),
            external_payment_id=row["external_payment_id"],
            external_signature=row["external_signature"],
        )
