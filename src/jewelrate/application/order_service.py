# src/jewelrate/application/order_service.py
"""
Order Stock Controller - Checkout, Stock Commit and Cancellation

This module owns the order state machine and the only code path that
decrements stock:

- create_order: all-or-nothing availability check, unit price snapshots
  taken through InventoryValuation, then
  COD    -> confirmed / cod, stock committed in the same transaction
  online -> pending / pending, stock untouched until payment is verified
- commit_stock: guarded decrement per line (stock >= qty at commit time)
- cancel_order: owner may cancel while unpaid; never touches stock

The creation-time availability check is advisory; the guarded decrement
is what prevents overselling when checkouts race.

Files that USE this module:
- jewelrate.application.payment_service (commit_stock after capture)
- jewelrate.adapters.http.routes (orders endpoints)
- tests.test_order_service (unit tests)

Files that this module USES:
- jewelrate.application.valuation (unit prices)
- jewelrate.application.rate_cache (rate table for the snapshot)
- jewelrate.adapters.persistence.store (orders and stock primitives)
- jewelrate.domain.roles (capability checks)
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from jewelrate.application.pricing import round2
from jewelrate.application.valuation import InventoryValuation
from jewelrate.domain.errors import (
    InsufficientStock,
    NotFoundError,
    OrderNotFound,
    OrderStateError,
    ProductNotFound,
    ValidationError,
)
from jewelrate.domain.models import (
    ZERO,
    Order,
    OrderLine,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ReconciliationIssue,
    StockShortage,
)
from jewelrate.domain.roles import Capability, Principal, require, require_owner_or
from jewelrate.shared.validators import sanitize_text

logger = logging.getLogger(__name__)

# Status pair each payment method starts in
INITIAL_STATE = {
    PaymentMethod.COD: (OrderStatus.CONFIRMED, PaymentStatus.COD),
    PaymentMethod.ONLINE: (OrderStatus.PENDING, PaymentStatus.PENDING),
}


class OrderStockController:
    """Creates orders, commits stock exactly once per order, cancels unpaid orders."""

    def __init__(self, store, rate_cache, valuation: Optional[InventoryValuation] = None):
        self.store = store
        self.rate_cache = rate_cache
        self.valuation = valuation or InventoryValuation(store, rate_cache)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @staticmethod
    def _requested_quantities(lines: Sequence[OrderLine]) -> Dict[int, int]:
        if not lines:
            raise ValidationError("Order must contain at least one item")
        wanted: Dict[int, int] = OrderedDict()
        for line in lines:
            if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
                raise ValidationError(f"Quantity for product {line.product_id} must be a positive integer")
            wanted[line.product_id] = wanted.get(line.product_id, 0) + line.quantity
        return wanted

    def check_availability(self, wanted: Dict[int, int], conn=None) -> List[StockShortage]:
        """
        Compare requested quantities with current stock.

        Raises:
            ProductNotFound: If a product does not exist

        Returns:
            One StockShortage per product that cannot be satisfied
        """
        shortages = []
        for product_id, quantity in wanted.items():
            stock = self.store.get_stock(product_id, conn=conn)
            if stock is None:
                raise ProductNotFound(f"Product {product_id} not found")
            if quantity > stock:
                shortages.append(StockShortage(product_id, quantity, stock))
        return shortages

    def create_order(
        self,
        principal: Principal,
        lines: Sequence[OrderLine],
        address: Optional[str],
        payment_method: PaymentMethod,
        client_total: Optional[Decimal] = None,
    ) -> Order:
        """
        Validate availability and persist a new order.

        Args:
            principal: Buyer placing the order
            lines: Requested products and quantities
            address: Shipping address (required)
            payment_method: COD or online
            client_total: Total the client displayed, compared for logging only

        Returns:
            The persisted Order with its id, snapshots and server-side total

        Raises:
            ValidationError: Empty order, bad quantity or missing address
            ProductNotFound: Unknown product
            InsufficientStock: One or more lines exceed stock (nothing is written)
        """
        require(principal, Capability.PLACE_ORDERS)
        wanted = self._requested_quantities(lines)
        address = sanitize_text(address, max_length=1000)
        if not address:
            raise ValidationError("Shipping address is required")
        try:
            payment_method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError(f"Unsupported payment method: {payment_method!r}") from None

        # Rate lookup may hit the network; keep it outside the transaction
        rates = self.rate_cache.get_rates(self.store)

        with self.store.transaction() as conn:
            shortages = self.check_availability(wanted, conn=conn)
            if shortages:
                logger.info("Order rejected for user=%s: %s", principal.user_id, shortages)
                raise InsufficientStock(shortages)

            snapshot = []
            total = ZERO
            for line in lines:
                unit = self.valuation.unit_price(line.product_id, rates, conn=conn)
                snapshot.append(OrderLine(line.product_id, line.quantity, unit))
                total += unit * line.quantity
            total = round2(total)

            status, payment_status = INITIAL_STATE[payment_method]
            order = Order(
                user_id=principal.user_id,
                items=snapshot,
                total=total,
                address=address,
                payment_method=payment_method,
                status=status,
                payment_status=payment_status,
            )
            order.id = self.store.insert_order(conn, order)

            if payment_method is PaymentMethod.COD:
                failed = self.commit_stock(conn, order)
                if failed:
                    # Lost a race after the advisory check: undo the whole order
                    logger.warning("COD stock commit lost a race for order %s: %s", order.id, failed)
                    raise InsufficientStock(failed)

        if client_total is not None and round2(client_total) != total:
            logger.info(
                "Order %s client total %s differs from server total %s; server total kept",
                order.id, client_total, total,
            )
        logger.info(
            "Order %s created user=%s method=%s status=%s/%s total=%s",
            order.id, order.user_id, payment_method.value, order.status.value,
            order.payment_status.value, order.total,
        )
        return order

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit_stock(self, conn, order: Order) -> List[StockShortage]:
        """
        Decrement stock for every line of an order, guarded by current stock.

        Must run inside the caller's transaction. Lines whose guard fails are
        left unchanged and returned.

        Returns:
            StockShortage for each line that could not be committed
        """
        failed = []
        for line in order.items:
            if self.store.decrement_stock(conn, line.product_id, line.quantity):
                logger.debug("Stock committed: order=%s product=%s qty=%s",
                             order.id, line.product_id, line.quantity)
                continue
            available = self.store.get_stock(line.product_id, conn=conn)
            failed.append(StockShortage(line.product_id, line.quantity, available or 0))
        return failed

    # ------------------------------------------------------------------
    # Queries and cancellation
    # ------------------------------------------------------------------

    def get_order(self, principal: Principal, order_id: int) -> Order:
        order = self.store.get_order(order_id)
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found")
        require_owner_or(principal, order.user_id, Capability.MANAGE_ANY_ORDER)
        return order

    def list_orders(self, principal: Principal) -> List[Order]:
        return self.store.list_orders_for_user(principal.user_id)

    def cancel_order(self, principal: Principal, order_id: int) -> Order:
        """
        Cancel (remove) an order whose stock was never committed.

        Raises:
            OrderNotFound: Unknown order
            AuthorizationError: Caller is neither owner nor order manager
            OrderStateError: Order is paid, or is COD with stock already committed
        """
        order = self.get_order(principal, order_id)
        if order.payment_status is PaymentStatus.PAID:
            raise OrderStateError("Paid orders cannot be cancelled")
        if order.stock_committed:
            raise OrderStateError("Orders with committed stock cannot be cancelled here")

        with self.store.transaction() as conn:
            if not self.store.delete_unpaid_order(conn, order_id):
                # Payment verification won the race
                raise OrderStateError("Order was paid before it could be cancelled")
            failed_payments = self.store.fail_open_payments_for_order(conn, order_id)

        logger.info("Order %s cancelled by user=%s (open payments failed: %d)",
                    order_id, principal.user_id, failed_payments)
        order.status = OrderStatus.CANCELLED
        return order

    # ------------------------------------------------------------------
    # Reconciliation queue
    # ------------------------------------------------------------------

    def reconciliation_queue(self, principal: Principal,
                             include_resolved: bool = False) -> List[ReconciliationIssue]:
        """Captured payments that could not be fully applied, oldest first."""
        require(principal, Capability.MANAGE_ANY_ORDER)
        return self.store.list_reconciliation_issues(include_resolved=include_resolved)

    def resolve_issue(self, principal: Principal, issue_id: int) -> None:
        require(principal, Capability.MANAGE_ANY_ORDER)
        if not self.store.resolve_reconciliation_issue(issue_id):
            raise NotFoundError(f"Reconciliation issue {issue_id} not found")
        logger.info("Reconciliation issue %s resolved by user=%s", issue_id, principal.user_id)
