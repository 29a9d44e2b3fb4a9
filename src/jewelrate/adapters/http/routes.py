# src/jewelrate/adapters/http/routes.py
"""
HTTP Routes - REST API under /api

Thin translation layer: parse the request, call one application service,
shape the JSON. Business rules and authorization live in the services;
domain errors become the error envelope in jewelrate.adapters.http.errors.

Endpoints:
- GET    /api/health
- GET    /api/metals/prices
- POST   /api/inventory/calculate
- POST   /api/inventory/add
- GET    /api/inventory/product/{product_id}
- DELETE /api/inventory/product/{product_id}
- GET    /api/inventory/seller/{seller_id}
- GET    /api/inventory/{item_id}, PUT, DELETE
- POST   /api/orders, GET /api/orders, GET /api/orders/{order_id}, DELETE
- POST   /api/payments/create-order
- POST   /api/payments/verify
- GET    /api/payments/status/{order_id}
- GET    /api/admin/metal-prices, PUT /api/admin/metal-prices/{metal}
- GET    /api/admin/reconciliation, POST /api/admin/reconciliation/{issue_id}/resolve

Files that USE this module:
- jewelrate.app (includes the router)
- tests.test_http_api (TestClient tests)

Files that this module USES:
- jewelrate.adapters.http.deps (services, caller identity)
- jewelrate.adapters.http.schemas (request bodies)
- jewelrate.application (all services)
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from jewelrate.adapters.http.deps import Services, get_principal, get_services
from jewelrate.adapters.http.errors import error_response
from jewelrate.adapters.http.schemas import (
    CreateOrderRequest,
    CreatePaymentRequest,
    UpdateMetalPriceRequest,
    VerifyPaymentRequest,
)
from jewelrate.application.pricing import calculate_from_payload, round2
from jewelrate.domain.models import InventoryItem, Order, OrderLine, Payment, PriceBreakdown, StockShortage
from jewelrate.domain.roles import Principal
from jewelrate.shared.validators import to_decimal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ----------------------------------------------------------------------
# Serialization
# ----------------------------------------------------------------------

def breakdown_to_dict(b: PriceBreakdown) -> Dict[str, Any]:
    return {
        "metalValue": b.metal_value,
        "wastageAmount": b.wastage_amount,
        "totalMakingCharge": b.making_charge,
        "extraValue": b.extra_value,
        "totalPrice": b.total_price,
    }


def item_to_dict(item: InventoryItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "productId": item.product_id,
        "sellerId": item.seller_id,
        "metal": item.metal,
        "metalPrice": item.stored_metal_price,
        "hallmarked": item.hallmarked,
        "purity": item.purity,
        "netWeight": item.net_weight,
        "extraDescription": item.extra_description,
        "extraWeight": item.extra_weight,
        "extraValue": item.extra_value,
        "grossWeight": item.gross_weight,
        "type": item.item_type.value,
        "ornament": item.ornament,
        "customOrnament": item.custom_ornament,
        "wastagePercent": item.wastage_percent,
        "makingChargePerGram": item.making_charge_per_gram,
    }


def order_to_dict(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "userId": order.user_id,
        "items": [
            {"id": line.product_id, "quantity": line.quantity, "unitPrice": line.unit_price_snapshot}
            for line in order.items
        ],
        "total": order.total,
        "address": order.address,
        "paymentMethod": order.payment_method.value,
        "status": order.status.value,
        "paymentStatus": order.payment_status.value,
        "transactionId": order.transaction_id,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
    }


def payment_to_dict(payment: Payment) -> Dict[str, Any]:
    return {
        "orderId": payment.order_id,
        "externalOrderId": payment.external_order_id,
        "externalPaymentId": payment.external_payment_id,
        "amount": payment.amount,
        "currency": payment.currency,
        "status": payment.status.value,
    }


def shortage_to_dict(s: StockShortage) -> Dict[str, Any]:
    return {"productId": s.product_id, "requested": s.requested, "available": s.available}


# ----------------------------------------------------------------------
# Health and rates
# ----------------------------------------------------------------------

@router.get("/health")
def health(services: Services = Depends(get_services)):
    checks = services.health.check_all()
    healthy = checks["database"].is_healthy and checks["rates"].is_healthy
    return {
        "success": healthy,
        "checks": {
            name: {"healthy": s.is_healthy, "message": s.message, "details": s.details}
            for name, s in checks.items()
        },
    }


@router.get("/metals/prices")
def metal_prices(services: Services = Depends(get_services)):
    entries = services.rate_cache.get_entries(services.store)
    return {
        "success": True,
        "prices": {metal: round2(e.price_per_gram) for metal, e in entries.items()},
        "sources": {metal: e.source.value for metal, e in entries.items()},
    }


# ----------------------------------------------------------------------
# Inventory
# ----------------------------------------------------------------------

@router.post("/inventory/calculate")
def calculate_price(payload: Dict[str, Any] = Body(...)):
    breakdown = calculate_from_payload(payload)
    return {"success": True, **breakdown_to_dict(breakdown)}


@router.post("/inventory/add", status_code=201)
def add_inventory(
    payload: Dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    item = services.inventory.add(principal, payload)
    return {"success": True, "message": "Inventory item added successfully", "inventoryId": item.id}


@router.get("/inventory/product/{product_id}")
def inventory_for_product(product_id: int, services: Services = Depends(get_services)):
    item, breakdown = services.inventory.quote_product(product_id)
    if item is None:
        return {"success": True, "item": None, "price": None}
    return {"success": True, "item": item_to_dict(item), "price": breakdown_to_dict(breakdown)}


@router.delete("/inventory/product/{product_id}")
def delete_inventory_for_product(
    product_id: int,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    if not services.inventory.delete_by_product(principal, product_id):
        return {"success": True, "message": "No inventory found for this product"}
    return {"success": True, "message": "Inventory item deleted successfully"}


@router.get("/inventory/seller/{seller_id}")
def inventory_for_seller(
    seller_id: int,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    items = services.inventory.list_by_seller(principal, seller_id)
    return {"success": True, "items": [item_to_dict(i) for i in items]}


@router.get("/inventory/{item_id}")
def get_inventory(
    item_id: int,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    return {"success": True, "item": item_to_dict(services.inventory.get(principal, item_id))}


@router.put("/inventory/{item_id}")
def update_inventory(
    item_id: int,
    payload: Dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    item = services.inventory.update(principal, item_id, payload)
    return {"success": True, "message": "Inventory item updated successfully", "item": item_to_dict(item)}


@router.delete("/inventory/{item_id}")
def delete_inventory(
    item_id: int,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    services.inventory.delete(principal, item_id)
    return {"success": True, "message": "Inventory item deleted successfully"}


# ----------------------------------------------------------------------
# Orders
# ----------------------------------------------------------------------

@router.post("/orders", status_code=201)
def create_order(
    body: CreateOrderRequest,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    client_total = None if body.total in (None, "") else to_decimal(body.total, "total")
    order = services.orders.create_order(
        principal,
        [OrderLine(product_id=i.id, quantity=i.quantity) for i in body.items],
        address=body.address,
        payment_method=body.paymentMethod,
        client_total=client_total,
    )
    return {"success": True, "message": "Order placed successfully", "order": order_to_dict(order)}


@router.get("/orders")
def list_orders(principal: Principal = Depends(get_principal), services: Services = Depends(get_services)):
    return {"success": True, "orders": [order_to_dict(o) for o in services.orders.list_orders(principal)]}


@router.get("/orders/{order_id}")
def get_order(
    order_id: int,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    return {"success": True, "order": order_to_dict(services.orders.get_order(principal, order_id))}


@router.delete("/orders/{order_id}")
def cancel_order(
    order_id: int,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    services.orders.cancel_order(principal, order_id)
    return {"success": True, "message": "Order cancelled successfully"}


# ----------------------------------------------------------------------
# Payments
# ----------------------------------------------------------------------

@router.post("/payments/create-order")
def create_payment(
    body: CreatePaymentRequest,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    checkout = services.payments.create_payment(principal, body.orderId)
    return {"success": True, **checkout}


@router.post("/payments/verify")
def verify_payment(body: VerifyPaymentRequest, services: Services = Depends(get_services)):
    # Identity comes from the signature, not the headers
    result = services.verifier.verify(
        body.externalOrderId, body.externalPaymentId, body.signature, order_id=body.orderId,
    )
    if not result.verified:
        return error_response(400, "Payment verification failed", {"verified": False}, verified=False)
    return {
        "success": True,
        "verified": True,
        "orderId": result.order_id,
        "alreadyCaptured": result.already_captured,
        "anomalies": [shortage_to_dict(s) for s in result.anomalies],
    }


@router.get("/payments/status/{order_id}")
def payment_status(
    order_id: int,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    return {"success": True, "payment": payment_to_dict(services.payments.payment_status(principal, order_id))}


# ----------------------------------------------------------------------
# Admin
# ----------------------------------------------------------------------

@router.get("/admin/metal-prices")
def list_metal_prices(
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    rates = services.metal_rates.list_rates(principal)
    return {
        "success": True,
        "prices": [
            {
                "metal": r.metal,
                "pricePerGram": r.price_per_gram,
                "updatedAt": r.updated_at.isoformat() if r.updated_at else None,
                "updatedBy": r.updated_by,
            }
            for r in rates
        ],
    }


@router.put("/admin/metal-prices/{metal}")
def update_metal_price(
    metal: str,
    body: UpdateMetalPriceRequest,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    rate = services.metal_rates.update_rate(principal, metal, body.pricePerGram)
    return {
        "success": True,
        "message": f"{rate.metal} price updated successfully",
        "metal": rate.metal,
        "pricePerGram": rate.price_per_gram,
    }


@router.get("/admin/reconciliation")
def reconciliation_queue(
    include_resolved: bool = False,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    issues = services.orders.reconciliation_queue(principal, include_resolved=include_resolved)
    return {
        "success": True,
        "issues": [
            {
                "id": i.id,
                "orderId": i.order_id,
                "productId": i.product_id,
                "quantity": i.quantity,
                "reason": i.reason,
                "resolved": i.resolved,
                "createdAt": i.created_at.isoformat() if i.created_at else None,
            }
            for i in issues
        ],
    }


@router.post("/admin/reconciliation/{issue_id}/resolve")
def resolve_reconciliation_issue(
    issue_id: int,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    services.orders.resolve_issue(principal, issue_id)
    return {"success": True, "message": "Issue resolved"}
