"""
JSON shapes shared by the route modules.

Keys are camelCase to match the request bodies the clients already send.
"""
from datetime import datetime
from typing import Optional


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _value(status) -> Optional[str]:
    if status is None:
        return None
    return status.value if hasattr(status, "value") else str(status)


def ok(data=None, **extra) -> dict:
    body = {"success": True, "data": data}
    body.update(extra)
    return body


def user_summary(user) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email, "role": _value(user.role)}


def supplier_to_dict(supplier, include_user: bool = True) -> Optional[dict]:
    if supplier is None:
        return None
    data = {
        "id": supplier.id,
        "userId": supplier.user_id,
        "companyName": supplier.company_name,
        "industry": supplier.industry,
        "description": supplier.description,
        "country": supplier.country,
        "verified": bool(supplier.verified),
        "rating": supplier.rating,
    }
    if include_user:
        data["user"] = user_summary(supplier.user)
    return data


def rfq_to_dict(rfq, include_quotes: bool = False, quotes=None) -> dict:
    data = {
        "id": rfq.id,
        "buyerId": rfq.buyer_id,
        "title": rfq.title,
        "description": rfq.description,
        "category": rfq.category,
        "quantity": rfq.quantity,
        "unit": rfq.unit,
        "budget": rfq.budget,
        "currency": rfq.currency,
        "status": _value(rfq.status),
        "expiresAt": _iso(rfq.expires_at),
        "closedAt": _iso(rfq.closed_at),
        "createdAt": _iso(rfq.created_at),
        "quoteCount": len(rfq.quotes) if rfq.quotes else 0,
    }
    if include_quotes:
        data["buyer"] = user_summary(rfq.buyer)
        data["quotes"] = [quote_to_dict(q) for q in (rfq.quotes if quotes is None else quotes)]
    return data


def quote_to_dict(quote, include_rfq: bool = False) -> dict:
    data = {
        "id": quote.id,
        "rfqId": quote.rfq_id,
        "supplierId": quote.supplier_id,
        "price": quote.price,
        "currency": quote.currency,
        "leadTimeDays": quote.lead_time_days,
        "notes": quote.notes,
        "status": _value(quote.status),
        "createdAt": _iso(quote.created_at),
        "supplier": supplier_to_dict(quote.supplier),
    }
    if include_rfq and quote.rfq is not None:
        data["rfq"] = {
            "id": quote.rfq.id,
            "title": quote.rfq.title,
            "budget": quote.rfq.budget,
            "currency": quote.rfq.currency,
            "status": _value(quote.rfq.status),
            "createdAt": _iso(quote.rfq.created_at),
        }
    return data


def transaction_to_dict(transaction) -> dict:
    return {
        "id": transaction.id,
        "buyerId": transaction.buyer_id,
        "supplierId": transaction.supplier_id,
        "rfqId": transaction.rfq_id,
        "quoteId": transaction.quote_id,
        "amount": transaction.amount,
        "currency": transaction.currency,
        "status": _value(transaction.status),
        "releasedAt": _iso(transaction.released_at),
        "createdAt": _iso(transaction.created_at),
        "buyer": user_summary(transaction.buyer),
        "supplier": supplier_to_dict(transaction.supplier),
        "rfq": {"id": transaction.rfq.id, "title": transaction.rfq.title} if transaction.rfq else None,
    }


def escrow_to_dict(account) -> Optional[dict]:
    if account is None:
        return None
    return {
        "id": account.id,
        "orderId": account.order_id,
        "accountNumber": account.account_number,
        "amount": account.amount,
        "currency": account.currency,
        "status": _value(account.status),
        "qcPassed": bool(account.qc_passed),
        "paymentMethod": account.payment_method,
        "fundedAt": _iso(account.funded_at),
        "releasedAt": _iso(account.released_at),
        "refundedAt": _iso(account.refunded_at),
        "refundReason": account.refund_reason,
        "createdAt": _iso(account.created_at),
    }


def order_to_dict(order, include_escrow: bool = False) -> dict:
    data = {
        "id": order.id,
        "transactionId": order.transaction_id,
        "rfqId": order.rfq_id,
        "buyerId": order.buyer_id,
        "supplierId": order.supplier_id,
        "amount": order.amount,
        "currency": order.currency,
        "status": _value(order.status),
        "createdAt": _iso(order.created_at),
    }
    if include_escrow:
        data["escrow"] = escrow_to_dict(order.escrow)
    return data


def qc_report_to_dict(report) -> dict:
    return {
        "id": report.id,
        "orderId": report.order_id,
        "submittedBy": report.submitted_by,
        "photos": report.photos or [],
        "videos": report.videos or [],
        "notes": report.notes,
        "score": report.score,
        "status": _value(report.status),
        "createdAt": _iso(report.created_at),
    }


def notification_to_dict(notification) -> dict:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data or {},
        "read": bool(notification.read),
        "createdAt": _iso(notification.created_at),
    }


def user_to_dict(user) -> dict:
    """Account view for admins; never includes the password hash."""
    supplier = user.supplier
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "role": _value(user.role),
        "isActive": bool(user.is_active),
        "createdAt": _iso(user.created_at),
        "lastLogin": _iso(user.last_login),
        "supplier": {
            "id": supplier.id,
            "companyName": supplier.company_name,
            "verified": bool(supplier.verified),
        } if supplier else None,
    }


def product_to_dict(product, include_supplier: bool = True) -> dict:
    data = {
        "id": product.id,
        "supplierId": product.supplier_id,
        "name": product.name,
        "description": product.description,
        "category": product.category,
        "subcategory": product.subcategory,
        "price": product.price,
        "currency": product.currency,
        "minOrderQuantity": product.min_order_quantity,
        "unit": product.unit,
        "specifications": product.specifications or {},
        "features": product.features or [],
        "tags": product.tags or [],
        "images": product.images or [],
        "inStock": bool(product.in_stock),
        "stockQuantity": product.stock_quantity,
        "leadTime": product.lead_time,
        "views": product.views or 0,
        "createdAt": _iso(product.created_at),
        "updatedAt": _iso(product.updated_at),
    }
    if include_supplier:
        data["supplier"] = supplier_to_dict(product.supplier)
    return data
