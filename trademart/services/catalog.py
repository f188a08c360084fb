"""
Supplier product catalog.

Suppliers with a company profile list products; anyone can browse them.
Asking for a quote on a product opens an ordinary RFQ for the buyer, priced
at list price times quantity, so the rest of the sourcing flow (quotes,
acceptance, escrow) is unchanged.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy import asc, desc, func, or_
from sqlalchemy.orm import Session, joinedload

from trademart.core.config import settings
from trademart.core.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from trademart.core.logging import get_logger
from trademart.db.models import Product, RFQ, RFQStatus, Supplier, UserRole
from trademart.services import notifications as notify
from trademart.services.audit import record_audit
from trademart.services.notifications import NotificationDispatcher

logger = get_logger(__name__)

PRODUCT_SORTS = {
    "popular": (desc(Product.views), desc(Product.id)),
    "price-low": (asc(Product.price), asc(Product.id)),
    "price-high": (desc(Product.price), desc(Product.id)),
    "newest": (desc(Product.created_at), desc(Product.id)),
    "oldest": (asc(Product.created_at), asc(Product.id)),
}
DEFAULT_PRODUCT_SORT = "popular"

# Columns a supplier may change after listing
EDITABLE_FIELDS = (
    "name", "description", "category", "subcategory", "price", "currency",
    "min_order_quantity", "unit", "specifications", "features", "tags",
    "images", "in_stock", "stock_quantity", "lead_time",
)
REQUIRED_FIELDS = ("name", "description", "category", "unit")


@dataclass
class ProductPage:
    products: List[Product]
    total: int
    page: int
    limit: int
    stats: Dict[str, int] = field(default_factory=dict)

    @property
    def pagination(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": math.ceil(self.total / self.limit),
        }


def _check_listing(values: dict):
    for name in REQUIRED_FIELDS:
        if name in values and not (values[name] or "").strip():
            raise InvalidArgumentError(f"{name} is required")
    if "price" in values and (values["price"] is None or values["price"] <= 0):
        raise InvalidArgumentError("Price must be greater than zero")
    if "min_order_quantity" in values and (values["min_order_quantity"] is None or values["min_order_quantity"] < 1):
        raise InvalidArgumentError("Minimum order quantity must be at least 1")
    if "in_stock" in values and values["in_stock"] is None:
        raise InvalidArgumentError("inStock must be true or false")
    if values.get("stock_quantity") is not None and values["stock_quantity"] < 0:
        raise InvalidArgumentError("Stock quantity cannot be negative")


class ProductCatalog:
    def __init__(self, db: Session, notifier: NotificationDispatcher, ip_address: Optional[str] = None):
        self.db = db
        self.notifier = notifier
        self.ip_address = ip_address

    def _own_supplier(self, user_id: int) -> Supplier:
        supplier = self.db.query(Supplier).filter(Supplier.user_id == user_id).first()
        if not supplier:
            raise ForbiddenError("Create a supplier profile before listing products", user_id=user_id)
        return supplier

    def _editable(self, user_id: int, role, product_id: int, action: str) -> Product:
        product = self.db.query(Product).options(joinedload(Product.supplier)).filter(
            Product.id == product_id
        ).first()
        if not product:
            raise NotFoundError("Product not found")
        if role != UserRole.ADMIN and product.supplier.user_id != user_id:
            raise ForbiddenError(f"Unauthorized to {action} this product", user_id=user_id)
        return product

    # ----- listing management -----

    def create_product(self, user_id: int, **values) -> Product:
        supplier = self._own_supplier(user_id)
        unknown = set(values) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidArgumentError(f"Unknown product fields: {', '.join(sorted(unknown))}")
        missing = [name for name in REQUIRED_FIELDS + ("price",) if values.get(name) is None]
        if missing:
            raise InvalidArgumentError(f"Missing required fields: {', '.join(missing)}")
        _check_listing(values)

        product = Product(supplier_id=supplier.id, **values)
        if not product.currency:
            product.currency = settings.DEFAULT_CURRENCY
        self.db.add(product)
        self.db.flush()

        record_audit(
            self.db, "create_product", user_id, "product", product.id,
            details={"name": product.name, "price": product.price},
            ip_address=self.ip_address,
        )
        self.db.commit()
        self.db.refresh(product)
        return product

    def update_product(self, user_id: int, role, product_id: int, changes: dict) -> Product:
        product = self._editable(user_id, role, product_id, "edit")
        changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        _check_listing(changes)

        for name, value in changes.items():
            setattr(product, name, value)

        record_audit(
            self.db, "update_product", user_id, "product", product.id,
            details={"fields": sorted(changes)}, ip_address=self.ip_address,
        )
        self.db.commit()
        self.db.refresh(product)
        return product

    def delete_product(self, user_id: int, role, product_id: int) -> None:
        product = self._editable(user_id, role, product_id, "delete")
        record_audit(
            self.db, "delete_product", user_id, "product", product.id,
            details={"name": product.name}, ip_address=self.ip_address,
        )
        self.db.delete(product)
        self.db.commit()

    # ----- browsing -----

    def list_products(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        sort_by: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> ProductPage:
        """Filtered, sorted page of the catalog plus catalog-wide stats.

        Unknown sort keys fall back to most viewed; a category of "all"
        means no category filter.
        """
        query = self.db.query(Product)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Product.name.ilike(pattern),
                Product.description.ilike(pattern),
                Product.category.ilike(pattern),
            ))
        if category and category != "all":
            query = query.filter(Product.category == category)
        if subcategory and subcategory != "all":
            query = query.filter(Product.subcategory == subcategory)

        total = query.count()
        ordering = PRODUCT_SORTS.get(sort_by or DEFAULT_PRODUCT_SORT, PRODUCT_SORTS[DEFAULT_PRODUCT_SORT])
        products = query.options(
            joinedload(Product.supplier).joinedload(Supplier.user)
        ).order_by(*ordering).offset((page - 1) * limit).limit(limit).all()

        return ProductPage(products=products, total=total, page=page, limit=limit, stats=self.catalog_stats())

    def catalog_stats(self) -> Dict[str, int]:
        total, views = self.db.query(func.count(Product.id), func.coalesce(func.sum(Product.views), 0)).one()
        in_stock = self.db.query(func.count(Product.id)).filter(Product.in_stock.is_(True)).scalar()
        return {"totalProducts": total, "totalViews": int(views), "inStockProducts": in_stock}

    def list_supplier_products(self, user_id: int) -> List[Product]:
        supplier = self._own_supplier(user_id)
        return self.db.query(Product).filter(
            Product.supplier_id == supplier.id
        ).order_by(desc(Product.created_at), desc(Product.id)).all()

    def view_product(self, product_id: int) -> Product:
        """Product detail; counts the view."""
        viewed = self.db.query(Product).filter(Product.id == product_id).update(
            {Product.views: Product.views + 1}, synchronize_session=False,
        )
        if not viewed:
            self.db.rollback()
            raise NotFoundError("Product not found")
        self.db.commit()

        return self.db.query(Product).options(
            joinedload(Product.supplier).joinedload(Supplier.user)
        ).filter(Product.id == product_id).one()

    # ----- quote requests -----

    def request_quote(
        self,
        buyer_id: int,
        product_id: int,
        quantity: int,
        notes: Optional[str] = None,
        specifications: Optional[dict] = None,
    ) -> RFQ:
        product = self.db.query(Product).options(joinedload(Product.supplier)).filter(
            Product.id == product_id
        ).first()
        if not product:
            raise NotFoundError("Product not found")
        if quantity is None or quantity < 1:
            raise InvalidArgumentError("Quantity must be at least 1")
        if quantity < (product.min_order_quantity or 1):
            raise InvalidArgumentError(
                f"Minimum order for this product is {product.min_order_quantity} {product.unit}"
            )

        lines = [
            f"Product quote request for {product.name}",
            f"Quantity: {quantity} {product.unit}",
        ]
        if specifications:
            lines.append("Specifications: " + ", ".join(f"{k}: {v}" for k, v in specifications.items()))
        lines.append(f"Notes: {notes or 'None'}")

        rfq = RFQ(
            buyer_id=buyer_id,
            title=f"Quote Request for {product.name}",
            description="\n".join(lines),
            category=product.category,
            quantity=quantity,
            unit=product.unit,
            budget=product.price * quantity,
            currency=product.currency or settings.DEFAULT_CURRENCY,
            expires_at=datetime.now(timezone.utc) + timedelta(days=settings.PRODUCT_QUOTE_EXPIRY_DAYS),
            status=RFQStatus.OPEN,
        )
        self.db.add(rfq)
        self.db.flush()

        record_audit(
            self.db, "request_product_quote", buyer_id, "rfq", rfq.id,
            details={"product_id": product.id, "quantity": quantity, "budget": rfq.budget},
            ip_address=self.ip_address,
        )
        self.db.commit()
        self.db.refresh(rfq)
        logger.info(
            f"Buyer {buyer_id} requested a quote on product {product.id}; RFQ {rfq.id} opened",
            extra={"user_id": buyer_id, "rfq_id": rfq.id},
        )

        self.notifier.notify(
            product.supplier.user_id,
            notify.PRODUCT_QUOTE_REQUESTED,
            "Quote requested",
            f"A buyer asked for {quantity} {product.unit} of '{product.name}'",
            {"rfqId": rfq.id, "productId": product.id},
        )
        return rfq
