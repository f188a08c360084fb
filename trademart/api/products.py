"""
Product catalog routes - suppliers list products, anyone can browse.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from trademart.api.deps import get_product_catalog
from trademart.api.serializers import ok, product_to_dict, rfq_to_dict
from trademart.core.rbac import require_buyer, require_supplier
from trademart.services.catalog import ProductCatalog

router = APIRouter(prefix="/api/products", tags=["Products"])


# ============= SCHEMAS =============

class ProductCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    subcategory: Optional[str] = Field(None, max_length=100)
    price: float = Field(..., gt=0)
    currency: Optional[str] = Field(None, max_length=10)
    min_order_quantity: int = Field(..., ge=1, alias="minOrderQuantity")
    unit: str = Field(..., min_length=1, max_length=50)
    specifications: Optional[Dict[str, Any]] = None
    features: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    images: Optional[List[str]] = None
    in_stock: bool = Field(True, alias="inStock")
    stock_quantity: Optional[int] = Field(None, ge=0, alias="stockQuantity")
    lead_time: Optional[str] = Field(None, max_length=100, alias="leadTime")


class ProductUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    subcategory: Optional[str] = Field(None, max_length=100)
    price: Optional[float] = None
    currency: Optional[str] = Field(None, max_length=10)
    min_order_quantity: Optional[int] = Field(None, alias="minOrderQuantity")
    unit: Optional[str] = Field(None, max_length=50)
    specifications: Optional[Dict[str, Any]] = None
    features: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    images: Optional[List[str]] = None
    in_stock: Optional[bool] = Field(None, alias="inStock")
    stock_quantity: Optional[int] = Field(None, alias="stockQuantity")
    lead_time: Optional[str] = Field(None, max_length=100, alias="leadTime")


class ProductQuoteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(..., alias="productId")
    quantity: int = Field(..., ge=1)
    notes: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None


# ============= ROUTES =============

@router.get("")
async def list_products(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    subcategory: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    catalog: ProductCatalog = Depends(get_product_catalog),
):
    """Browse the catalog. sortBy: popular, price-low, price-high, newest, oldest."""
    result = catalog.list_products(
        search=search, category=category, subcategory=subcategory,
        sort_by=sort_by, page=page, limit=limit,
    )
    return ok(
        [product_to_dict(p) for p in result.products],
        pagination=result.pagination,
        stats=result.stats,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    user_context: dict = Depends(require_supplier),
    catalog: ProductCatalog = Depends(get_product_catalog),
):
    """List a new product under the caller's supplier profile."""
    product = catalog.create_product(user_context["user_id"], **product_data.model_dump(exclude_none=True))
    return ok(product_to_dict(product))


@router.get("/mine")
async def list_my_products(
    user_context: dict = Depends(require_supplier),
    catalog: ProductCatalog = Depends(get_product_catalog),
):
    products = catalog.list_supplier_products(user_context["user_id"])
    return ok([product_to_dict(p, include_supplier=False) for p in products])


@router.post("/quote", status_code=status.HTTP_201_CREATED)
async def request_product_quote(
    quote_request: ProductQuoteRequest,
    user_context: dict = Depends(require_buyer),
    catalog: ProductCatalog = Depends(get_product_catalog),
):
    """
    Ask the product's supplier for a quote.

    Opens an RFQ for the caller with the product's category and unit and a
    budget of list price times quantity. Suppliers then quote on it as on
    any other RFQ.
    """
    rfq = catalog.request_quote(
        user_context["user_id"],
        quote_request.product_id,
        quote_request.quantity,
        notes=quote_request.notes,
        specifications=quote_request.specifications,
    )
    return ok(rfq_to_dict(rfq))


@router.get("/{product_id}")
async def get_product(
    product_id: int,
    catalog: ProductCatalog = Depends(get_product_catalog),
):
    return ok(product_to_dict(catalog.view_product(product_id)))


@router.put("/{product_id}")
async def update_product(
    product_id: int,
    changes: ProductUpdate,
    user_context: dict = Depends(require_supplier),
    catalog: ProductCatalog = Depends(get_product_catalog),
):
    """Edit a listing. Only its supplier (or an admin) may."""
    product = catalog.update_product(
        user_context["user_id"], user_context["role"], product_id,
        changes.model_dump(exclude_unset=True),
    )
    return ok(product_to_dict(product))


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    user_context: dict = Depends(require_supplier),
    catalog: ProductCatalog = Depends(get_product_catalog),
):
    catalog.delete_product(user_context["user_id"], user_context["role"], product_id)
    return ok({"id": product_id, "deleted": True})
