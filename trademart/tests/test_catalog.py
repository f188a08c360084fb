"""
Tests for the supplier product catalog.

Tests:
1. Listing requires a supplier profile and a priced, complete product
2. Browsing filters, sorts, paginates and reports catalog stats
3. Only the owning supplier (or an admin) edits or removes a listing
4. A product quote request opens an ordinary RFQ for the buyer
"""
from datetime import datetime, timezone

import pytest

from trademart.core.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from trademart.db.models import RFQ, Product, RFQStatus, QuoteStatus, UserRole
from trademart.services import notifications as notify
from trademart.services.catalog import ProductCatalog
from trademart.services.quote_lifecycle import QuoteLifecycleManager


@pytest.fixture
def catalog(db, notifier):
    return ProductCatalog(db, notifier)


def _list_product(catalog, supplier, **overrides):
    values = {
        "name": "IoT Sensor Module",
        "description": "BLE temperature and humidity sensor",
        "category": "Electronics",
        "subcategory": "Sensors",
        "price": 18.5,
        "min_order_quantity": 100,
        "unit": "pieces",
    }
    values.update(overrides)
    return catalog.create_product(supplier.user_id, **values)


class TestCreateProduct:

    def test_supplier_lists_product(self, catalog, supplier):
        product = _list_product(catalog, supplier, tags=["iot", "ble"])

        assert product.id is not None
        assert product.supplier_id == supplier.id
        assert product.currency == "INR"
        assert product.in_stock is True
        assert product.views == 0
        assert product.tags == ["iot", "ble"]

    def test_user_without_profile_cannot_list(self, catalog, make_user):
        bare = make_user(UserRole.SUPPLIER)

        with pytest.raises(ForbiddenError):
            catalog.create_product(
                bare.id, name="Widget", description="x", category="Parts", price=1.0,
                min_order_quantity=1, unit="pcs",
            )

    def test_price_must_be_positive(self, catalog, supplier):
        with pytest.raises(InvalidArgumentError):
            _list_product(catalog, supplier, price=0)

    def test_missing_required_fields(self, db, catalog, supplier):
        with pytest.raises(InvalidArgumentError) as exc:
            catalog.create_product(supplier.user_id, name="Widget", price=5.0)

        assert "description" in exc.value.message
        assert db.query(Product).count() == 0

    def test_unknown_fields_rejected(self, catalog, supplier):
        with pytest.raises(InvalidArgumentError):
            _list_product(catalog, supplier, views=500)


class TestBrowseCatalog:

    @pytest.fixture
    def listed(self, db, catalog, make_supplier):
        electronics = make_supplier("TechCorp Electronics")
        textiles = make_supplier("Global Textiles Ltd")
        sensor = _list_product(catalog, electronics, price=18.5)
        panel = _list_product(
            catalog, electronics, name="Outdoor LED Panel", category="Electronics",
            subcategory="Displays", price=240.0, min_order_quantity=10, unit="panels",
        )
        fabric = _list_product(
            catalog, textiles, name="Combed Cotton Fabric", description="180 GSM cotton",
            category="Textiles", subcategory="Cotton", price=3.2, unit="yards", in_stock=False,
        )
        panel.views = 40
        sensor.views = 5
        db.commit()
        return {"sensor": sensor, "panel": panel, "fabric": fabric}

    def test_default_sort_is_most_viewed(self, catalog, listed):
        page = catalog.list_products()

        assert [p.id for p in page.products] == [listed["panel"].id, listed["sensor"].id, listed["fabric"].id]

    def test_search_matches_name_description_and_category(self, catalog, listed):
        assert [p.id for p in catalog.list_products(search="cotton").products] == [listed["fabric"].id]
        assert len(catalog.list_products(search="electron").products) == 2

    def test_category_filter_and_all(self, catalog, listed):
        assert catalog.list_products(category="Textiles").total == 1
        assert catalog.list_products(category="all").total == 3
        assert catalog.list_products(category="Electronics", subcategory="Displays").total == 1

    def test_price_sorts(self, catalog, listed):
        low = catalog.list_products(sort_by="price-low").products
        high = catalog.list_products(sort_by="price-high").products

        assert [p.price for p in low] == [3.2, 18.5, 240.0]
        assert [p.price for p in high] == [240.0, 18.5, 3.2]

    def test_unknown_sort_falls_back_to_popular(self, catalog, listed):
        assert catalog.list_products(sort_by="cheapest").products[0].id == listed["panel"].id

    def test_pagination_and_stats(self, catalog, listed):
        page = catalog.list_products(page=2, limit=2)

        assert len(page.products) == 1
        assert page.pagination == {"page": 2, "limit": 2, "total": 3, "pages": 2}
        assert page.stats == {"totalProducts": 3, "totalViews": 45, "inStockProducts": 2}

    def test_stats_cover_whole_catalog_when_filtered(self, catalog, listed):
        page = catalog.list_products(category="Textiles")

        assert page.total == 1
        assert page.stats["totalProducts"] == 3

    def test_view_counts_each_read(self, catalog, listed):
        catalog.view_product(listed["fabric"].id)
        viewed = catalog.view_product(listed["fabric"].id)

        assert viewed.views == 2
        assert viewed.supplier.company_name == "Global Textiles Ltd"

    def test_view_unknown_product(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.view_product(999)

    def test_supplier_sees_only_own_products(self, catalog, listed):
        owner = listed["fabric"].supplier

        mine = catalog.list_supplier_products(owner.user_id)

        assert [p.id for p in mine] == [listed["fabric"].id]


class TestEditProduct:

    def test_owner_updates_listing(self, db, catalog, supplier):
        product = _list_product(catalog, supplier)

        updated = catalog.update_product(
            supplier.user_id, UserRole.SUPPLIER, product.id, {"price": 17.0, "in_stock": False},
        )

        assert updated.price == 17.0
        assert updated.in_stock is False

    def test_other_supplier_cannot_update(self, db, catalog, supplier, make_supplier):
        product = _list_product(catalog, supplier)
        rival = make_supplier("Rival Co")

        with pytest.raises(ForbiddenError):
            catalog.update_product(rival.user_id, UserRole.SUPPLIER, product.id, {"price": 1.0})

        db.refresh(product)
        assert product.price == 18.5

    def test_admin_can_update(self, catalog, supplier, make_user):
        product = _list_product(catalog, supplier)
        admin = make_user(UserRole.ADMIN)

        updated = catalog.update_product(admin.id, UserRole.ADMIN, product.id, {"name": "Sensor Module v2"})

        assert updated.name == "Sensor Module v2"

    def test_update_rejects_non_positive_price(self, catalog, supplier):
        product = _list_product(catalog, supplier)

        with pytest.raises(InvalidArgumentError):
            catalog.update_product(supplier.user_id, UserRole.SUPPLIER, product.id, {"price": -3})

    def test_owner_deletes_listing(self, db, catalog, supplier):
        product = _list_product(catalog, supplier)

        catalog.delete_product(supplier.user_id, UserRole.SUPPLIER, product.id)

        assert db.query(Product).count() == 0

    def test_other_supplier_cannot_delete(self, db, catalog, supplier, make_supplier):
        product = _list_product(catalog, supplier)
        rival = make_supplier("Rival Co")

        with pytest.raises(ForbiddenError):
            catalog.delete_product(rival.user_id, UserRole.SUPPLIER, product.id)

        assert db.query(Product).count() == 1


class TestProductQuoteRequest:

    def test_opens_rfq_priced_from_listing(self, db, catalog, recorder, buyer, supplier):
        product = _list_product(catalog, supplier)

        rfq = catalog.request_quote(buyer.id, product.id, 250, notes="Need by March")

        assert rfq.buyer_id == buyer.id
        assert rfq.status == RFQStatus.OPEN
        assert rfq.title == "Quote Request for IoT Sensor Module"
        assert rfq.category == "Electronics"
        assert rfq.quantity == 250
        assert rfq.unit == "pieces"
        assert rfq.budget == pytest.approx(18.5 * 250)
        assert "Need by March" in rfq.description

        days_left = (rfq.expires_at.replace(tzinfo=None) - datetime.now(timezone.utc).replace(tzinfo=None)).days
        assert days_left in (29, 30)

        sent = recorder.for_user(supplier.user_id)
        assert [n.type for n in sent] == [notify.PRODUCT_QUOTE_REQUESTED]
        assert sent[0].data == {"rfqId": rfq.id, "productId": product.id}

    def test_quantity_below_minimum_order(self, db, catalog, buyer, supplier):
        product = _list_product(catalog, supplier, min_order_quantity=100)

        with pytest.raises(InvalidArgumentError):
            catalog.request_quote(buyer.id, product.id, 10)

        assert db.query(RFQ).count() == 0

    def test_unknown_product(self, catalog, buyer):
        with pytest.raises(NotFoundError):
            catalog.request_quote(buyer.id, 999, 10)

    def test_supplier_quotes_on_requested_rfq(self, db, catalog, notifier, buyer, supplier):
        product = _list_product(catalog, supplier)
        rfq = catalog.request_quote(buyer.id, product.id, 100)

        quote = QuoteLifecycleManager(db, notifier).submit_quote(supplier.user_id, rfq.id, 1800.0, 12)

        assert quote.status == QuoteStatus.PENDING
        assert quote.rfq_id == rfq.id
