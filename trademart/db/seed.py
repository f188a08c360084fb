"""
Demo data for local development. Only runs when SEED_DEMO=true (DEBUG only).
"""
from trademart.core.logging import get_logger
from trademart.core.security import get_password_hash
from trademart.db.models import (
    User, Supplier, Product, RFQ, Quote, Transaction, Order,
    UserRole, RFQStatus, QuoteStatus, TransactionStatus, OrderStatus,
)
from trademart.db.session import SessionLocal

logger = get_logger(__name__)

DEMO_USERS = [
    ("admin@trademart.com", "Admin User", UserRole.ADMIN, "admin123"),
    ("buyer1@example.com", "John Smith", UserRole.BUYER, "buyer123"),
    ("buyer2@example.com", "Sarah Johnson", UserRole.BUYER, "buyer123"),
    ("supplier1@example.com", "Mike Chen", UserRole.SUPPLIER, "supplier123"),
    ("supplier2@example.com", "Lisa Wang", UserRole.SUPPLIER, "supplier123"),
    ("supplier3@example.com", "David Rodriguez", UserRole.SUPPLIER, "supplier123"),
]

DEMO_SUPPLIERS = {
    "supplier1@example.com": ("TechCorp Electronics", "Electronics", True, 4.8),
    "supplier2@example.com": ("Global Textiles Ltd", "Textiles", True, 4.6),
    "supplier3@example.com": ("Industrial Solutions Inc", "Machinery", False, 4.2),
}


def seed_demo_data():
    """Create demo accounts, products, RFQs, quotes and one accepted deal. Skips if users exist."""
    db = SessionLocal()
    try:
        if db.query(User).filter(User.email == "buyer1@example.com").first():
            logger.info("Demo data already present. Skipping.")
            return

        users = {}
        for email, name, role, password in DEMO_USERS:
            existing = db.query(User).filter(User.email == email).first()
            if existing:
                users[email] = existing
                continue
            user = User(
                email=email,
                name=name,
                role=role,
                hashed_password=get_password_hash(password),
                is_active=True,
            )
            db.add(user)
            users[email] = user
        db.flush()

        suppliers = {}
        for email, (company, industry, verified, rating) in DEMO_SUPPLIERS.items():
            supplier = users[email].supplier
            if supplier:
                suppliers[email] = supplier
                continue
            supplier = Supplier(
                user_id=users[email].id,
                company_name=company,
                industry=industry,
                verified=verified,
                rating=rating,
            )
            db.add(supplier)
            suppliers[email] = supplier
        db.flush()

        products_data = [
            ("supplier1@example.com", "IoT Sensor Module", "Electronics", "Sensors", 18.50, 500, "pieces",
             "Low-power temperature and humidity sensor module with BLE."),
            ("supplier1@example.com", "Outdoor LED Panel P10", "Electronics", "Displays", 240.00, 20, "panels",
             "Weather-resistant P10 LED panel for outdoor signage."),
            ("supplier2@example.com", "Combed Cotton Fabric", "Textiles", "Cotton", 3.20, 1000, "yards",
             "180 GSM combed cotton, reactive dyed, available in 24 colors."),
        ]
        for supplier_email, name, category, subcategory, price, moq, unit, description in products_data:
            db.add(Product(
                supplier_id=suppliers[supplier_email].id,
                name=name,
                description=description,
                category=category,
                subcategory=subcategory,
                price=price,
                min_order_quantity=moq,
                unit=unit,
                in_stock=True,
            ))

        buyer1 = users["buyer1@example.com"]
        buyer2 = users["buyer2@example.com"]
        rfqs_data = [
            (buyer1, "Custom PCB Assembly Services",
             "Looking for a reliable supplier to provide custom PCB assembly services for our IoT devices.",
             "Electronics", RFQStatus.OPEN),
            (buyer1, "Cotton Fabric for Apparel Manufacturing",
             "Need high-quality cotton fabric in various colors. Minimum order quantity 1000 yards per color.",
             "Textiles", RFQStatus.OPEN),
            (buyer2, "Industrial Conveyor Belt System",
             "Complete conveyor belt system for our manufacturing facility, installation included.",
             "Machinery", RFQStatus.OPEN),
            (buyer2, "LED Display Panels",
             "Energy-efficient, weather-resistant LED display panels for outdoor advertising.",
             "Electronics", RFQStatus.CLOSED),
        ]
        rfqs = []
        for buyer, title, description, category, rfq_status in rfqs_data:
            rfq = RFQ(
                buyer_id=buyer.id,
                title=title,
                description=description,
                category=category,
                status=rfq_status,
            )
            db.add(rfq)
            rfqs.append(rfq)
        db.flush()

        quotes_data = [
            (rfqs[0], "supplier1@example.com", 2500.00, 14, QuoteStatus.PENDING,
             "PCB assembly with 99.9% accuracy. Components sourced from certified suppliers."),
            (rfqs[1], "supplier2@example.com", 8500.00, 21, QuoteStatus.PENDING,
             "Premium cotton fabric with excellent color fastness. Samples available before bulk production."),
            (rfqs[2], "supplier3@example.com", 45000.00, 45, QuoteStatus.PENDING,
             "Complete conveyor system with 2-year warranty. Installation and training included."),
            (rfqs[3], "supplier1@example.com", 12000.00, 30, QuoteStatus.ACCEPTED,
             "LED panels with 5-year warranty. Weatherproof and energy-efficient design."),
        ]
        quotes = []
        for rfq, supplier_email, price, lead_time, quote_status, notes in quotes_data:
            quote = Quote(
                rfq_id=rfq.id,
                supplier_id=suppliers[supplier_email].id,
                price=price,
                currency=rfq.currency,
                lead_time_days=lead_time,
                notes=notes,
                status=quote_status,
            )
            db.add(quote)
            quotes.append(quote)
        db.flush()

        accepted = quotes[3]
        transaction = Transaction(
            buyer_id=buyer2.id,
            supplier_id=accepted.supplier_id,
            rfq_id=accepted.rfq_id,
            quote_id=accepted.id,
            amount=accepted.price,
            currency=accepted.currency,
            status=TransactionStatus.HELD,
        )
        db.add(transaction)
        db.flush()
        db.add(Order(
            transaction_id=transaction.id,
            rfq_id=accepted.rfq_id,
            buyer_id=buyer2.id,
            supplier_id=accepted.supplier_id,
            amount=accepted.price,
            currency=accepted.currency,
            status=OrderStatus.CONFIRMED,
        ))

        db.commit()
        logger.info(
            f"Demo data seeded: {len(users)} users, {len(products_data)} products, {len(rfqs)} RFQs, {len(quotes)} quotes. "
            "Accounts: buyer1@example.com / buyer123, supplier1@example.com / supplier123"
        )
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    from trademart.core.logging import setup_logging
    setup_logging()
    seed_demo_data()
