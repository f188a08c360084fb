"""
FastAPI dependencies that build the workflow services per request.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from trademart.db.session import get_db
from trademart.services.audit import client_ip
from trademart.services.catalog import ProductCatalog
from trademart.services.escrow_ledger import EscrowLedger
from trademart.services.notifications import NotificationDispatcher, get_notifier
from trademart.services.qc_evaluator import QCEvaluator
from trademart.services.quote_lifecycle import QuoteLifecycleManager


def get_quote_manager(
    request: Request,
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> QuoteLifecycleManager:
    return QuoteLifecycleManager(db, notifier, ip_address=client_ip(request))


def get_escrow_ledger(
    request: Request,
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> EscrowLedger:
    return EscrowLedger(db, notifier, ip_address=client_ip(request))


def get_qc_evaluator(
    request: Request,
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> QCEvaluator:
    return QCEvaluator(db, notifier, ip_address=client_ip(request))


def get_product_catalog(
    request: Request,
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ProductCatalog:
    return ProductCatalog(db, notifier, ip_address=client_ip(request))
