"""
Basket pricing and renderer payload assembly.
"""

import pytest

from conftest import make_product
from proforma.services import invoice_service, request_service, tombstone_service
from proforma.services.invoice_service import MixedCurrencyBasket, ProductUnavailable
from proforma.services.pricing_service import InvalidQuantity


def test_price_basket_resolves_each_line(db_session, brand, category, product):
    soap = make_product(brand, category, name="Shea Soap", base_price_cents=800)

    priced = invoice_service.price_basket([(product.id, 10), (soap.id, 4)])

    assert [(l.name, l.unit_price_cents, l.line_total_cents) for l in priced.lines] == [
        ("Raw Shea Butter 1kg", 2200, 22000),
        ("Shea Soap", 800, 3200),
    ]
    assert priced.total_amount_cents == 25200
    assert priced.currency == "GHS"


def test_missing_product(db_session):
    with pytest.raises(ProductUnavailable) as exc:
        invoice_service.price_basket([(31337, 1)])
    assert exc.value.product_id == 31337


def test_product_under_deleted_brand(db_session, brand, product):
    tombstone_service.soft_delete("brand", brand.id)
    with pytest.raises(ProductUnavailable):
        invoice_service.price_basket([(product.id, 1)])


def test_preview_formats_totals(db_session, product):
    preview = invoice_service.basket_preview([(product.id, 75)])
    assert preview["total_amount_cents"] == 150000
    assert preview["total_amount"] == "1500.00"
    assert preview["lines"][0]["unit_price_cents"] == 2000


def test_document_payload(db_session, product, notifier):
    req = request_service.submit_request(
        basket=[(product.id, 12)],
        customer={"first_name": "Ama", "last_name": "Mensah", "email": "ama@example.com", "company_name": "Mensah Trading"},
        notes="Deliver to Tamale",
    )

    doc = invoice_service.assemble_document(req)

    assert set(doc) >= {"request_number", "customer", "lines", "total_amount_cents", "currency", "issued_at", "status"}
    assert doc["request_number"] == req.request_number
    assert doc["customer"]["name"] == "Ama Mensah"
    assert doc["customer"]["company_name"] == "Mensah Trading"
    assert doc["lines"] == [{
        "product_id": product.id,
        "name": "Raw Shea Butter 1kg",
        "quantity": 12,
        "unit_price_cents": 2200,
        "unit_price": "22.00",
        "line_total_cents": 26400,
        "line_total": "264.00",
    }]
    assert doc["total_amount_cents"] == 26400
    assert doc["issued_at"].endswith("Z")
    assert doc["status"] == "pending"


def test_document_status_override(db_session, product, notifier):
    req = request_service.submit_request(basket=[(product.id, 1)], customer={"email": "a@example.com"})
    assert invoice_service.assemble_document(req, status="approved")["status"] == "approved"


def test_mixed_currencies_rejected(db_session, brand, category, product):
    imported = make_product(brand, category, name="Imported Argan Oil", base_price_cents=1000, currency="USD")
    with pytest.raises(MixedCurrencyBasket):
        invoice_service.price_basket([(product.id, 1), (imported.id, 1)])


def test_zero_entry_not_absorbed_by_merge(db_session, product):
    with pytest.raises(InvalidQuantity):
        invoice_service.price_basket([(product.id, 5), (product.id, 0)])
