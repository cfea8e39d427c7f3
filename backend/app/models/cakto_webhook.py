"""
Pydantic models for the Cakto purchase webhook.

Models:
  CaktoWebhookPayload  — inbound JSON body ({secret, event, data})
  CaktoPurchaseData    — the nested ``data`` object of a purchase event
  PurchaseDetails      — fields extracted from ``data`` with defaults applied

Cakto sends many more fields; only what the access flow needs is modelled
and everything else is ignored (model_config extra="ignore").
"""

from typing import Optional, Union
from pydantic import BaseModel

PURCHASE_APPROVED = "purchase_approved"

DEFAULT_CUSTOMER_NAME = "aluno(a)"
DEFAULT_PRODUCT_NAME = "Seu Acesso"


class CaktoCustomer(BaseModel):
    model_config = {"extra": "ignore"}

    email: Optional[str] = None
    name: Optional[str] = None


class CaktoProduct(BaseModel):
    model_config = {"extra": "ignore"}

    name: Optional[str] = None


class CaktoOffer(BaseModel):
    model_config = {"extra": "ignore"}

    name: Optional[str] = None


class CaktoPurchaseData(BaseModel):
    """The ``data`` object of a Cakto event. Every field is optional."""
    model_config = {"extra": "ignore"}

    id: Optional[Union[str, int]] = None
    checkoutUrl: Optional[str] = None
    customer: Optional[CaktoCustomer] = None
    product: Optional[CaktoProduct] = None
    offer: Optional[CaktoOffer] = None


class CaktoWebhookPayload(BaseModel):
    model_config = {"extra": "ignore"}

    secret: Optional[str] = None
    event: Optional[str] = None
    data: Optional[CaktoPurchaseData] = None


class PurchaseDetails(BaseModel):
    """
    Values the access flow works with, after fallbacks.

    Empty strings are treated the same as missing values. ``email`` stays
    None when the payload has none; the router rejects that case.
    """

    email: Optional[str] = None
    name: str = DEFAULT_CUSTOMER_NAME
    product_name: str = DEFAULT_PRODUCT_NAME
    order_id: Optional[str] = None
    checkout_url: Optional[str] = None

    @classmethod
    def from_data(cls, data: Optional[CaktoPurchaseData]) -> "PurchaseDetails":
        if data is None:
            return cls()

        customer = data.customer or CaktoCustomer()
        product_name = (
            (data.product.name if data.product else None)
            or (data.offer.name if data.offer else None)
            or DEFAULT_PRODUCT_NAME
        )

        return cls(
            email=customer.email or None,
            name=customer.name or DEFAULT_CUSTOMER_NAME,
            product_name=product_name,
            order_id=str(data.id) if data.id not in (None, "") else None,
            checkout_url=data.checkoutUrl or None,
        )
