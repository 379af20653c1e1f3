from typing import Any

import pytest

from conftest import GATEWAY_KEY_ID, GATEWAY_SECRET, SHOE_X
from storefront.checkout_client.api import StorefrontAPI
from storefront.checkout_client.collector import CollectorState, Completed, PaymentCollector
from storefront.checkout_client.loader import WidgetLoader
from storefront.checkout_service.app.verifier import sign_payment


class _SigningWidget:
    """Stands in for the hosted widget: signs whatever gateway order it is opened with."""

    def __init__(self, payment_id: str) -> None:
        self.payment_id = payment_id
        self.options: dict[str, Any] = {}

    async def open(self, options: dict[str, Any]) -> Completed:
        self.options = options
        gateway_order_id = options["order_id"]
        return Completed(
            gateway_order_id,
            self.payment_id,
            sign_payment(GATEWAY_SECRET, gateway_order_id, self.payment_id),
        )


@pytest.mark.asyncio
async def test_collector_confirms_order_against_the_service(harness) -> None:
    api = StorefrontAPI(harness.client, user_id="user-1", user_email="asha@example.com")
    widget = _SigningWidget("pay_e2e")

    async def load():
        return lambda: widget

    collector = PaymentCollector(api, WidgetLoader(load))

    cart = await api.add_to_cart(SHOE_X, 9, quantity=2)
    assert cart["totalItems"] == 2

    outcome = await collector.checkout_and_collect(
        {
            "shippingAddress": {
                "name": "Asha Rao",
                "phone": "9876543210",
                "email": "asha@example.com",
                "address": "12 MG Road",
                "city": "Bengaluru",
                "state": "Karnataka",
                "pincode": "560001",
            },
            "billingSameAsShipping": True,
        }
    )

    assert outcome.state is CollectorState.CONFIRMED
    assert widget.options["key"] == GATEWAY_KEY_ID
    assert widget.options["amount"] == 2360
    assert widget.options["prefill"]["contact"] == "9876543210"

    order = await api.get_order(outcome.order_id)
    assert order["status"] == "confirmed"
    assert order["gatewayPaymentId"] == "pay_e2e"
    assert (await api.get_cart())["lines"] == []
