import json

import httpx
import pytest

from storefront.client.cart import CART_KEY, CartStore
from storefront.client.checkout import PAYMENT_COMPLETED, CheckoutOrchestrator, CheckoutStatus, Notifier
from storefront.client.gateway import PAYMENT_PATH, TOKEN_PATH, NonceCollector, PaymentGatewayClient
from storefront.client.guard import LOGIN_PATH, ORDERS_PATH, GuardDecision
from storefront.core.errors import GENERIC_FAILURE, PersistenceError
from storefront.schemas.principal import Buyer

BUYER = Buyer.model_validate({"_id": "u1", "name": "Foo", "address": "123 Main St", "token": "tok"})


class RecordingNotifier(Notifier):
    def __init__(self):
        self.successes = []
        self.errors = []

    def success(self, message):
        self.successes.append(message)

    def error(self, message):
        self.errors.append(message)


class DropIn(NonceCollector):
    async def request_payment_method(self, authorization):
        return "test-nonce"


class Api:
    def __init__(self, payment=None, token=None):
        self.payment = payment or httpx.Response(200, json={"ok": True, "orderId": "order-1"})
        self.token = token or httpx.Response(200, json={"clientToken": "test-client-token"})
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.token if request.url.path == TOKEN_PATH else self.payment

    def payment_bodies(self):
        return [json.loads(r.content) for r in self.requests if r.url.path == PAYMENT_PATH]


@pytest.fixture
def cart(storage):
    store = CartStore(storage)
    store.add({"_id": "1", "name": "Product", "price": 10, "description": "Test"})
    store.add({"_id": "2", "name": "Other", "price": 5, "quantity": 2})
    return store


def _orchestrator(api, notifier=None):
    http = httpx.AsyncClient(transport=httpx.MockTransport(api), base_url="http://testserver")
    return CheckoutOrchestrator(PaymentGatewayClient(http), notifier=notifier or RecordingNotifier())


async def test_successful_order_clears_cart_and_redirects(cart, storage):
    api = Api()
    notifier = RecordingNotifier()
    checkout = _orchestrator(api, notifier)
    await checkout.load(BUYER)

    result = await checkout.pay(BUYER, cart, DropIn())

    assert result.status is CheckoutStatus.PLACED
    assert result.order_id == "order-1"
    assert result.redirect.path == ORDERS_PATH
    assert cart.is_empty
    assert storage.get_item(CART_KEY) is None
    assert notifier.successes == [PAYMENT_COMPLETED]


async def test_payment_body_carries_cart_at_submit_time(cart):
    api = Api()
    checkout = _orchestrator(api)
    await checkout.load(BUYER)
    cart.add({"_id": "3", "name": "Late addition", "price": 1})

    await checkout.pay(BUYER, cart, DropIn())

    [body] = api.payment_bodies()
    assert body["nonce"] == "test-nonce"
    assert [line["_id"] for line in body["cart"]] == ["1", "2", "3"]


async def test_declined_payment_leaves_cart_byte_for_byte(cart, storage):
    api = Api(payment=httpx.Response(400, json={"ok": False, "error": "Credit card declined", "declined": True}))
    notifier = RecordingNotifier()
    checkout = _orchestrator(api, notifier)
    await checkout.load(BUYER)
    before_items, before_raw = cart.items, storage.get_item(CART_KEY)

    result = await checkout.pay(BUYER, cart, DropIn())

    assert result.status is CheckoutStatus.DECLINED
    assert cart.items == before_items
    assert storage.get_item(CART_KEY) == before_raw
    assert notifier.errors == ["Credit card declined"]


async def test_charged_without_order_keeps_cart_and_shows_generic_notice(cart, storage, caplog):
    api = Api(payment=httpx.Response(500, json={
        "ok": False, "error": "Payment processed but order creation failed", "paymentId": "txn-7"}))
    notifier = RecordingNotifier()
    checkout = _orchestrator(api, notifier)
    await checkout.load(BUYER)
    before_raw = storage.get_item(CART_KEY)

    result = await checkout.pay(BUYER, cart, DropIn())

    assert result.status is CheckoutStatus.FAILED
    assert isinstance(result.error, PersistenceError)
    assert storage.get_item(CART_KEY) == before_raw
    assert notifier.errors == [GENERIC_FAILURE]
    assert any(r.levelname == "CRITICAL" and "txn-7" in r.getMessage() for r in caplog.records)


async def test_gateway_outage_is_generic_failure(cart):
    api = Api(payment=httpx.Response(500, json={"ok": False, "error": "Payment processing failed"}))
    notifier = RecordingNotifier()
    checkout = _orchestrator(api, notifier)
    await checkout.load(BUYER)

    result = await checkout.pay(BUYER, cart, DropIn())

    assert result.status is CheckoutStatus.FAILED
    assert len(cart) == 2
    assert notifier.errors == [GENERIC_FAILURE]


async def test_token_failure_hides_form_and_never_settles(cart):
    api = Api(token=httpx.Response(500, json={"ok": False}))
    checkout = _orchestrator(api)

    guard = await checkout.load(BUYER)
    result = await checkout.pay(BUYER, cart, DropIn())

    assert guard.allowed
    assert not checkout.gateway.form_available
    assert result.status is CheckoutStatus.BLOCKED
    assert api.payment_bodies() == []
    assert len(cart) == 2


async def test_unauthenticated_checkout_routes_to_login(cart):
    api = Api()
    notifier = RecordingNotifier()
    checkout = _orchestrator(api, notifier)

    guard = await checkout.load(None)
    result = await checkout.place_order(None, cart, "test-nonce")

    assert guard.decision is GuardDecision.REQUIRES_LOGIN
    assert guard.redirect.path == LOGIN_PATH and guard.redirect.state == "/cart"
    assert result.status is CheckoutStatus.BLOCKED
    assert notifier.errors == ["Please Login to checkout"]
    assert api.requests == []


async def test_missing_address_blocks_commit(cart):
    buyer = BUYER.model_copy(update={"address": None})
    api = Api()
    checkout = _orchestrator(api)

    guard = await checkout.load(buyer)
    result = await checkout.place_order(buyer, cart, "test-nonce")

    assert guard.decision is GuardDecision.REQUIRES_ADDRESS
    assert checkout.gateway.form_available
    assert result.status is CheckoutStatus.BLOCKED
    assert api.payment_bodies() == []


async def test_empty_cart_is_rejected_before_network(storage):
    api = Api()
    checkout = _orchestrator(api)
    await checkout.load(BUYER)

    result = await checkout.place_order(BUYER, CartStore(storage), "test-nonce")

    assert result.status is CheckoutStatus.BLOCKED
    assert result.message == "Your cart is empty"
    assert api.payment_bodies() == []


async def test_missing_nonce_is_rejected_before_network(cart):
    api = Api()
    checkout = _orchestrator(api)
    await checkout.load(BUYER)

    result = await checkout.place_order(BUYER, cart, None)

    assert result.status is CheckoutStatus.BLOCKED
    assert api.payment_bodies() == []


async def test_malformed_cart_price_blocks_checkout(storage):
    storage.set_item(CART_KEY, json.dumps([{"_id": "1", "name": "Broken", "price": "n/a"}]))
    api = Api()
    checkout = _orchestrator(api)
    await checkout.load(BUYER)

    result = await checkout.place_order(BUYER, CartStore(storage), "test-nonce")

    assert result.status is CheckoutStatus.BLOCKED
    assert api.payment_bodies() == []
