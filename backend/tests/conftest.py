"""Shared pytest fixtures: in-memory Firestore, fake Braintree gateway, API client."""
import copy
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

os.environ.setdefault("RECONCILIATION_ENABLED", "false")

from fastapi.testclient import TestClient  # noqa: E402
from google.cloud.firestore_v1 import SERVER_TIMESTAMP  # noqa: E402

from storefront.client.storage import MemoryStorage  # noqa: E402
from storefront.core.errors import GatewayError  # noqa: E402
from storefront.core.security import get_current_user  # noqa: E402
from storefront.integrations.payment import DECLINED_TEST_NONCE, get_payment_gateway  # noqa: E402
from storefront.main import app  # noqa: E402
from storefront.repositories.orders import OrderRepository, get_order_repository  # noqa: E402


# ---------- in-memory Firestore ----------
def _lookup(data, path):
    cur = data
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return None
        cur = cur[part]
    return cur


class FakeSnapshot:
    def __init__(self, ref, data):
        self.reference = ref
        self.id = ref.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocRef:
    def __init__(self, db, collection, doc_id):
        self._db = db
        self._collection = collection
        self.id = doc_id

    @property
    def _docs(self):
        return self._db.data.setdefault(self._collection, {})

    def get(self):
        return FakeSnapshot(self, copy.deepcopy(self._docs.get(self.id)))

    def set(self, data, merge=False):
        self._db.check_writable(self._collection)
        data = self._db.resolve(data)
        if merge and self.id in self._docs:
            self._docs[self.id].update(data)
        else:
            self._docs[self.id] = data
        self._db.writes.append(("set", self._collection, self.id))

    def update(self, patch):
        self._db.check_writable(self._collection)
        if self.id not in self._docs:
            raise KeyError(f"No document to update: {self._collection}/{self.id}")
        self._docs[self.id].update(self._db.resolve(patch))
        self._db.writes.append(("update", self._collection, self.id))

    def delete(self):
        self._docs.pop(self.id, None)
        self._db.writes.append(("delete", self._collection, self.id))


class FakeQuery:
    def __init__(self, db, collection, filters=(), order=None, limit_n=None):
        self._db = db
        self._collection = collection
        self._filters = tuple(filters)
        self._order = order
        self._limit = limit_n

    def where(self, filter=None):
        return FakeQuery(self._db, self._collection, self._filters + (filter,), self._order, self._limit)

    def order_by(self, field, direction="ASCENDING"):
        return FakeQuery(self._db, self._collection, self._filters, (field, direction), self._limit)

    def limit(self, n):
        return FakeQuery(self._db, self._collection, self._filters, self._order, n)

    def stream(self):
        docs = self._db.data.get(self._collection, {})
        rows = []
        for doc_id, data in docs.items():
            if all(self._match(data, f) for f in self._filters):
                rows.append(FakeSnapshot(FakeDocRef(self._db, self._collection, doc_id), copy.deepcopy(data)))
        if self._order:
            field, direction = self._order
            rows.sort(key=lambda s: _lookup(s.to_dict(), field) or 0, reverse=direction == "DESCENDING")
        if self._limit is not None:
            rows = rows[: self._limit]
        return iter(rows)

    def get(self):
        return list(self.stream())

    @staticmethod
    def _match(data, flt):
        value = _lookup(data, flt.field_path)
        if flt.op_string == "==":
            return value == flt.value
        if flt.op_string == "in":
            return value in flt.value
        raise NotImplementedError(flt.op_string)


class FakeCollection(FakeQuery):
    def document(self, doc_id):
        return FakeDocRef(self._db, self._collection, doc_id)


class FakeFirestore:
    def __init__(self):
        self.data = {}
        self.writes = []
        self.unavailable = set()
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def collection(self, name):
        return FakeCollection(self, name)

    def check_writable(self, collection):
        if collection in self.unavailable:
            raise RuntimeError(f"Firestore unavailable for {collection}")

    def resolve(self, data):
        out = {}
        for key, value in copy.deepcopy(data).items():
            if value is SERVER_TIMESTAMP:
                self._clock += timedelta(seconds=1)
                value = self._clock
            out[key] = value
        return out


# ---------- fake Braintree ----------
class FakePayments:
    simulated = True

    def __init__(self):
        self.sales = []
        self.token_error = None
        self.sale_error = None
        self.omit_transaction_id = False

    def generate_client_token(self):
        if self.token_error:
            raise GatewayError(self.token_error)
        return "client-token-123"

    def sale(self, amount: Decimal, nonce: str):
        self.sales.append((amount, nonce))
        if self.sale_error:
            raise GatewayError(self.sale_error)
        if nonce == DECLINED_TEST_NONCE:
            return False, {"message": "Credit card declined", "status": "processor_declined"}
        return True, {
            "transaction_id": None if self.omit_transaction_id else f"txn-{len(self.sales)}",
            "status": "submitted_for_settlement",
            "amount": float(amount),
            "success": True,
        }


BUYER = {"id": "buyer-1", "name": "Tester", "email": "tester@gmail.com", "address": "1 Computing Drive",
         "role": "customer"}
ADMIN = {"id": "admin-1", "name": "Admin", "email": "admin@example.com", "role": "admin"}


@pytest.fixture
def fake_db():
    return FakeFirestore()


@pytest.fixture
def repository(fake_db):
    return OrderRepository(fake_db)


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def current_user():
    return dict(BUYER)


@pytest.fixture
def api(repository, payments, current_user):
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[get_payment_gateway] = lambda: payments
    app.dependency_overrides[get_order_repository] = lambda: repository
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_api(repository, payments):
    app.dependency_overrides[get_payment_gateway] = lambda: payments
    app.dependency_overrides[get_order_repository] = lambda: repository
    yield TestClient(app)
    app.dependency_overrides.clear()
