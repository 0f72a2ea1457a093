"""Pytest fixtures for storefront tests."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from postgrest.exceptions import APIError


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Just enough of the postgrest query builder for the storefront."""

    def __init__(self, db, table, op, payload=None):
        self.db = db
        self.table = table
        self.op = op
        self.payload = payload
        self.filters = []
        self._order = None
        self._limit = None

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def is_(self, column, value):
        assert value == "null"
        self.filters.append(lambda row: row.get(column) is None)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.op))
        hooks = self.db.hooks.get((self.table, self.op))
        if hooks:
            hooks.pop(0)(self.db)
        if (self.table, self.op) in self.db.failures:
            self.db.failures.discard((self.table, self.op))
            raise APIError({"message": f"{self.op} on {self.table} failed", "code": "500"})

        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "select":
            found = [dict(r) for r in rows if self._matches(r)]
            if self._order:
                column, desc = self._order
                found.sort(key=lambda r: (r.get(column) is None, r.get(column) or 0), reverse=desc)
            if self._limit is not None:
                found = found[: self._limit]
            return FakeResponse(found)
        if self.op == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            created = []
            for item in payload:
                row = dict(item)
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_at", self.db.tick())
                rows.append(row)
                created.append(dict(row))
            return FakeResponse(created)
        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return FakeResponse(updated)
        if self.op == "delete":
            removed = [dict(r) for r in rows if self._matches(r)]
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            return FakeResponse(removed)
        raise AssertionError(self.op)


class FakeTable:
    def __init__(self, db, name):
        self.db = db
        self.name = name

    def select(self, columns="*"):
        return FakeQuery(self.db, self.name, "select")

    def insert(self, payload):
        return FakeQuery(self.db, self.name, "insert", payload)

    def update(self, payload):
        return FakeQuery(self.db, self.name, "update", payload)

    def delete(self):
        return FakeQuery(self.db, self.name, "delete")


class FakeSupabase:
    """In-memory stand-in for the Supabase client's table API."""

    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failures = set()
        self.hooks = {}
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def tick(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def table(self, name):
        return FakeTable(self, name)

    def fail_on(self, table, op):
        self.failures.add((table, op))

    def before(self, table, op, hook):
        self.hooks.setdefault((table, op), []).append(hook)

    def rows(self, table):
        return self.tables.get(table, [])

    def writes(self):
        return [c for c in self.calls if c[1] != "select"]


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def catalog_db(db):
    """Products, attributes and variants used across the tests."""
    db.tables["products"] = [
        {"id": "p-ring", "name": "Royal Ring", "price": 1000, "discount_percentage": 10,
         "stock_quantity": 20, "stock_status": "in_stock", "cash_on_delivery": True,
         "images": ["ring.jpg"], "image_url": None},
        {"id": "p-necklace", "name": "Pearl Necklace", "price": 500, "discount_percentage": 0,
         "stock_quantity": None, "stock_status": "in_stock", "cash_on_delivery": False,
         "images": [], "image_url": "necklace.jpg"},
        {"id": "p-bangle", "name": "Bangle", "price": 1000, "discount_percentage": 20,
         "stock_quantity": 50, "stock_status": "in_stock", "cash_on_delivery": True,
         "images": None, "image_url": None},
        {"id": "p-set", "name": "Bridal Set", "price": 5000, "discount_percentage": 0,
         "stock_quantity": 4, "stock_status": "low_stock", "cash_on_delivery": True,
         "images": None, "image_url": None},
        {"id": "p-soldout", "name": "Crown", "price": 9000, "discount_percentage": 0,
         "stock_quantity": 0, "stock_status": "sold_out", "cash_on_delivery": True,
         "images": None, "image_url": None},
    ]
    db.tables["product_attributes"] = [
        {"id": "attr-color", "name": "Color", "icon_url": None, "sort_order": 1},
        {"id": "attr-size", "name": "Size", "icon_url": None, "sort_order": 2},
    ]
    db.tables["product_attribute_values"] = [
        {"id": "val-gold", "attribute_id": "attr-color", "value": "Gold", "sort_order": 1},
        {"id": "val-silver", "attribute_id": "attr-color", "value": "Silver", "sort_order": 2},
        {"id": "val-rose", "attribute_id": "attr-color", "value": "Rose", "sort_order": 3},
        {"id": "val-s", "attribute_id": "attr-size", "value": "S", "sort_order": 1},
        {"id": "val-m", "attribute_id": "attr-size", "value": "M", "sort_order": 2},
    ]
    db.tables["product_variants"] = [
        {"id": "v-gold", "product_id": "p-bangle", "attribute_value_id": "val-gold",
         "price": 1500, "stock_quantity": 3, "is_available": True},
        {"id": "v-silver", "product_id": "p-bangle", "attribute_value_id": "val-silver",
         "price": 1200, "stock_quantity": 0, "is_available": True},
        {"id": "v-rose", "product_id": "p-bangle", "attribute_value_id": "val-rose",
         "price": 1300, "stock_quantity": 10, "is_available": False},
        {"id": "v-set-gold", "product_id": "p-set", "attribute_value_id": "val-gold",
         "price": 2000, "stock_quantity": 5, "is_available": True},
        {"id": "v-set-m", "product_id": "p-set", "attribute_value_id": "val-m",
         "price": 2100, "stock_quantity": None, "is_available": True},
    ]
    return db


def make_coupon(db, code, discount_type="percentage", discount_value=10, **extra):
    row = {
        "id": f"c-{code.lower()}",
        "code": code,
        "discount_type": discount_type,
        "discount_value": discount_value,
        "min_order_amount": 0,
        "max_uses": None,
        "used_count": 0,
        "is_active": True,
        "expires_at": None,
    }
    row.update(extra)
    db.tables.setdefault("coupons", []).append(row)
    return row


@pytest.fixture
def coupon_factory(db):
    def factory(code, discount_type="percentage", discount_value=10, **extra):
        return make_coupon(db, code, discount_type, discount_value, **extra)

    return factory


@pytest.fixture
def api(catalog_db):
    """TestClient wired to the in-memory database."""
    from fastapi.testclient import TestClient

    from storefront.api.deps import get_db
    from storefront.main import app
    from storefront.services.cart import sessions

    sessions._sessions.clear()
    app.dependency_overrides[get_db] = lambda: catalog_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(catalog_db):
    from storefront.core.security import create_token

    catalog_db.tables["user_roles"] = [{"id": "r-1", "user_id": "admin-1", "role": "admin"}]
    return {"Authorization": f"Bearer {create_token('admin-1')}"}
