"""Shared pytest fixtures for storefront tests."""

import itertools

import pytest

from errors import NotFound, ReadFailure, WriteFailure
from kvstore import MemoryStore
from schemas import Product, ProductVariant
from storefront import Storefront


class FakeGateway:
    """In-memory gateway that records every call in order."""

    def __init__(self):
        self.categories = {}
        self.products = {}
        self.variants = {}
        self.blobs = {}
        self.calls = []
        self.fail_reads = False
        self.fail_writes = False
        self._ids = itertools.count(1)

    def _next_id(self, prefix):
        return f"{prefix}{next(self._ids)}"

    def _read(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_reads:
            raise ReadFailure(f"Could not load {name}")

    def _write(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_writes:
            raise WriteFailure(f"Could not save {name}")

    def list_categories(self):
        self._read("list_categories")
        return [dict(c) for c in self.categories.values()]

    def create_category(self, data):
        self._write("create_category")
        cid = self._next_id("c")
        self.categories[cid] = {**data, "id": cid}
        return cid

    def list_products(self, active_only=True):
        self._read("list_products", active_only)
        return [
            dict(p) for p in self.products.values()
            if not active_only or p.get("is_active") is True
        ]

    def get_product(self, product_id):
        self._read("get_product", product_id)
        p = self.products.get(product_id)
        return dict(p) if p else None

    def create_product(self, data):
        self._write("create_product")
        pid = self._next_id("p")
        self.products[pid] = {**data, "id": pid}
        self.variants[pid] = {}
        return pid

    def update_product(self, product_id, data):
        self._write("update_product", product_id)
        self.products[product_id].update(data)

    def delete_product(self, product_id):
        self._write("delete_product", product_id)
        self.products.pop(product_id, None)

    def list_variants(self, product_id):
        self._read("list_variants", product_id)
        return [dict(v) for v in self.variants.get(product_id, {}).values()]

    def create_variant(self, product_id, data):
        self._write("create_variant", product_id)
        vid = self._next_id("v")
        self.variants.setdefault(product_id, {})[vid] = {**data, "product_id": product_id, "id": vid}
        return vid

    def update_variant(self, product_id, variant_id, data):
        self._write("update_variant", product_id, variant_id)
        self.variants[product_id][variant_id].update(data)

    def delete_variant(self, product_id, variant_id):
        self._write("delete_variant", product_id, variant_id)
        self.variants[product_id].pop(variant_id, None)

    def upload_blob(self, name, data, content_type):
        self._write("upload_blob", name)
        bid = self._next_id("b")
        self.blobs[bid] = (data, content_type)
        return f"http://test/api/images/{bid}"

    def open_blob(self, blob_id):
        self._read("open_blob", blob_id)
        if blob_id not in self.blobs:
            raise NotFound("Image not found")
        return self.blobs[blob_id]

    # helpers for arranging tests

    def add_category(self, name, slug, description=""):
        cid = self._next_id("c")
        self.categories[cid] = {"id": cid, "name": name, "slug": slug, "description": description}
        return cid

    def add_product(self, name, category_id="", is_active=True, variants=(), **extra):
        pid = self._next_id("p")
        self.products[pid] = {
            "id": pid,
            "name": name,
            "slug": name.lower().replace(" ", "-"),
            "description": f"{name} description",
            "image_url": "http://img/x.png",
            "base_price": 100.0,
            "category_id": category_id,
            "is_active": is_active,
            **extra,
        }
        self.variants[pid] = {}
        for weight, price, stock in variants:
            vid = self._next_id("v")
            self.variants[pid][vid] = {
                "id": vid,
                "product_id": pid,
                "weight": weight,
                "price": price,
                "stock": stock,
                "is_active": True,
            }
        return pid


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def storefront(gateway, store):
    return Storefront(gateway, store, admin_username="admin", admin_password="admin")


@pytest.fixture
def product():
    return Product(id="p1", name="Multigrain Laddu", slug="multigrain-laddu", base_price=250.0)


@pytest.fixture
def variant():
    return ProductVariant(id="v1", product_id="p1", weight="500g", price=250.0, stock=10)


@pytest.fixture
def small_variant():
    return ProductVariant(id="v2", product_id="p1", weight="250g", price=130.0, stock=10)
