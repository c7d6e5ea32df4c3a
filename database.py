"""
MongoDB access for the storefront.

`db` is the module-level handle (None when DATABASE_URL is not set).
`MongoGateway` wraps the three record kinds (category, product, variant)
and the image blob store; every driver error comes out as a ReadFailure
or a WriteFailure.
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import gridfs
from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from errors import NotFound, ReadFailure, WriteFailure

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")

db = MongoClient(DATABASE_URL)[DATABASE_NAME] if DATABASE_URL and DATABASE_NAME else None


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_str_id(doc: dict) -> dict:
    d = dict(doc)
    if d.get("_id") is not None:
        d["id"] = str(d.pop("_id"))
    return d


def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise NotFound(f"Unknown id: {id_str}")


class MongoGateway:
    """Persistence gateway backed by MongoDB and GridFS."""

    def __init__(self, database=None, public_base_url: str = PUBLIC_BASE_URL):
        self.db = database if database is not None else db
        self.public_base_url = public_base_url.rstrip("/")

    def _require_db(self, failure):
        if self.db is None:
            raise failure("Database not configured")
        return self.db

    def _read(self, what: str, fn):
        database = self._require_db(ReadFailure)
        try:
            return fn(database)
        except PyMongoError as e:
            logger.exception("Reading %s failed", what)
            raise ReadFailure(f"Could not load {what}") from e

    def _write(self, what: str, fn):
        database = self._require_db(WriteFailure)
        try:
            return fn(database)
        except PyMongoError as e:
            logger.exception("Writing %s failed", what)
            raise WriteFailure(f"Could not save {what}") from e

    # Categories

    def list_categories(self) -> List[dict]:
        return self._read("categories", lambda d: [to_str_id(c) for c in d["category"].find()])

    def create_category(self, data: Dict[str, Any]) -> str:
        return self._write("category", lambda d: str(d["category"].insert_one(dict(data)).inserted_id))

    # Products

    def list_products(self, active_only: bool = True) -> List[dict]:
        query = {"is_active": True} if active_only else {}
        return self._read("products", lambda d: [to_str_id(p) for p in d["product"].find(query)])

    def get_product(self, product_id: str) -> Optional[dict]:
        _id = oid(product_id)
        doc = self._read("product", lambda d: d["product"].find_one({"_id": _id}))
        return to_str_id(doc) if doc else None

    def create_product(self, data: Dict[str, Any]) -> str:
        return self._write("product", lambda d: str(d["product"].insert_one(dict(data)).inserted_id))

    def update_product(self, product_id: str, data: Dict[str, Any]) -> None:
        _id = oid(product_id)
        self._write("product", lambda d: d["product"].update_one({"_id": _id}, {"$set": dict(data)}))

    def delete_product(self, product_id: str) -> None:
        _id = oid(product_id)
        self._write("product", lambda d: d["product"].delete_one({"_id": _id}))

    # Variants, scoped by product id

    def list_variants(self, product_id: str) -> List[dict]:
        return self._read(
            "variants", lambda d: [to_str_id(v) for v in d["variant"].find({"product_id": product_id})]
        )

    def create_variant(self, product_id: str, data: Dict[str, Any]) -> str:
        doc = {**data, "product_id": product_id}
        return self._write("variant", lambda d: str(d["variant"].insert_one(doc).inserted_id))

    def update_variant(self, product_id: str, variant_id: str, data: Dict[str, Any]) -> None:
        _id = oid(variant_id)
        self._write(
            "variant",
            lambda d: d["variant"].update_one({"_id": _id, "product_id": product_id}, {"$set": dict(data)}),
        )

    def delete_variant(self, product_id: str, variant_id: str) -> None:
        _id = oid(variant_id)
        self._write("variant", lambda d: d["variant"].delete_one({"_id": _id, "product_id": product_id}))

    # Image blobs

    def upload_blob(self, name: str, data: bytes, content_type: str) -> str:
        blob_id = self._write(
            "image", lambda d: gridfs.GridFS(d, collection="image").put(data, filename=name, metadata={"contentType": content_type})
        )
        return f"{self.public_base_url}/api/images/{blob_id}"

    def open_blob(self, blob_id: str) -> Tuple[bytes, str]:
        _id = oid(blob_id)

        def fetch(d):
            fs = gridfs.GridFS(d, collection="image")
            if not fs.exists(_id):
                return None
            out = fs.get(_id)
            metadata = out.metadata or {}
            return out.read(), metadata.get("contentType", "application/octet-stream")

        found = self._read("image", fetch)
        if found is None:
            raise NotFound("Image not found")
        return found
