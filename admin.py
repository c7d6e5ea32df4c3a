"""
Admin mutations for products, their variant and categories.

All input is validated before anything is uploaded or written. Image upload
and record writes run one after another with no rollback: a failed write
after a successful upload leaves the blob behind.
"""
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional, Union

from pydantic import BaseModel, ValidationError

from database import now_iso
from errors import MissingImage, NotFound, ValidationFailure
from schemas import CategoryForm, ProductForm, VariantForm

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024


@dataclass
class ImageFile:
    filename: str
    content_type: str
    data: bytes


def parse_form(model, data: Union[BaseModel, dict]):
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ValidationFailure(f"Invalid or missing fields: {fields}") from e


def check_image(image: ImageFile) -> None:
    if not (image.content_type or "").startswith("image/"):
        raise ValidationFailure("Please select a valid image file")
    if len(image.data) > MAX_IMAGE_BYTES:
        raise ValidationFailure("Image size should be less than 5MB")


class AdminService:
    def __init__(self, gateway):
        self.gateway = gateway

    def upload_image(self, image: ImageFile) -> str:
        check_image(image)
        name = f"products/{int(time.time() * 1000)}_{os.path.basename(image.filename or 'image')}"
        url = self.gateway.upload_blob(name, image.data, image.content_type)
        logger.info("Uploaded product image %s", name)
        return url

    def _product_doc(self, form: ProductForm, image_url: str, is_active: bool) -> dict:
        return {
            "name": form.name,
            "slug": form.slug,
            "description": form.description,
            "image_url": image_url,
            "base_price": form.base_price,
            "category_id": form.category_id,
            "is_active": is_active,
            "updated_at": now_iso(),
        }

    def create_product(self, fields, variant_fields, image: Optional[ImageFile] = None) -> str:
        form = parse_form(ProductForm, fields)
        variant = parse_form(VariantForm, variant_fields)
        if image is not None:
            check_image(image)
        elif not form.image_url:
            raise MissingImage()

        image_url = self.upload_image(image) if image is not None else form.image_url
        is_active = True if form.is_active is None else form.is_active
        doc = self._product_doc(form, image_url, is_active)
        doc["created_at"] = doc["updated_at"]
        product_id = self.gateway.create_product(doc)
        self.gateway.create_variant(
            product_id,
            {"weight": variant.weight, "price": variant.price, "stock": variant.stock, "is_active": True},
        )
        logger.info("Created product %s (%s)", product_id, form.slug)
        return product_id

    def update_product(self, product_id: str, fields, variant_fields, image: Optional[ImageFile] = None) -> None:
        """Update a product and its first variant.

        A product stored without variants gets none here; only
        create_product adds a variant.
        """
        form = parse_form(ProductForm, fields)
        variant = parse_form(VariantForm, variant_fields)
        if image is not None:
            check_image(image)

        existing = self.gateway.get_product(product_id)
        if existing is None:
            raise NotFound("Product not found")
        if image is None and not (form.image_url or existing.get("image_url")):
            raise MissingImage()

        if image is not None:
            image_url = self.upload_image(image)
        else:
            image_url = form.image_url or existing["image_url"]
        if form.is_active is None:
            is_active = existing.get("is_active", True)
        else:
            is_active = form.is_active
        self.gateway.update_product(product_id, self._product_doc(form, image_url, is_active))

        variants = self.gateway.list_variants(product_id)
        if variants:
            self.gateway.update_variant(
                product_id,
                variants[0]["id"],
                {"weight": variant.weight, "price": variant.price, "stock": variant.stock},
            )
        else:
            logger.info("Product %s has no variant to update", product_id)
        logger.info("Updated product %s", product_id)

    def delete_product(self, product_id: str) -> None:
        # children first; the store has no cascading delete
        variants = self.gateway.list_variants(product_id)
        for v in variants:
            self.gateway.delete_variant(product_id, v["id"])
        self.gateway.delete_product(product_id)
        logger.info("Deleted product %s and %d variants", product_id, len(variants))

    def toggle_active(self, product_id: str) -> bool:
        existing = self.gateway.get_product(product_id)
        if existing is None:
            raise NotFound("Product not found")
        is_active = not existing.get("is_active", False)
        self.gateway.update_product(product_id, {"is_active": is_active, "updated_at": now_iso()})
        logger.info("Product %s is now %s", product_id, "active" if is_active else "inactive")
        return is_active

    def create_category(self, fields) -> str:
        form = parse_form(CategoryForm, fields)
        if any(c.get("slug") == form.slug for c in self.gateway.list_categories()):
            raise ValidationFailure(f"Category slug already exists: {form.slug}")
        category_id = self.gateway.create_category({**form.model_dump(), "created_at": now_iso()})
        logger.info("Created category %s (%s)", category_id, form.slug)
        return category_id
