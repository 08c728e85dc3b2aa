from typing import Any, Dict, Iterable, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from marketchat.models.product import ProductDocument
from marketchat.utils.mongo import to_object_id


PRODUCT_FIELDS = {"product_name": 1, "image_url": 1, "price": 1}


def to_summary(product: Dict[str, Any]) -> ProductDocument:
    return {
        "_id": str(product["_id"]),
        "product_name": product.get("product_name"),
        "image_url": product.get("image_url"),
        "price": product.get("price"),
    }


class ProductRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("products")

    async def get_product(self, product_id: str) -> Optional[ProductDocument]:
        oid = to_object_id(product_id)
        if oid is None:
            return None
        product = await self._collection.find_one({"_id": oid}, PRODUCT_FIELDS)
        return to_summary(product) if product else None

    async def get_products(self, product_ids: Iterable[str]) -> Dict[str, ProductDocument]:
        oids = [oid for oid in (to_object_id(pid) for pid in set(product_ids)) if oid is not None]
        if not oids:
            return {}
        products = await self._collection.find({"_id": {"$in": oids}}, PRODUCT_FIELDS).to_list(length=None)
        return {str(p["_id"]): to_summary(p) for p in products}
