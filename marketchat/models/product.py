from typing import Optional, TypedDict


class ProductDocument(TypedDict, total=False):

    _id: str
    product_name: str
    image_url: Optional[str]
    price: float
