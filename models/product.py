"""
Product configuration models.

A ProductConfig is what the user picks on the first wizard step: product
type, physical size, paper finish (posters only) and quantity.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional, Union


class ProductType(Enum):
    """Physical product the image is printed on."""

    POSTER = "poster"
    CANVAS = "canvas"

    @property
    def has_finish(self) -> bool:
        """Only posters come in matte or gloss."""
        return self is ProductType.POSTER


class PrintSize(Enum):
    """
    Fixed physical print sizes, width x height in inches.

    Value strings are the ids the UI and the rate table use.
    """

    SMALL = "12x18"
    MEDIUM = "18x24"
    LARGE = "24x36"

    @property
    def width_in(self) -> int:
        return int(self.value.split("x")[0])

    @property
    def height_in(self) -> int:
        return int(self.value.split("x")[1])

    @property
    def area_sq_in(self) -> int:
        return self.width_in * self.height_in

    @property
    def label(self) -> str:
        return f'{self.width_in}" x {self.height_in}"'


class Finish(Enum):
    """Poster paper finish."""

    MATTE = "matte"
    GLOSS = "gloss"


def _coerce(enum_cls, value):
    """Accept an enum member or its string value (case-insensitive)."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        return enum_cls(value.strip().lower())
    raise ValueError(f"{value!r} is not a valid {enum_cls.__name__}")


def parse_product_type(value: Union[str, ProductType]) -> ProductType:
    return _coerce(ProductType, value)


def parse_size(value: Union[str, PrintSize]) -> PrintSize:
    return _coerce(PrintSize, value)


def parse_finish(value: Union[str, Finish, None]) -> Optional[Finish]:
    if value is None or value == "":
        return None
    return _coerce(Finish, value)


@dataclass(frozen=True)
class ProductConfig:
    """
    User's product choices.

    Immutable: the wizard replaces the whole config on every change, which
    is what triggers re-validation and a fresh price quote.

    Canvas has no finish. ``normalized()`` drops any finish sent for a canvas
    so it can never reach pricing or the SKU.
    """

    product_type: ProductType = ProductType.POSTER
    size: PrintSize = PrintSize.MEDIUM
    finish: Optional[Finish] = Finish.MATTE
    quantity: int = 1

    def __post_init__(self):
        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool) or self.quantity < 1:
            raise ValueError(f"quantity must be a positive integer, got {self.quantity!r}")

    def normalized(self) -> "ProductConfig":
        """Return a config with finish made consistent with the product type."""
        if not self.product_type.has_finish:
            if self.finish is None:
                return self
            return ProductConfig(self.product_type, self.size, None, self.quantity)
        if self.finish is None:
            return ProductConfig(self.product_type, self.size, Finish.MATTE, self.quantity)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        config = self.normalized()
        return {
            "productType": config.product_type.value,
            "size": config.size.value,
            "finish": config.finish.value if config.finish else None,
            "quantity": config.quantity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductConfig":
        """Create from a dictionary (request body or stored JSON)."""
        return cls(
            product_type=parse_product_type(data.get("productType", "poster")),
            size=parse_size(data.get("size", PrintSize.MEDIUM.value)),
            finish=parse_finish(data.get("finish")),
            quantity=int(data.get("quantity", 1)),
        ).normalized()


def product_label(config: ProductConfig) -> str:
    """Display name such as 'Gloss Poster' or 'Canvas'."""
    config = config.normalized()
    if config.product_type is ProductType.CANVAS:
        return "Canvas"
    return f"{config.finish.value.title()} Poster"

