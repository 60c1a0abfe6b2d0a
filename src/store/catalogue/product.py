"""Product reference data consumed by carts and orders.

Catalogue management lives outside this context; the store only keeps what
pricing a cart line and validating its option selection needs.
"""

import json
from datetime import UTC, datetime

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from store.domain import store


@store.aggregate
class Product:
    product_id = Identifier(identifier=True, required=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="GHS")
    required_options = Text()  # JSON array of option names, e.g. ["size", "color"]
    updated_at = DateTime()

    def required_option_names(self) -> list[str]:
        return json.loads(self.required_options) if self.required_options else []

    def assert_options_selected(self, selected_options: dict | None) -> None:
        """Every required option must be present with a non-empty value."""
        selected = selected_options or {}
        missing = [name for name in self.required_option_names() if not selected.get(name)]
        if missing:
            raise ValidationError({"selected_options": [f"Please select {name}" for name in missing]})


@store.command(part_of="Product")
class RegisterProduct:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="GHS")
    required_options = Text()  # JSON array


@store.command_handler(part_of=Product)
class RegisterProductHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        product = Product(
            product_id=command.product_id,
            name=command.name,
            price=command.price,
            currency=command.currency or "GHS",
            required_options=command.required_options or json.dumps([]),
            updated_at=datetime.now(UTC),
        )
        current_domain.repository_for(Product).add(product)
        return str(product.product_id)
