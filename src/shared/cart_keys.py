"""Cart line identity shared by the backend cart and the storefront synchronizer."""

import json


def serialize_options(selected_options: dict | None) -> str:
    """Canonical form of a selected-options map: sorted keys, compact separators."""
    return json.dumps(selected_options or {}, sort_keys=True, separators=(",", ":"))


def item_key(product_id: str, selected_options: dict | None = None) -> str:
    """Compose the line identity: ``<productId>-<serialized options>``.

    Two variants of the same product are therefore distinct lines:
    ``item_key("A")`` is ``A-{}`` and ``item_key("A", {"color": "red"})`` is
    ``A-{"color":"red"}``.
    """
    return f"{product_id}-{serialize_options(selected_options)}"
