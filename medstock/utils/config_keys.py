# medstock/utils/config_keys.py
from medstock.models.stock import LocationKind

CENTRAL_SUFFIX = "central"
GENERAL_STOCK_SUFFIX = "UBSGENERAL"


def config_key(
    item_id: str,
    location_kind: LocationKind,
    location_id: str | None = None,
) -> str:
    """
    Deterministic StockConfig id for one item at one location.

    Formats:
    - central warehouse:            {itemId}_central
    - served unit:                  {itemId}_{unitId}
    - primary-care general stock:   {itemId}_{hospitalId}_UBSGENERAL

    Example: config_key("i1", LocationKind.UNIT, "u9") -> "i1_u9"
    """
    if not item_id:
        raise ValueError("item_id is required")

    if location_kind == LocationKind.CENTRAL:
        return f"{item_id}_{CENTRAL_SUFFIX}"

    if not location_id:
        raise ValueError(f"location_id is required for {location_kind.value} configs")

    if location_kind == LocationKind.UNIT:
        return f"{item_id}_{location_id}"

    return f"{item_id}_{location_id}_{GENERAL_STOCK_SUFFIX}"
