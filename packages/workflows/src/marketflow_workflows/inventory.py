"""Supplier inventory: the add-inventory wizard, its payload, and stock status."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from marketflow_common.exceptions import ValidationError

from .coercion import compact, is_blank, parse_number, to_number, to_text
from .wizard import FieldRule, WizardDefinition, WizardStep

INVENTORY_DEFAULTS: dict[str, Any] = {
    # Basic information
    "itemName": "",
    "itemCode": "",
    "sku": "",
    "description": "",
    "itemType": "",
    "category": "",
    "subcategory": "",
    # Material specs
    "materialType": "",
    "composition": "",
    "weightValue": "",
    "weightUnit": "gsm",
    "widthValue": "",
    "widthUnit": "inch",
    "color": "",
    "colorCode": "",
    "finish": "",
    "pattern": "",
    "grade": "Standard",
    # Quantity and reorder management
    "unitOfMeasurement": "unit",
    "totalQuantity": "",
    "reservedQuantity": "0",
    "committedQuantity": "0",
    "reorderPoint": "10",
    "reorderQuantity": "100",
    "minimumStockLevel": "5",
    "maximumStockLevel": "1000",
    "safetyStockLevel": "20",
    # Pricing
    "costPrice": "",
    "standardCost": "",
    "currency": "USD",
    "valuationMethod": "FIFO",
    # Storage
    "warehouse": "Main Warehouse",
    "section": "",
    "aisle": "",
    "rack": "",
    "bin": "",
    "tempMin": "",
    "tempMax": "",
    "tempUnit": "C",
    "humidityMin": "",
    "humidityMax": "",
    "specialRequirements": "",
    # Quality and compliance
    "qualityStandards": [],
    "certifications": [],
    "isSustainable": False,
    "isOrganic": False,
    "isRecycled": False,
    "hasExpiryDate": False,
    "shelfLifeDays": "",
    # Metadata
    "tags": [],
    "countryOfOrigin": "",
    "manufacturer": "",
    "hsCode": "",
    "notes": "",
    # Batch tracking
    "batchTracking": True,
    "batchNumber": "",
    "batchQuantity": "",
    "manufacturingDate": "",
    "batchExpiryDate": "",
    "images": [],
}

INVENTORY_WIZARD = WizardDefinition(
    name="add_inventory",
    steps=(
        WizardStep(
            name="basic_info",
            title="Basic Info",
            rules=(
                FieldRule("itemName", "Item name is required"),
                FieldRule("itemCode", "Item code is required"),
                FieldRule("description", "Description is required"),
                FieldRule("itemType", "Item type is required"),
                FieldRule("category", "Category is required"),
            ),
            fields=(
                "sku", "subcategory", "materialType", "composition",
                "weightValue", "weightUnit", "widthValue", "widthUnit",
                "color", "colorCode", "finish", "pattern", "grade",
            ),
        ),
        WizardStep(
            name="quantity_pricing",
            title="Quantity & Pricing",
            rules=(
                FieldRule("unitOfMeasurement", "Unit is required"),
                FieldRule("totalQuantity", "Valid quantity is required", gt=0),
                FieldRule("costPrice", "Valid cost price is required", gt=0),
            ),
            fields=(
                "reservedQuantity", "committedQuantity", "reorderPoint",
                "reorderQuantity", "minimumStockLevel", "maximumStockLevel",
                "safetyStockLevel", "standardCost", "currency", "valuationMethod",
            ),
        ),
        WizardStep(
            name="storage_location",
            title="Storage Location",
            fields=(
                "warehouse", "section", "aisle", "rack", "bin", "tempMin",
                "tempMax", "tempUnit", "humidityMin", "humidityMax",
                "specialRequirements",
            ),
        ),
        WizardStep(
            name="quality_compliance",
            title="Quality & Compliance",
            fields=(
                "qualityStandards", "certifications", "isSustainable",
                "isOrganic", "isRecycled", "hasExpiryDate", "shelfLifeDays",
            ),
        ),
        WizardStep(
            name="batch_metadata",
            title="Batch & Metadata",
            fields=(
                "batchTracking", "batchNumber", "batchQuantity",
                "manufacturingDate", "batchExpiryDate", "tags",
                "countryOfOrigin", "manufacturer", "hsCode", "notes", "images",
            ),
        ),
    ),
    defaults=INVENTORY_DEFAULTS,
)


def _measure(value: Any, unit: Any) -> dict[str, Any] | None:
    if is_blank(value):
        return None
    return {"value": to_number(value), "unit": to_text(unit)}


def _range(data: Mapping[str, Any], low: str, high: str) -> dict[str, Any]:
    return {
        "min": parse_number(data.get(low)) if not is_blank(data.get(low)) else None,
        "max": parse_number(data.get(high)) if not is_blank(data.get(high)) else None,
    }


def _batches(data: Mapping[str, Any], created_at: str) -> list[dict[str, Any]]:
    if not data.get("batchTracking") or is_blank(data.get("batchNumber")):
        return []
    quantity = to_number(
        data.get("totalQuantity") if is_blank(data.get("batchQuantity")) else data.get("batchQuantity")
    )
    return [
        compact(
            {
                "batchNumber": to_text(data.get("batchNumber")),
                "quantity": quantity,
                "remainingQuantity": quantity,
                "manufacturingDate": to_text(data.get("manufacturingDate")) or created_at,
                "expiryDate": to_text(data.get("batchExpiryDate")),
                "costPrice": to_number(data.get("costPrice")),
                "qualityGrade": to_text(data.get("grade")),
                "status": "available",
            }
        )
    ]


def build_inventory_payload(
    form_data: Mapping[str, Any],
    supplier: Mapping[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Turn add-inventory form data into the collaborator create payload.

    Numeric strings are parsed with a fallback of 0. Nested objects whose
    source fields are all empty (material specs, storage location, storage
    conditions) are omitted, as are empty sub-objects inside them. A
    missing SKU is generated from the creation time.

    Args:
        form_data: Wizard form data
        supplier: Optional ``{"id", "name", "walletAddress"}`` of the
            submitting supplier
        now: Creation time; defaults to the current UTC time
    """
    data = {**INVENTORY_DEFAULTS, **form_data}
    now = now or datetime.now(timezone.utc)
    created_at = now.isoformat()
    total = to_number(data.get("totalQuantity"))
    cost = to_number(data.get("costPrice"))

    payload: dict[str, Any] = {
        "itemName": to_text(data.get("itemName")),
        "itemCode": to_text(data.get("itemCode")),
        "sku": to_text(data.get("sku")) or f"SKU-{int(now.timestamp() * 1000)}",
        "description": to_text(data.get("description")),
        "itemType": to_text(data.get("itemType")),
        "category": to_text(data.get("category")),
        "subcategory": to_text(data.get("subcategory")),
        "unitOfMeasurement": to_text(data.get("unitOfMeasurement")),
        "totalQuantity": total,
        "availableQuantity": total,
        "reservedQuantity": to_number(data.get("reservedQuantity")),
        "committedQuantity": to_number(data.get("committedQuantity")),
        "reorderPoint": to_number(data.get("reorderPoint")),
        "reorderQuantity": to_number(data.get("reorderQuantity")),
        "minimumStockLevel": to_number(data.get("minimumStockLevel")),
        "maximumStockLevel": to_number(data.get("maximumStockLevel")),
        "safetyStockLevel": to_number(data.get("safetyStockLevel")),
        "costPrice": cost,
        "averageCostPrice": cost,
        "standardCost": to_number(data.get("standardCost")),
        "currency": to_text(data.get("currency")),
        "valuationMethod": to_text(data.get("valuationMethod")),
        "batchTracking": bool(data.get("batchTracking")),
        "batches": _batches(data, created_at),
        "qualityStandards": list(data.get("qualityStandards") or []),
        "certifications": list(data.get("certifications") or []),
        "isSustainable": bool(data.get("isSustainable")),
        "isOrganic": bool(data.get("isOrganic")),
        "isRecycled": bool(data.get("isRecycled")),
        "hasExpiryDate": bool(data.get("hasExpiryDate")),
        "tags": list(data.get("tags") or []),
        "images": list(data.get("images") or []),
        "countryOfOrigin": to_text(data.get("countryOfOrigin")),
        "manufacturer": to_text(data.get("manufacturer")),
        "hsCode": to_text(data.get("hsCode")),
        "notes": to_text(data.get("notes")),
        "status": "active",
        "isActive": True,
        "createdAt": created_at,
    }

    if data.get("hasExpiryDate"):
        payload["shelfLifeDays"] = to_number(data.get("shelfLifeDays"))

    # Nested objects only carry what was entered
    material_specs = compact(
        {
            "materialType": to_text(data.get("materialType")),
            "composition": to_text(data.get("composition")),
            "weight": _measure(data.get("weightValue"), data.get("weightUnit")),
            "width": _measure(data.get("widthValue"), data.get("widthUnit")),
            "color": to_text(data.get("color")),
            "colorCode": to_text(data.get("colorCode")),
            "finish": to_text(data.get("finish")),
            "pattern": to_text(data.get("pattern")),
            "grade": to_text(data.get("grade")),
        }
    )
    if material_specs:
        payload["materialSpecs"] = material_specs

    storage_location = compact(
        {key: to_text(data.get(key)) for key in ("warehouse", "section", "aisle", "rack", "bin")}
    )
    if storage_location:
        payload["storageLocation"] = storage_location

    temperature = compact(_range(data, "tempMin", "tempMax"))
    if temperature:
        temperature["unit"] = to_text(data.get("tempUnit"))
    storage_conditions = compact(
        {
            "temperature": temperature,
            "humidity": _range(data, "humidityMin", "humidityMax"),
            "specialRequirements": to_text(data.get("specialRequirements")),
        }
    )
    if storage_conditions:
        payload["storageConditions"] = storage_conditions

    if supplier:
        payload["supplierId"] = supplier.get("id")
        payload["supplierName"] = supplier.get("name")
        payload["supplierWalletAddress"] = supplier.get("walletAddress") or ""

    return copy.deepcopy(payload)


class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


_STOCK_ALIASES = {
    "in-stock": StockStatus.IN_STOCK,
    "low-stock": StockStatus.LOW_STOCK,
    "out-of-stock": StockStatus.OUT_OF_STOCK,
    "depleted": StockStatus.OUT_OF_STOCK,
}


def normalize_stock_status(label: str | StockStatus) -> StockStatus:
    """Map any known stock label to its :class:`StockStatus`.

    Raises:
        ValidationError: If the label is not recognised
    """
    if isinstance(label, StockStatus):
        return label
    key = to_text(label).lower()
    try:
        return StockStatus(key)
    except ValueError:
        pass
    if key in _STOCK_ALIASES:
        return _STOCK_ALIASES[key]
    raise ValidationError(f"Unknown stock status: {label!r}", context={"status": label})


def derive_stock_status(available: Any, min_stock_level: Any) -> StockStatus:
    """Nothing available is out of stock; at or below the minimum is low."""
    quantity = to_number(available)
    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= to_number(min_stock_level):
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK
