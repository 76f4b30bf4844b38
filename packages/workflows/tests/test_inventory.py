"""Tests for the inventory wizard payload and stock status."""

from datetime import datetime, timezone

import pytest

from marketflow_common.exceptions import ValidationError
from marketflow_workflows.inventory import (
    INVENTORY_DEFAULTS,
    INVENTORY_WIZARD,
    StockStatus,
    build_inventory_payload,
    derive_stock_status,
    normalize_stock_status,
)

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def form():
    return {
        **INVENTORY_DEFAULTS,
        "itemName": "  Premium Cotton Fabric ",
        "itemCode": "COT-001",
        "description": "Combed cotton",
        "itemType": "fabric",
        "category": "Cotton",
        "totalQuantity": "250",
        "costPrice": "4.75",
    }


class TestInventoryWizard:

    def test_steps(self):
        assert [s.name for s in INVENTORY_WIZARD.steps] == [
            "basic_info",
            "quantity_pricing",
            "storage_location",
            "quality_compliance",
            "batch_metadata",
        ]
        assert INVENTORY_WIZARD.steps[1].title == "Quantity & Pricing"

    def test_last_three_steps_never_block(self):
        assert all(step.is_optional for step in INVENTORY_WIZARD.steps[2:])

    def test_quantity_must_be_positive(self):
        step = INVENTORY_WIZARD.steps[1]
        errors = step.validate({**INVENTORY_DEFAULTS, "totalQuantity": "0", "costPrice": "abc"})
        assert errors == {
            "totalQuantity": "Valid quantity is required",
            "costPrice": "Valid cost price is required",
        }


class TestBuildInventoryPayload:

    def test_core_fields(self, form):
        payload = build_inventory_payload(form, now=NOW)

        assert payload["itemName"] == "Premium Cotton Fabric"
        assert payload["totalQuantity"] == 250
        assert payload["availableQuantity"] == 250
        assert payload["costPrice"] == 4.75
        assert payload["averageCostPrice"] == 4.75
        assert payload["reorderPoint"] == 10
        assert payload["status"] == "active"
        assert payload["isActive"] is True
        assert payload["createdAt"] == NOW.isoformat()

    def test_generated_sku(self, form):
        payload = build_inventory_payload(form, now=NOW)
        assert payload["sku"] == f"SKU-{int(NOW.timestamp() * 1000)}"

    def test_given_sku_is_kept(self, form):
        form["sku"] = "COT-SKU-9"
        assert build_inventory_payload(form, now=NOW)["sku"] == "COT-SKU-9"

    def test_unparseable_numbers_fall_back_to_zero(self, form):
        form["reorderQuantity"] = "lots"
        assert build_inventory_payload(form, now=NOW)["reorderQuantity"] == 0

    def test_empty_nested_objects_are_omitted(self, form):
        form.update({"warehouse": "", "grade": "", "weightUnit": "", "widthUnit": "", "tempUnit": ""})

        payload = build_inventory_payload(form, now=NOW)

        assert "materialSpecs" not in payload
        assert "storageLocation" not in payload
        assert "storageConditions" not in payload

    def test_nested_objects_carry_entered_values(self, form):
        form.update({
            "weightValue": "180",
            "color": "Ivory",
            "rack": "R4",
            "tempMin": "5",
            "tempMax": "25",
            "specialRequirements": "Keep dry",
        })

        payload = build_inventory_payload(form, now=NOW)

        assert payload["materialSpecs"] == {
            "weight": {"value": 180, "unit": "gsm"},
            "color": "Ivory",
            "grade": "Standard",
        }
        assert payload["storageLocation"] == {"warehouse": "Main Warehouse", "rack": "R4"}
        assert payload["storageConditions"] == {
            "temperature": {"min": 5.0, "max": 25.0, "unit": "C"},
            "specialRequirements": "Keep dry",
        }

    def test_batch_requires_number(self, form):
        assert build_inventory_payload(form, now=NOW)["batches"] == []

    def test_batch_defaults_to_total_quantity(self, form):
        form["batchNumber"] = "B-2026-03"

        batch = build_inventory_payload(form, now=NOW)["batches"][0]

        assert batch["batchNumber"] == "B-2026-03"
        assert batch["quantity"] == 250
        assert batch["remainingQuantity"] == 250
        assert batch["manufacturingDate"] == NOW.isoformat()
        assert batch["status"] == "available"
        assert "expiryDate" not in batch

    def test_batch_tracking_off(self, form):
        form.update({"batchNumber": "B-1", "batchTracking": False})
        assert build_inventory_payload(form, now=NOW)["batches"] == []

    def test_shelf_life_only_with_expiry(self, form):
        form["shelfLifeDays"] = "90"
        assert "shelfLifeDays" not in build_inventory_payload(form, now=NOW)

        form["hasExpiryDate"] = True
        assert build_inventory_payload(form, now=NOW)["shelfLifeDays"] == 90

    def test_supplier(self, form):
        payload = build_inventory_payload(form, {"id": "sup-1", "name": "Loom & Co"}, now=NOW)

        assert payload["supplierId"] == "sup-1"
        assert payload["supplierName"] == "Loom & Co"
        assert payload["supplierWalletAddress"] == ""

    def test_does_not_mutate_form(self, form):
        form["tags"] = ["organic"]
        payload = build_inventory_payload(form, now=NOW)
        payload["tags"].append("changed")
        assert form["tags"] == ["organic"]


class TestStockStatus:

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("in_stock", StockStatus.IN_STOCK),
            ("In-Stock", StockStatus.IN_STOCK),
            ("low-stock", StockStatus.LOW_STOCK),
            ("out_of_stock", StockStatus.OUT_OF_STOCK),
            ("depleted", StockStatus.OUT_OF_STOCK),
        ],
    )
    def test_normalize(self, label, expected):
        assert normalize_stock_status(label) is expected

    def test_unknown_label(self):
        with pytest.raises(ValidationError, match="Unknown stock status"):
            normalize_stock_status("backordered")

    @pytest.mark.parametrize(
        "available,minimum,expected",
        [
            (0, 5, StockStatus.OUT_OF_STOCK),
            ("-2", 5, StockStatus.OUT_OF_STOCK),
            (5, 5, StockStatus.LOW_STOCK),
            ("12", "5", StockStatus.IN_STOCK),
        ],
    )
    def test_derive(self, available, minimum, expected):
        assert derive_stock_status(available, minimum) is expected
