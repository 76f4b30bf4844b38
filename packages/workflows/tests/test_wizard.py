"""Tests for marketflow_workflows.wizard."""

import functools

import pytest

from marketflow_common.exceptions import ConfigurationError, ValidationError
from marketflow_workflows.exceptions import RemoteFailure
from marketflow_workflows.inventory import INVENTORY_WIZARD, build_inventory_payload
from marketflow_workflows.persistence import DraftStore, InMemoryKeyValueStore
from marketflow_workflows.wizard import (
    FieldRule,
    WizardController,
    WizardDefinition,
    WizardStep,
)

BASIC_INFO = {
    "itemName": "Premium Cotton Fabric",
    "itemCode": "FAB-001",
    "description": "Soft 100% cotton",
    "itemType": "fabric",
    "category": "Cotton",
}


@pytest.fixture
def wizard(api, notifier):
    return WizardController(
        INVENTORY_WIZARD,
        submitter=api.create_entity,
        payload_builder=functools.partial(build_inventory_payload, supplier={"id": "sup-1"}),
        notifier=notifier,
    )


def fill_first_two_steps(wizard):
    wizard.update_fields(BASIC_INFO)
    assert wizard.go_next()
    wizard.update_fields({"totalQuantity": "150", "costPrice": "12.50"})
    assert wizard.go_next()


# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------


class TestFieldRule:

    @pytest.mark.parametrize("value", [None, "", "   ", [], {}])
    def test_required_blank_fails(self, value):
        assert FieldRule("name", "Name is required").check(value) == "Name is required"

    def test_optional_blank_passes(self):
        assert FieldRule("notes", "Too long", required=False, pattern=r".{0,5}").check("") is None

    def test_false_and_zero_are_values(self):
        rule = FieldRule("flag", "Required")
        assert rule.check(False) is None
        assert rule.check(0) is None

    @pytest.mark.parametrize("value,expected", [
        ("150", None),
        ("0.5", None),
        (3, None),
        ("0", "Valid quantity is required"),
        ("-1", "Valid quantity is required"),
        ("abc", "Valid quantity is required"),
        ("nan", "Valid quantity is required"),
        (True, "Valid quantity is required"),
    ])
    def test_gt_bound(self, value, expected):
        assert FieldRule("totalQuantity", "Valid quantity is required", gt=0).check(value) == expected

    def test_inclusive_bounds(self):
        rule = FieldRule("humidity", "0-100", required=False, ge=0, le=100)
        assert rule.check("0") is None
        assert rule.check("100") is None
        assert rule.check("100.1") == "0-100"
        assert rule.check("-0.1") == "0-100"

    def test_exclusive_upper_bound(self):
        rule = FieldRule("discount", "Below 100", lt=100)
        assert rule.check("99.9") is None
        assert rule.check("100") == "Below 100"

    def test_choices(self):
        rule = FieldRule("currency", "Unsupported currency", choices=("USD", "EUR"))
        assert rule.check("USD") is None
        assert rule.check("JPY") == "Unsupported currency"

    def test_pattern_full_match(self):
        rule = FieldRule("itemCode", "Invalid code", pattern=r"[A-Z]{3}-\d{3}")
        assert rule.check("FAB-001") is None
        assert rule.check(" FAB-001 ") is None
        assert rule.check("FAB-0011") == "Invalid code"


# ---------------------------------------------------------------------------
# Steps and definitions
# ---------------------------------------------------------------------------


class TestWizardStep:

    def test_reports_every_failing_rule(self):
        errors = INVENTORY_WIZARD.steps[0].validate({})
        assert errors == {
            "itemName": "Item name is required",
            "itemCode": "Item code is required",
            "description": "Description is required",
            "itemType": "Item type is required",
            "category": "Category is required",
        }

    def test_custom_check_sees_read_only_data(self):
        seen = []

        def check(data):
            seen.append(data)
            with pytest.raises(TypeError):
                data["tempMin"] = "0"
            if data.get("tempMin") and data.get("tempMax") and float(data["tempMin"]) > float(data["tempMax"]):
                return {"tempMax": "Max must not be below min"}
            return {}

        step = WizardStep("storage", checks=(check,))
        assert step.validate({"tempMin": "20", "tempMax": "5"}) == {"tempMax": "Max must not be below min"}
        assert step.validate({"tempMin": "5", "tempMax": "20"}) == {}
        assert len(seen) == 2

    def test_rule_error_wins_over_check_for_same_field(self):
        step = WizardStep(
            "s",
            rules=(FieldRule("a", "rule message"),),
            checks=(lambda data: {"a": "check message", "b": "other"},),
        )
        assert step.validate({}) == {"a": "rule message", "b": "other"}

    def test_optional_steps(self):
        assert [s.is_optional for s in INVENTORY_WIZARD.steps] == [False, False, True, True, True]

    def test_field_names_include_rule_fields(self):
        step = WizardStep("s", rules=(FieldRule("a", "m"),), fields=("b",))
        assert step.field_names == ("b", "a")
        assert step.required_fields == ("a",)


class TestWizardDefinition:

    def test_requires_steps(self):
        with pytest.raises(ConfigurationError, match="at least one step"):
            WizardDefinition("empty", steps=())

    def test_rejects_duplicate_step_names(self):
        with pytest.raises(ConfigurationError) as exc_info:
            WizardDefinition("dup", steps=(WizardStep("a"), WizardStep("a")))
        assert exc_info.value.context["duplicates"] == ["a"]

    def test_step_index(self):
        assert INVENTORY_WIZARD.step_index("quantity_pricing") == 1
        with pytest.raises(ConfigurationError):
            INVENTORY_WIZARD.step_index("missing")

    def test_initial_data_is_a_copy(self):
        data = INVENTORY_WIZARD.initial_data()
        data["tags"].append("x")
        assert INVENTORY_WIZARD.initial_data()["tags"] == []


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


class TestNavigation:

    def test_starts_on_first_step_with_defaults(self, wizard):
        assert wizard.current_step_index == 0
        assert wizard.current_step_number == 1
        assert wizard.step_count == 5
        assert wizard.is_first_step
        assert not wizard.is_last_step
        assert wizard.progress == 20
        assert wizard.form_data["warehouse"] == "Main Warehouse"
        assert wizard.form_data["reorderPoint"] == "10"
        assert wizard.errors_by_field == {}

    def test_go_next_blocked_reports_every_unmet_field(self, wizard):
        wizard.update_field("itemName", "Premium Cotton Fabric")

        assert not wizard.go_next()

        assert wizard.current_step_index == 0
        assert set(wizard.errors_by_field) == {"itemCode", "description", "itemType", "category"}

    def test_go_next_advances_and_clears_step_errors(self, wizard):
        assert not wizard.go_next()
        wizard.update_fields(BASIC_INFO)

        assert wizard.go_next()

        assert wizard.current_step_index == 1
        assert wizard.current_step.title == "Quantity & Pricing"
        assert wizard.errors_by_field == {}

    def test_quantity_step_scenario(self, wizard):
        wizard.update_fields(BASIC_INFO)
        assert wizard.go_next()
        assert wizard.current_step_number == 2

        wizard.update_fields({"totalQuantity": "", "costPrice": "12.50"})

        assert not wizard.go_next()
        assert dict(wizard.errors_by_field) == {"totalQuantity": "Valid quantity is required"}
        assert wizard.current_step_number == 2

    def test_update_field_clears_only_that_error(self, wizard):
        wizard.go_next()
        wizard.update_field("itemName", "Cotton")

        assert "itemName" not in wizard.errors_by_field
        assert "itemCode" in wizard.errors_by_field

    def test_update_field_does_not_validate(self, wizard):
        wizard.update_field("itemName", "")
        assert wizard.errors_by_field == {}

    def test_optional_steps_never_block(self, wizard):
        fill_first_two_steps(wizard)
        assert wizard.go_next()
        assert wizard.go_next()
        assert wizard.is_last_step
        assert wizard.progress == 100

    def test_go_next_clamps_at_last_step(self, wizard):
        fill_first_two_steps(wizard)
        wizard.go_to(4)
        assert wizard.go_next()
        assert wizard.current_step_index == 4

    def test_go_previous_keeps_data(self, wizard):
        fill_first_two_steps(wizard)
        before = dict(wizard.form_data)

        assert wizard.go_previous()
        assert wizard.current_step_index == 1
        assert dict(wizard.form_data) == before

    def test_go_previous_never_validates(self, wizard):
        fill_first_two_steps(wizard)
        wizard.update_field("itemName", "")
        assert wizard.go_previous()
        assert wizard.go_previous()
        assert wizard.current_step_index == 0
        assert wizard.errors_by_field == {}

    def test_go_previous_on_first_step(self, wizard):
        assert not wizard.go_previous()
        assert wizard.current_step_index == 0

    def test_go_to_backward_is_free(self, wizard):
        fill_first_two_steps(wizard)
        wizard.update_field("itemName", "")
        assert wizard.go_to(0)
        assert wizard.current_step_index == 0

    def test_go_to_forward_stops_at_first_failing_step(self, wizard):
        wizard.update_fields(BASIC_INFO)

        assert not wizard.go_to(3)

        assert wizard.current_step_index == 1
        assert "totalQuantity" in wizard.errors_by_field

    def test_go_to_out_of_range(self, wizard):
        assert not wizard.go_to(5)
        assert not wizard.go_to(-1)

    def test_form_data_is_read_only(self, wizard):
        with pytest.raises(TypeError):
            wizard.form_data["itemName"] = "x"

    def test_validate_step_is_pure(self, wizard):
        before = dict(wizard.form_data)
        errors = wizard.validate_step(1)
        assert "totalQuantity" in errors
        assert dict(wizard.form_data) == before
        assert wizard.errors_by_field == {}

    def test_validate_step_out_of_range(self, wizard):
        with pytest.raises(IndexError):
            wizard.validate_step(9)

    def test_reset(self, wizard):
        fill_first_two_steps(wizard)
        wizard.reset()
        assert wizard.current_step_index == 0
        assert wizard.form_data["itemName"] == ""
        assert wizard.errors_by_field == {}

    def test_initial_data_overrides_defaults(self):
        wizard = WizardController(INVENTORY_WIZARD, initial_data={"warehouse": "Cold Storage"})
        assert wizard.form_data["warehouse"] == "Cold Storage"
        assert wizard.form_data["currency"] == "USD"

    def test_repr(self, wizard):
        assert repr(wizard) == "WizardController('add_inventory', step 1/5)"


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


class TestDrafts:

    def test_save_and_restore(self, wizard):
        drafts = DraftStore(InMemoryKeyValueStore(), clock=lambda: 1_700_000_000.0)
        wizard.update_fields(BASIC_INFO)
        draft = wizard.save_draft(drafts)

        assert draft["id"] == "draft_1700000000000"
        assert draft["status"] == "draft"
        assert draft["itemName"] == "Premium Cotton Fabric"

        fresh = WizardController(INVENTORY_WIZARD)
        fresh.restore_draft(drafts.load(draft["id"]))

        assert fresh.form_data["itemCode"] == "FAB-001"
        assert "status" not in fresh.form_data
        assert "createdAt" not in fresh.form_data
        assert fresh.current_step_index == 0


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class TestSubmit:

    @pytest.mark.asyncio
    async def test_invalid_step_makes_no_remote_call(self, wizard, api, recorder):
        outcome = await wizard.submit()

        assert not outcome.success
        assert isinstance(outcome.error, ValidationError)
        assert set(outcome.error.errors) == set(wizard.errors_by_field)
        assert outcome.error.context["step"] == "basic_info"
        assert api.calls_for("create_entity") == []
        assert recorder.messages == ["Please fix the errors before submitting"]

    @pytest.mark.asyncio
    async def test_successful_submission(self, wizard, api, recorder):
        fill_first_two_steps(wizard)
        wizard.go_to(4)
        wizard.update_field("batchNumber", "B-42")

        outcome = await wizard.submit()

        assert outcome.success
        payload = api.calls_for("create_entity")[0].args[0]
        assert payload["itemName"] == "Premium Cotton Fabric"
        assert payload["totalQuantity"] == 150
        assert payload["costPrice"] == 12.5
        assert payload["supplierId"] == "sup-1"
        assert payload["batches"][0]["batchNumber"] == "B-42"
        assert outcome.value == payload
        assert outcome.data["id"] == "ent-1"
        assert recorder.messages == ["Submitted successfully"]
        assert not wizard.is_submitting

    @pytest.mark.asyncio
    async def test_remote_failure_keeps_form_data(self, wizard, api, recorder):
        fill_first_two_steps(wizard)
        before = dict(wizard.form_data)
        api.fail_next("create_entity", "Item code already exists")

        outcome = await wizard.submit()

        assert not outcome.success
        assert isinstance(outcome.error, RemoteFailure)
        assert outcome.error.server_message == "Item code already exists"
        assert dict(wizard.form_data) == before
        assert wizard.current_step_index == 2
        assert recorder.errors[0].message == "Item code already exists"

    @pytest.mark.asyncio
    async def test_raising_submitter(self, wizard):
        fill_first_two_steps(wizard)

        async def submitter(payload):
            raise TimeoutError("gateway timeout")

        outcome = await wizard.submit(submitter)

        assert not outcome.success
        assert isinstance(outcome.error.cause, TimeoutError)

    @pytest.mark.asyncio
    async def test_missing_submitter(self):
        wizard = WizardController(WizardDefinition("w", steps=(WizardStep("only"),)))
        with pytest.raises(ConfigurationError, match="no submitter"):
            await wizard.submit()

    def test_default_payload_is_form_copy(self):
        wizard = WizardController(WizardDefinition("w", steps=(WizardStep("only"),), defaults={"a": [1]}))
        payload = wizard.build_payload()
        payload["a"].append(2)
        assert wizard.form_data["a"] == [1]
