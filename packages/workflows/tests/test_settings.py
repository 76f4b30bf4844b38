"""Tests for workflow settings loading."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from marketflow_common.exceptions import ConfigurationError
from marketflow_workflows.settings import WorkflowSettings, load_settings


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings()
        assert settings == WorkflowSettings()
        assert settings.generic_failure_message == "An error occurred"
        assert settings.reason_required_message == "Please provide a reason"
        assert settings.draft_key == "inventory_drafts"

    def test_instance_passes_through(self):
        settings = WorkflowSettings(draft_key="drafts")
        assert load_settings(settings) is settings

    def test_from_mapping_with_variables(self):
        settings = load_settings(
            {
                "notification_topic": "${TOAST_TOPIC:toasts}",
                "draft_key": "${DRAFT_KEY}",
            },
            environ={"DRAFT_KEY": "supplier_drafts"},
        )
        assert settings.notification_topic == "toasts"
        assert settings.draft_key == "supplier_drafts"

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text('generic_failure_message: "Something went wrong"\n')

        settings = load_settings(path, environ={})

        assert settings.generic_failure_message == "Something went wrong"
        assert settings.saved_items_key == "saved_items"

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("")
        assert load_settings(path) == WorkflowSettings()

    def test_missing_variable(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings({"draft_key": "${NOT_SET}"}, environ={})
        assert exc_info.value.context["variable"] == "NOT_SET"

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError, match="Invalid workflow settings"):
            load_settings({"toast_colour": "green"})

    def test_blank_topic(self):
        with pytest.raises(ConfigurationError):
            load_settings({"notification_topic": ""})

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- one\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_settings(path)

    def test_settings_are_frozen(self):
        settings = WorkflowSettings()
        with pytest.raises(PydanticValidationError):
            settings.draft_key = "other"
