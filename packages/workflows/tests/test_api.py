"""Tests for the collaborator API boundary and its in-memory fake."""

import pytest

from marketflow_workflows.api import CollaboratorAPI, StatusUpdate
from marketflow_workflows.testing import FakeCollaboratorAPI


class TestStatusUpdate:

    def test_tracking_ref_only_when_set(self):
        assert StatusUpdate("processing", "packed").to_dict() == {
            "status": "processing",
            "note": "packed",
        }
        assert StatusUpdate("shipped", tracking_ref="1Z999").to_dict() == {
            "status": "shipped",
            "note": "",
            "trackingRef": "1Z999",
        }

    def test_from_dict(self):
        update = StatusUpdate.from_dict({"status": "shipped", "trackingRef": "1Z999"})
        assert update == StatusUpdate("shipped", "", "1Z999")


class TestFakeCollaboratorAPI:

    def test_satisfies_protocol(self):
        assert isinstance(FakeCollaboratorAPI(), CollaboratorAPI)

    @pytest.mark.asyncio
    async def test_update_status(self, api):
        response = await api.update_entity_status("ord-1", {"status": "delivered"})

        assert response["success"] is True
        assert api.entities["ord-1"]["status"] == "delivered"
        assert api.calls_for("update_entity_status")[0].args == ("ord-1", {"status": "delivered"})

    @pytest.mark.asyncio
    async def test_scripted_failures_are_consumed_in_order(self, api):
        api.fail_next("delete_entity", "first")
        api.fail_next("delete_entity", {"success": False, "error": "second"})

        assert await api.delete_entity("x") == {"success": False, "message": "first"}
        assert await api.delete_entity("x") == {"success": False, "error": "second"}
        assert (await api.delete_entity("x"))["success"] is True

    @pytest.mark.asyncio
    async def test_scripted_exception(self, api):
        api.fail_next("create_entity", TimeoutError("slow"))
        with pytest.raises(TimeoutError):
            await api.create_entity({})

    @pytest.mark.asyncio
    async def test_recorder_detach(self, notifier, recorder):
        await notifier.info("one")
        await recorder.detach()
        await notifier.info("two")

        assert recorder.messages == ["one"]
        recorder.clear()
        assert recorder.notifications == []
