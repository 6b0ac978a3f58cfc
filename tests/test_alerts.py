"""
Tests for the manual alert trigger
"""

import pytest

from lifesignal.alerts import ConsoleNotificationClient
from lifesignal.documents import contact_doc, user_doc
from lifesignal.errors import NetworkError, ServerError


class BrokenFunctions:
    """Relationship functions whose user-level writes always fail."""

    def __init__(self, functions):
        self._functions = functions

    def __getattr__(self, name):
        return getattr(self._functions, name)

    async def update_user_fields(self, *args, **kwargs):
        raise ConnectionError("database unreachable")


async def link(owner, other):
    code = (await other.users.load_user()).qr_code_id
    await owner.sync.add_contact(code, is_responder=True, is_dependent=False)


class TestSetAlert:

    @pytest.mark.asyncio
    async def test_activation_persists_and_notifies(self, alice, bob, clock, documents):
        await link(alice, bob)

        await alice.alerts.set_alert(True)

        assert alice.alerts.is_active
        assert alice.alerts.timestamp == clock.now
        assert alice.notifier.calls == [("alert", "alice")]

        stored = await documents.get(user_doc("alice"))
        assert stored["manualAlertActive"] is True
        mirror = await documents.get(contact_doc("bob", "alice"))
        assert mirror["manualAlertActive"] is True
        assert mirror["manualAlertTimestamp"] == clock.now.isoformat()

    @pytest.mark.asyncio
    async def test_dependent_view_counts_the_alert(self, alice, bob):
        await link(alice, bob)
        await alice.alerts.set_alert(True)

        await bob.sync.load_contacts()
        assert bob.store.get("alice").manual_alert_active
        assert bob.store.non_responsive_dependents_count == 1

    @pytest.mark.asyncio
    async def test_deactivation_clears_timestamp(self, alice, bob, documents, clock):
        await link(alice, bob)
        await alice.alerts.set_alert(True)
        clock.advance(minutes=5)

        await alice.alerts.set_alert(False)

        assert not alice.alerts.is_active
        assert alice.alerts.timestamp is None
        assert alice.notifier.calls[-1] == ("cancel", "alice")
        mirror = await documents.get(contact_doc("bob", "alice"))
        assert mirror["manualAlertActive"] is False
        assert mirror["manualAlertTimestamp"] is None

    @pytest.mark.asyncio
    async def test_no_transition_is_a_noop(self, alice):
        await alice.alerts.set_alert(False)
        assert alice.notifier.calls == []

    @pytest.mark.asyncio
    async def test_persistence_failure_reverts(self, alice, functions, make_client):
        broken = make_client("alice", BrokenFunctions(functions))

        with pytest.raises(NetworkError):
            await broken.alerts.set_alert(True)

        assert not broken.alerts.is_active
        assert broken.alerts.timestamp is None
        assert broken.notifier.calls == []

    @pytest.mark.asyncio
    async def test_notifier_failure_keeps_persisted_alert(self, alice, documents):
        alice.notifier.fail = True

        with pytest.raises(ServerError):
            await alice.alerts.set_alert(True)

        assert alice.alerts.is_active
        assert (await documents.get(user_doc("alice")))["manualAlertActive"] is True

    @pytest.mark.asyncio
    async def test_refresh_reads_persisted_state(self, alice, make_client):
        await alice.alerts.set_alert(True)
        other_device = make_client("alice")
        assert await other_device.alerts.refresh()
        assert other_device.alerts.timestamp == alice.alerts.timestamp

    @pytest.mark.asyncio
    async def test_other_device_can_cancel(self, alice, bob, make_client, documents):
        """A fresh trigger for the same user cancels the stored alert without a prior refresh."""
        await link(alice, bob)
        await alice.alerts.set_alert(True)

        other_device = make_client("alice")
        assert await other_device.alerts.set_alert(False) is False

        assert other_device.notifier.calls == [("cancel", "alice")]
        assert (await documents.get(user_doc("alice")))["manualAlertActive"] is False
        assert (await documents.get(contact_doc("bob", "alice")))["manualAlertActive"] is False

    @pytest.mark.asyncio
    async def test_other_device_does_not_restamp_active_alert(self, alice, make_client, clock, documents):
        await alice.alerts.set_alert(True)
        clock.advance(minutes=10)

        other_device = make_client("alice")
        await other_device.alerts.set_alert(True)

        assert other_device.notifier.calls == []
        assert other_device.alerts.timestamp == alice.alerts.timestamp
        stored = await documents.get(user_doc("alice"))
        assert stored["manualAlertTimestamp"] == alice.alerts.timestamp.isoformat()


@pytest.mark.asyncio
async def test_console_notifier_records_fan_out():
    notifier = ConsoleNotificationClient()
    await notifier.send_manual_alert("alice")
    await notifier.cancel_manual_alert("alice")
    assert notifier.sent == [("alert", "alice"), ("cancel", "alice")]
