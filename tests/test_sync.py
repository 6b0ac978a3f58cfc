"""
Tests for the contact sync engine and the relationship functions behind it
"""

import pytest

from lifesignal.documents import contact_doc, contacts_collection, qr_lookup_doc, user_doc
from lifesignal.errors import InvalidArgument, NetworkError, NotFound, Unauthenticated
from lifesignal.models import ContactReference


async def qr_code(client):
    return (await client.users.load_user()).qr_code_id


# =============================================================================
# ADDING
# =============================================================================

class TestAddContact:

    @pytest.mark.asyncio
    async def test_add_by_qr_code(self, alice, bob, documents):
        """Adding a responder leaves one responder-only contact and no pending pings."""
        await documents.set(qr_lookup_doc("bob"), {"qrCodeId": "abc123"})

        outcome = await alice.sync.add_contact("abc123", is_responder=True, is_dependent=False)

        assert not outcome.already_existed
        assert outcome.contact.id == "bob"
        assert len(alice.store) == 1
        contact = alice.store.get("bob")
        assert contact.is_responder and not contact.is_dependent
        assert contact.name == "Bob Jones"
        assert alice.store.pending_pings_count == 0

    @pytest.mark.asyncio
    async def test_reverse_edge_has_complementary_roles(self, alice, bob):
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)

        await bob.sync.load_contacts()
        back = bob.store.get("alice")
        assert back is not None
        assert back.reference_path == "users/alice"
        assert back.is_dependent and not back.is_responder
        assert back.name == "Alice Smith"
        assert back.last_check_in is not None

    @pytest.mark.asyncio
    async def test_dual_role_reverse_edge(self, alice, bob):
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=True)
        await bob.sync.load_contacts()
        back = bob.store.get("alice")
        assert back.is_responder and back.is_dependent

    @pytest.mark.asyncio
    async def test_re_add_reports_already_exists(self, alice, bob, documents):
        code = await qr_code(bob)
        await alice.sync.add_contact(code, is_responder=True, is_dependent=False)
        outcome = await alice.sync.add_contact(code, is_responder=True, is_dependent=False)

        assert outcome.already_existed
        assert outcome.message == "This person is already in your contacts."
        assert len(alice.store) == 1

        edges = [doc_id for doc_id, _ in await documents.list_collection(contacts_collection("alice"))]
        assert edges.count("bob") == 1

    @pytest.mark.asyncio
    async def test_already_exists_from_the_other_side(self, alice, bob):
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)
        outcome = await bob.sync.add_contact(await qr_code(alice), is_responder=False, is_dependent=True)
        assert outcome.already_existed

    @pytest.mark.asyncio
    async def test_half_relationship_is_completed(self, alice, bob, documents, functions):
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)
        await documents.delete(contact_doc("bob", "alice"))

        outcome = await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)

        assert outcome.already_existed
        restored = await documents.get(contact_doc("bob", "alice"))
        assert restored["isDependent"] is True
        assert restored["isResponder"] is False

    @pytest.mark.asyncio
    async def test_unknown_qr_code_changes_nothing(self, alice, bob, documents):
        with pytest.raises(NotFound):
            await alice.sync.add_contact("no-such-code", is_responder=True, is_dependent=False)
        assert len(alice.store) == 0
        assert await documents.get(contact_doc("bob", "alice")) is None

    @pytest.mark.asyncio
    async def test_own_qr_code_is_rejected(self, alice):
        with pytest.raises(InvalidArgument):
            await alice.sync.add_contact(await qr_code(alice), is_responder=True, is_dependent=False)

    @pytest.mark.asyncio
    async def test_no_role_is_rejected(self, alice, bob):
        with pytest.raises(InvalidArgument):
            await alice.sync.add_contact(await qr_code(bob), is_responder=False, is_dependent=False)

    @pytest.mark.asyncio
    async def test_signed_out_user_cannot_add(self, make_client, bob):
        stranger = make_client()
        with pytest.raises(Unauthenticated):
            await stranger.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)

    @pytest.mark.asyncio
    async def test_lookup_shows_summary(self, alice, bob):
        summary = await alice.sync.lookup_user_by_qr_code(await qr_code(bob))
        assert summary.user_id == "bob"
        assert summary.name == "Bob Jones"
        assert summary.phone == "+12127365000"


# =============================================================================
# LOADING AND WATCHING
# =============================================================================

class TestLoadContacts:

    @pytest.mark.asyncio
    async def test_missing_user_document(self, make_client):
        ghost = make_client("ghost")
        with pytest.raises(NotFound):
            await ghost.sync.load_contacts()

    @pytest.mark.asyncio
    async def test_new_user_has_no_contacts(self, alice):
        assert await alice.sync.load_contacts() == []

    @pytest.mark.asyncio
    async def test_inline_array_user_sees_new_edges(self, alice, bob, documents):
        """Edges written for a user on the older inline shape land in the array too."""
        legacy = {"referencePath": "users/carol", "isResponder": True, "isDependent": False, "name": "Carol"}
        await documents.update(user_doc("alice"), {"contacts": [legacy]})

        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)

        assert {contact.id for contact in alice.store} == {"carol", "bob"}

    @pytest.mark.asyncio
    async def test_watch_reloads_on_remote_change(self, alice, bob, documents):
        subscription = bob.sync.watch_contacts()
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)
        await documents.wait_for_deliveries()

        assert "alice" in bob.store
        subscription.cancel()

    @pytest.mark.asyncio
    async def test_cancelled_watch_stops_reloading(self, alice, bob, documents):
        subscription = bob.sync.watch_contacts()
        subscription.cancel()
        subscription.cancel()
        assert not subscription.active

        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)
        await documents.wait_for_deliveries()
        assert "alice" not in bob.store
        assert documents.subscription_count == 0


# =============================================================================
# ROLES AND REMOVAL
# =============================================================================

class FailingFunctions:
    """Wraps RelationshipFunctions so chosen calls fail like a dropped connection."""

    def __init__(self, functions, failing=()):
        self._functions = functions
        self.failing = set(failing)

    def __getattr__(self, name):
        attr = getattr(self._functions, name)
        if name not in self.failing:
            return attr

        async def fail(*args, **kwargs):
            raise ConnectionError(f"{name} unavailable")

        return fail


class TestUpdateRoles:

    @pytest.mark.asyncio
    async def test_roles_update_both_directions(self, alice, bob):
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)
        contact = alice.store.get("bob")

        await alice.sync.update_contact_role(contact, is_responder=False, is_dependent=True)

        assert alice.store.get("bob").is_dependent
        await bob.sync.load_contacts()
        back = bob.store.get("alice")
        assert back.is_responder and not back.is_dependent

    @pytest.mark.asyncio
    async def test_both_roles_false_changes_nothing(self, alice, bob):
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)
        with pytest.raises(InvalidArgument):
            await alice.sync.update_contact_role(alice.store.get("bob"), is_responder=False, is_dependent=False)
        assert alice.store.get("bob").is_responder

    @pytest.mark.asyncio
    async def test_failed_role_update_keeps_local_change(self, alice, bob, functions, make_client):
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)

        flaky = make_client("alice", FailingFunctions(functions, {"update_contact_roles"}))
        await flaky.sync.load_contacts()

        with pytest.raises(NetworkError):
            await flaky.sync.update_contact_role(flaky.store.get("bob"), is_responder=True, is_dependent=True)

        assert flaky.store.get("bob").is_dependent
        await flaky.sync.load_contacts()
        assert not flaky.store.get("bob").is_dependent

    @pytest.mark.asyncio
    async def test_update_relationship_with_nothing_selected(self, alice, bob, functions, make_client):
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)
        flaky = make_client("alice", FailingFunctions(functions, {"update_contact_relation"}))
        await flaky.sync.update_contact_relationship(alice.store.get("bob"))

    @pytest.mark.asyncio
    async def test_notification_preferences_stay_on_own_edge(self, alice, bob, documents):
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)
        _, contact = await alice.store.update("bob", receive_pings=False)

        await alice.sync.update_contact_relationship(contact, update_notifications=True)

        assert (await documents.get(contact_doc("alice", "bob")))["receivePings"] is False
        assert (await documents.get(contact_doc("bob", "alice")))["receivePings"] is True


class TestRemoveContact:

    @pytest.mark.asyncio
    async def test_remove_deletes_both_edges(self, alice, bob, documents):
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)
        await alice.sync.remove_contact(alice.store.get("bob"))

        assert "bob" not in alice.store
        assert await documents.get(contact_doc("alice", "bob")) is None
        assert await documents.get(contact_doc("bob", "alice")) is None
        assert await bob.sync.load_contacts() == []

    @pytest.mark.asyncio
    async def test_remove_twice_is_harmless(self, alice, bob):
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)
        contact = alice.store.get("bob")
        await alice.sync.remove_contact(contact)
        await alice.sync.remove_contact(contact)
        assert len(alice.store) == 0

    @pytest.mark.asyncio
    async def test_remote_failure_still_removes_locally(self, alice, bob, functions, make_client):
        await alice.sync.add_contact(await qr_code(bob), is_responder=True, is_dependent=False)
        flaky = make_client("alice", FailingFunctions(functions, {"delete_contact_relation"}))
        await flaky.sync.load_contacts()

        with pytest.raises(NetworkError):
            await flaky.sync.remove_contact(flaky.store.get("bob"))
        assert "bob" not in flaky.store

    @pytest.mark.asyncio
    async def test_unresolvable_contact_is_a_local_success(self, alice, caplog):
        broken = ContactReference.model_construct(reference_path="garbage", is_responder=True, is_dependent=False)
        await alice.sync.remove_contact(broken)
        assert "no resolvable user id" in caplog.text
