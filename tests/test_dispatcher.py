"""
Tests for rule orchestration and fan-out
"""
import asyncio
import threading

from conftest import FakePush, Ref
from notifier.delivery import DELIVERED, FAILED, REASON_INVALID_TOKEN, SKIPPED
from notifier.dispatcher import EventNotifier, expand_recipients
from notifier.events import ChangeEvent
from notifier.push_service import ERROR_UNREGISTERED, PushResult
from notifier.transitions import RULE_EMPLOYEE_ACCEPTED, RULE_NEW_PENDING_REQUEST


def _handle(notifier, collection, before, after, document_id="doc1"):
    return asyncio.run(notifier.handle(ChangeEvent(collection, document_id, before, after)))


def _outcome(outcomes, rule):
    return next(o for o in outcomes if o.rule == rule)


class TestExpandRecipients:
    def test_category_members_in_query_order(self, store):
        assert expand_recipients(store, "catA", None) == ["u_emp1", "u_emp2", "u_emp3"]

    def test_requester_is_excluded(self, store):
        assert expand_recipients(store, "catA", "u_emp2") == ["u_emp1", "u_emp3"]

    def test_duplicates_collapse(self, store):
        store.employees["e5"] = {"userId": "u_emp1", "categorieId": "catA"}
        assert expand_recipients(store, "catA", None) == ["u_emp1", "u_emp2", "u_emp3"]

    def test_employees_without_user_are_skipped(self, store):
        store.employees["e6"] = {"categorieId": "catA"}
        assert expand_recipients(store, "catA", None) == ["u_emp1", "u_emp2", "u_emp3"]

    def test_empty_category(self, store):
        assert expand_recipients(store, "catZ", None) == []


class TestAudioCall:
    def test_ringing_call_notifies_callee(self, notifier, push):
        after = {
            "status": "ringing",
            "type": "audio",
            "calleeId": "u_callee",
            "callerId": "u1",
            "callerName": "Alice",
        }
        outcomes = _handle(notifier, "calls", None, after, document_id="call1")

        assert len(outcomes) == 1
        assert outcomes[0].triggered
        assert outcomes[0].deliveries[0].status == DELIVERED

        token, notification = push.sent[0]
        assert token == "tok-callee"
        assert notification.recipient_user_id == "u_callee"
        assert notification.body == "Audio call from Alice"
        assert notification.data["callId"] == "call1"

    def test_duplicate_ringing_update_sends_nothing(self, notifier, push):
        call = {"status": "ringing", "type": "audio", "calleeId": "u_callee", "callerId": "u1"}
        outcomes = _handle(notifier, "calls", call, {**call, "note": "patched"})

        assert outcomes[0].triggered is False
        assert push.sent == []

    def test_deletion_sends_nothing(self, notifier, push):
        call = {"status": "ringing", "type": "audio", "calleeId": "u_callee", "callerId": "u1"}
        assert _handle(notifier, "calls", call, None)[0].triggered is False
        assert push.sent == []


class TestNewRequest:
    def test_fans_out_to_category_employees(self, notifier, push):
        after = {
            "statut": "Pending",
            "categorieId": Ref("catA"),
            "clientId": "c1",
            "description": "Fuite sous l'évier",
            "address": "12 rue Atlas",
        }
        outcomes = _handle(notifier, "requests", None, after, document_id="req1")
        outcome = _outcome(outcomes, RULE_NEW_PENDING_REQUEST)

        assert outcome.triggered
        statuses = {d.user_id: d.status for d in outcome.deliveries}
        assert statuses == {"u_emp1": DELIVERED, "u_emp2": DELIVERED, "u_emp3": SKIPPED}
        assert push.tokens() == ["tok-emp1", "tok-emp2"]
        assert push.sent[0][1].body == "Fuite sous l'évier\nLocation: 12 rue Atlas"

    def test_non_pending_creation_sends_nothing(self, notifier, push):
        after = {"statut": "Accepted", "categorieId": "catA", "clientId": "c1"}
        outcomes = _handle(notifier, "requests", None, after)

        assert all(not o.triggered for o in outcomes)
        assert push.sent == []

    def test_client_registered_as_employee_is_not_notified(self, store, notifier, push):
        # The requesting client's user is also employee e2 in catA
        store.clients["c2"] = {"userId": "u_emp2"}
        after = {"statut": "Pending", "categorieId": "catA", "clientId": Ref("c2")}

        outcome = _outcome(_handle(notifier, "requests", None, after), RULE_NEW_PENDING_REQUEST)

        assert [d.user_id for d in outcome.deliveries] == ["u_emp1", "u_emp3"]
        assert "tok-emp2" not in push.tokens()

    def test_empty_category_is_not_an_error(self, notifier, push):
        after = {"statut": "Pending", "categorieId": "catZ", "clientId": "c1"}
        outcome = _outcome(_handle(notifier, "requests", None, after), RULE_NEW_PENDING_REQUEST)

        assert outcome.triggered
        assert outcome.deliveries == []
        assert outcome.error is None

    def test_one_dead_token_does_not_stop_the_others(self, store):
        push = FakePush(failures={
            "tok-emp1": PushResult(success=False, error="gone", error_code=ERROR_UNREGISTERED),
        })
        notifier = EventNotifier(store=store, push=push)
        after = {"statut": "Pending", "categorieId": "catA", "clientId": "c1"}

        outcome = _outcome(_handle(notifier, "requests", None, after), RULE_NEW_PENDING_REQUEST)
        by_user = {d.user_id: d for d in outcome.deliveries}

        assert by_user["u_emp1"].status == FAILED
        assert by_user["u_emp1"].reason == REASON_INVALID_TOKEN
        assert by_user["u_emp2"].status == DELIVERED
        assert store.cleared == ["u_emp1"]

    def test_deliveries_run_concurrently(self, store):
        # Both sends must be in flight at the same time to get past the barrier
        barrier = threading.Barrier(2, timeout=5)

        class BarrierPush(FakePush):
            def send(self, token, notification):
                barrier.wait()
                return super().send(token, notification)

        notifier = EventNotifier(store=store, push=BarrierPush())
        after = {"statut": "Pending", "categorieId": "catA", "clientId": "c1"}

        outcome = _outcome(_handle(notifier, "requests", None, after), RULE_NEW_PENDING_REQUEST)

        assert sorted(d.status for d in outcome.deliveries) == [DELIVERED, DELIVERED, SKIPPED]

    def test_raising_delivery_is_isolated(self, store):
        class ExplodingPush(FakePush):
            def send(self, token, notification):
                if token == "tok-emp2":
                    raise RuntimeError("boom")
                return super().send(token, notification)

        notifier = EventNotifier(store=store, push=ExplodingPush())
        after = {"statut": "Pending", "categorieId": "catA", "clientId": "c1"}

        outcome = _outcome(_handle(notifier, "requests", None, after), RULE_NEW_PENDING_REQUEST)
        by_user = {d.user_id: d for d in outcome.deliveries}

        assert by_user["u_emp1"].status == DELIVERED
        assert by_user["u_emp2"].status == FAILED
        assert by_user["u_emp2"].error == "boom"


class TestEmployeeAccepted:
    def test_plural_acceptance(self, notifier, push):
        before = {"statut": "Pending", "clientId": "c1", "acceptedEmployeeIds": ["e1"]}
        after = {"statut": "Pending", "clientId": "c1", "acceptedEmployeeIds": ["e1", "e2", "e3"]}

        outcome = _outcome(_handle(notifier, "requests", before, after, "req1"), RULE_EMPLOYEE_ACCEPTED)

        assert outcome.triggered
        assert outcome.deliveries[0].user_id == "u_client"
        token, notification = push.sent[0]
        assert token == "tok-client"
        assert notification.body == "2 employés ont accepté votre demande"
        assert notification.data == {"type": "employee_accepted", "requestId": "req1"}

    def test_single_acceptance_uses_employee_name(self, notifier, push):
        before = {"statut": "Pending", "clientId": "c1", "acceptedEmployeeIds": []}
        after = {"statut": "Pending", "clientId": "c1", "acceptedEmployeeIds": ["e3"]}

        _handle(notifier, "requests", before, after)

        assert push.sent[0][1].body == "Nadia a accepté votre demande"

    def test_missing_employee_record_uses_default_name(self, notifier, push):
        before = {"statut": "Pending", "clientId": "c1", "acceptedEmployeeIds": []}
        after = {"statut": "Pending", "clientId": "c1", "acceptedEmployeeIds": ["ghost"]}

        _handle(notifier, "requests", before, after)

        assert push.sent[0][1].body == "Un employé a accepté votre demande"

    def test_unresolvable_client_is_skipped(self, notifier, push):
        before = {"statut": "Pending", "clientId": "nobody", "acceptedEmployeeIds": []}
        after = {"statut": "Pending", "clientId": "nobody", "acceptedEmployeeIds": ["e1"]}

        outcome = _outcome(_handle(notifier, "requests", before, after), RULE_EMPLOYEE_ACCEPTED)

        assert outcome.triggered is False
        assert push.sent == []

    def test_dead_client_token_is_cleared(self, store):
        push = FakePush(failures={
            "tok-client": PushResult(success=False, error="gone", error_code=ERROR_UNREGISTERED),
        })
        notifier = EventNotifier(store=store, push=push)
        before = {"statut": "Pending", "clientId": "c1", "acceptedEmployeeIds": []}
        after = {"statut": "Pending", "clientId": "c1", "acceptedEmployeeIds": ["e1"]}

        outcome = _outcome(_handle(notifier, "requests", before, after), RULE_EMPLOYEE_ACCEPTED)

        assert outcome.deliveries[0].reason == REASON_INVALID_TOKEN
        assert store.cleared == ["u_client"]


def test_other_collections_are_ignored(notifier, push):
    assert _handle(notifier, "users", None, {"fcmToken": "x"}) == []
    assert push.sent == []


def test_rule_exception_becomes_error_outcome(store, push):
    class BrokenStore(type(store)):
        def list_employees_in_category(self, category_id):
            raise RuntimeError("firestore down")

    notifier = EventNotifier(store=BrokenStore(), push=push)
    after = {"statut": "Pending", "categorieId": "catA"}

    outcome = _outcome(_handle(notifier, "requests", None, after), RULE_NEW_PENDING_REQUEST)

    assert outcome.error == "firestore down"
    assert push.sent == []


def test_store_reads_stay_off_the_event_loop(store, push):
    # Every store read must run on a worker thread
    reader_threads = []

    class RecordingStore(type(store)):
        def get_client(self, client_id):
            reader_threads.append(threading.current_thread())
            return super().get_client(client_id)

        def get_employee(self, employee_id):
            reader_threads.append(threading.current_thread())
            return super().get_employee(employee_id)

        def list_employees_in_category(self, category_id):
            reader_threads.append(threading.current_thread())
            return super().list_employees_in_category(category_id)

    recording = RecordingStore(users=store.users, employees=store.employees, clients=store.clients)
    notifier = EventNotifier(store=recording, push=push)

    _handle(notifier, "requests", None, {"statut": "Pending", "categorieId": "catA", "clientId": "c1"})
    before = {"statut": "Pending", "clientId": "c1", "acceptedEmployeeIds": []}
    _handle(notifier, "requests", before, {**before, "acceptedEmployeeIds": ["e1", "e2"]})

    assert len(reader_threads) == 5
    assert threading.main_thread() not in reader_threads


def test_accepted_employee_lookups_run_concurrently(store, push):
    # Both lookups must be in flight at the same time to get past the barrier
    barrier = threading.Barrier(2, timeout=5)

    class BarrierStore(type(store)):
        def get_employee(self, employee_id):
            barrier.wait()
            return super().get_employee(employee_id)

    slow = BarrierStore(users=store.users, employees=store.employees, clients=store.clients)
    notifier = EventNotifier(store=slow, push=push)
    before = {"statut": "Pending", "clientId": "c1", "acceptedEmployeeIds": []}

    _handle(notifier, "requests", before, {**before, "acceptedEmployeeIds": ["e1", "e2"]})

    assert push.sent[0][1].body == "2 employés ont accepté votre demande"
