"""
Pytest fixtures: in-memory stand-ins for the Firestore store and FCM transport.
"""
import pytest

from notifier.constants import FCM_TOKEN_FIELD
from notifier.dispatcher import EventNotifier
from notifier.identity import resolve_id
from notifier.push_service import PushResult


class FakeStore:
    """Same interface as FirestoreService, backed by dicts."""

    def __init__(self, users=None, employees=None, clients=None):
        self.users = users or {}
        self.employees = employees or {}
        self.clients = clients or {}
        self.cleared = []

    def get_user(self, user_id):
        return self.users.get(user_id)

    def get_employee(self, employee_id):
        return self.employees.get(employee_id)

    def get_client(self, client_id):
        return self.clients.get(client_id)

    def list_employees_in_category(self, category_id):
        return [
            (employee_id, employee)
            for employee_id, employee in self.employees.items()
            if resolve_id(employee.get("categorieId")) == category_id
        ]

    def clear_user_token(self, user_id):
        self.cleared.append(user_id)
        user = self.users.get(user_id)
        if user is not None:
            user.pop(FCM_TOKEN_FIELD, None)
        return True


class FakePush:
    """Records sends; tokens listed in failures get that PushResult back."""

    def __init__(self, failures=None):
        self.failures = failures or {}
        self.sent = []

    def send(self, token, notification):
        self.sent.append((token, notification))
        if token in self.failures:
            return self.failures[token]
        return PushResult(success=True, message_id=f"msg-{token}")

    def tokens(self):
        return sorted(token for token, _ in self.sent)


class Ref:
    """Minimal embedded reference, like a Firestore DocumentReference."""

    def __init__(self, id):
        self.id = id


@pytest.fixture
def store():
    return FakeStore(
        users={
            "u_client": {"fcmToken": "tok-client"},
            "u_emp1": {"fcmToken": "tok-emp1"},
            "u_emp2": {"fcmToken": "tok-emp2"},
            "u_emp3": {},
            "u_callee": {"fcmToken": "tok-callee"},
        },
        employees={
            "e1": {"name": "Youssef", "userId": "u_emp1", "categorieId": "catA"},
            "e2": {"name": "Karim", "userId": Ref("u_emp2"), "categorieId": Ref("catA")},
            "e3": {"nom": "Nadia", "userId": "u_emp3", "categorieId": "catA"},
            "e4": {"name": "Omar", "userId": "u_other", "categorieId": "catB"},
        },
        clients={
            "c1": {"userId": Ref("u_client")},
        },
    )


@pytest.fixture
def push():
    return FakePush()


@pytest.fixture
def notifier(store, push):
    return EventNotifier(store=store, push=push)
