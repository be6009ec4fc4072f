"""
Firestore seed script (Emulator)
Run with: FIREBASE_USE_EMULATOR=true python3 firebase/seed_emulator.py [--reset]
"""

import os
import sys

import firebase_admin
from firebase_admin import firestore

SEEDED_COLLECTIONS = ["users", "clients", "employees", "categories", "requests", "calls"]


def _init_firebase():
    if os.environ.get("FIREBASE_USE_EMULATOR", "").lower() != "true":
        print("FIREBASE_USE_EMULATOR is not set. Refusing to seed a real project.", file=sys.stderr)
        sys.exit(1)

    os.environ.setdefault("FIRESTORE_EMULATOR_HOST", "localhost:8080")
    project_id = os.environ.get("FIREBASE_PROJECT_ID", "demo-project")
    firebase_admin.initialize_app(options={"projectId": project_id})


def _clear_collection(collection_ref):
    for doc in collection_ref.stream():
        doc.reference.delete()


def clear_all(db):
    print("Clearing emulator data...")
    for name in SEEDED_COLLECTIONS:
        _clear_collection(db.collection(name))
    print("Clear completed")


def seed(db):
    """
    One plumbing category with three employees. Client "client_sara" is also
    registered as an employee of that category, so their own requests must not
    notify them.
    """
    print("Seeding Firestore emulator...")

    users = {
        "user_sara": {"name": "Sara", "fcmToken": "dev-token-sara"},
        "user_youssef": {"name": "Youssef", "fcmToken": "dev-token-youssef"},
        "user_karim": {"name": "Karim"},
    }
    for user_id, data in users.items():
        db.collection("users").document(user_id).set(data)

    categories = db.collection("categories")
    plumbing = categories.document("cat_plomberie")
    plumbing.set({"name": "Plomberie"})
    categories.document("cat_electricite").set({"name": "Électricité"})

    employees = db.collection("employees")
    # Mixed reference styles on purpose: plain ids and document references
    employees.document("emp_youssef").set({
        "name": "Youssef",
        "userId": "user_youssef",
        "categorieId": "cat_plomberie",
    })
    employees.document("emp_karim").set({
        "name": "Karim",
        "userId": db.collection("users").document("user_karim"),
        "categorieId": plumbing,
    })
    employees.document("emp_sara").set({
        "name": "Sara",
        "userId": "user_sara",
        "categorieId": plumbing,
    })

    db.collection("clients").document("client_sara").set({
        "userId": db.collection("users").document("user_sara"),
    })

    print("Seed completed")


def main():
    _init_firebase()
    db = firestore.client()

    if "--reset" in sys.argv:
        clear_all(db)

    seed(db)


if __name__ == "__main__":
    main()
