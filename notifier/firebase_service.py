"""
Firebase service - Firestore access for the notifier.

Firestore Collections:
- users/{uid}: fcmToken used for push notifications
- calls/{callId}: status, type, calleeId, callerId, callerName
- requests/{requestId}: statut, categorieId, clientId, description, address, acceptedEmployeeIds
- employees/{employeeId}: userId, categorieId, name
- clients/{clientId}: userId
"""
import json
import logging
import os
from typing import Optional, Dict, Any, List, Tuple

from .constants import (
    CATEGORIES_COLLECTION,
    CATEGORY_FIELD,
    CLIENTS_COLLECTION,
    EMPLOYEES_COLLECTION,
    FCM_TOKEN_FIELD,
    USERS_COLLECTION,
)
from .identity import resolve_id

logger = logging.getLogger("notifier")

# Process-wide Firebase Admin state, initialised on first use
_firebase_app = None
_firestore_client = None
_firebase_init_attempted = False


def _load_credentials(credentials):
    """Build a credential from FIREBASE_SERVICE_ACCOUNT(_PATH), or None for ADC."""
    service_account_json = os.environ.get("FIREBASE_SERVICE_ACCOUNT")
    service_account_path = os.environ.get("FIREBASE_SERVICE_ACCOUNT_PATH")

    if service_account_json:
        try:
            logger.info("[FIREBASE] Using FIREBASE_SERVICE_ACCOUNT env var")
            return credentials.Certificate(json.loads(service_account_json))
        except json.JSONDecodeError as e:
            logger.error(f"[FIREBASE] Invalid FIREBASE_SERVICE_ACCOUNT JSON: {e}")
            return None
    if service_account_path and os.path.exists(service_account_path):
        logger.info(f"[FIREBASE] Using service account from {service_account_path}")
        return credentials.Certificate(service_account_path)

    # Cloud Run / Functions hosts provide application default credentials
    logger.info("[FIREBASE] No service account configured, using application default credentials")
    return None


def get_firebase_app():
    """Get or initialize the Firebase Admin app (once per process)."""
    global _firebase_app, _firebase_init_attempted

    if _firebase_app is not None:
        return _firebase_app
    if _firebase_init_attempted:
        return None
    _firebase_init_attempted = True

    try:
        import firebase_admin
        from firebase_admin import credentials
    except ImportError:
        logger.error("[FIREBASE] firebase-admin package not installed")
        return None

    use_emulator = os.environ.get("FIREBASE_USE_EMULATOR", "false").lower() == "true"
    project_id = os.environ.get("FIREBASE_PROJECT_ID")
    options = {}

    if use_emulator:
        os.environ.setdefault("FIRESTORE_EMULATOR_HOST", "localhost:8080")
        options["projectId"] = project_id or "demo-project"
        cred = None
        logger.info(f"[FIREBASE] Emulator mode (Firestore: {os.environ['FIRESTORE_EMULATOR_HOST']})")
    else:
        cred = _load_credentials(credentials)
        if project_id:
            options["projectId"] = project_id

    try:
        _firebase_app = firebase_admin.initialize_app(cred, options=options or None)
        logger.info(f"[FIREBASE] Admin initialized (project={project_id or 'default'})")
    except ValueError:
        # Already initialized elsewhere in this process
        _firebase_app = firebase_admin.get_app()
    except Exception as e:
        logger.error(f"[FIREBASE] Init failed: {e}")
        return None

    return _firebase_app


def get_firestore():
    """Get Firestore client"""
    global _firestore_client

    if _firestore_client is not None:
        return _firestore_client

    if get_firebase_app() is None:
        return None

    try:
        from firebase_admin import firestore
        _firestore_client = firestore.client()
        return _firestore_client
    except Exception as e:
        logger.error(f"[FIREBASE] Failed to get Firestore client: {e}")
        return None


class FirestoreService:
    """Read snapshots and clear dead push tokens in Firestore."""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        """Lazy initialization of Firestore client"""
        if self._db is None:
            self._db = get_firestore()
        return self._db

    def is_available(self) -> bool:
        return self.db is not None

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Point lookup. Returns None when the document (or Firestore) is missing."""
        if not doc_id or not self.db:
            return None

        try:
            doc = self.db.collection(collection).document(doc_id).get()
            if doc.exists:
                return doc.to_dict() or {}
            logger.info(f"[FIRESTORE] Document not found: {collection}/{doc_id}")
            return None
        except Exception as e:
            logger.error(f"[FIRESTORE] Error reading {collection}/{doc_id}: {e}")
            return None

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.get_document(USERS_COLLECTION, user_id)

    def get_employee(self, employee_id: str) -> Optional[Dict[str, Any]]:
        return self.get_document(EMPLOYEES_COLLECTION, employee_id)

    def get_client(self, client_id: str) -> Optional[Dict[str, Any]]:
        return self.get_document(CLIENTS_COLLECTION, client_id)

    def list_employees_in_category(self, category_id: str) -> List[Tuple[str, Dict[str, Any]]]:
        """
        Employees whose categorieId resolves to category_id, in query order.

        categorieId is stored either as a plain id or as a reference to
        categories/{id}, so both forms are queried and merged.
        """
        if not category_id or not self.db:
            return []

        collection = self.db.collection(EMPLOYEES_COLLECTION)
        category_ref = self.db.collection(CATEGORIES_COLLECTION).document(category_id)

        employees = []
        seen = set()
        try:
            for value in (category_id, category_ref):
                for doc in collection.where(CATEGORY_FIELD, "==", value).stream():
                    if doc.id in seen:
                        continue
                    data = doc.to_dict() or {}
                    if resolve_id(data.get(CATEGORY_FIELD)) != category_id:
                        continue
                    seen.add(doc.id)
                    employees.append((doc.id, data))
        except Exception as e:
            logger.error(f"[FIRESTORE] Error querying employees for category {category_id}: {e}")

        return employees

    def clear_user_token(self, user_id: str) -> bool:
        """
        Remove fcmToken from users/{user_id}.

        Idempotent: a missing user or an already-absent token is a no-op.
        Returns False only when Firestore rejected the update.
        """
        if not user_id or not self.db:
            return False

        try:
            from firebase_admin import firestore as fb_firestore

            doc_ref = self.db.collection(USERS_COLLECTION).document(user_id)
            doc = doc_ref.get()
            if not doc.exists or FCM_TOKEN_FIELD not in (doc.to_dict() or {}):
                logger.info(f"[FIRESTORE] No token to clear for user {user_id}")
                return True

            doc_ref.update({FCM_TOKEN_FIELD: fb_firestore.DELETE_FIELD})
            logger.info(f"[FIRESTORE] Cleared fcmToken for user {user_id}")
            return True
        except Exception as e:
            logger.error(f"[FIRESTORE] Error clearing token for {user_id}: {e}")
            return False


# Singleton instance
firestore_service = FirestoreService()
