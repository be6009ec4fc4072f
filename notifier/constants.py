# Firestore collections
USERS_COLLECTION = "users"
CALLS_COLLECTION = "calls"
REQUESTS_COLLECTION = "requests"
EMPLOYEES_COLLECTION = "employees"
CLIENTS_COLLECTION = "clients"
CATEGORIES_COLLECTION = "categories"

# Document fields
FCM_TOKEN_FIELD = "fcmToken"
CATEGORY_FIELD = "categorieId"
USER_FIELD = "userId"
ACCEPTED_EMPLOYEES_FIELD = "acceptedEmployeeIds"

# Notification kinds (sent as data["type"])
KIND_INCOMING_AUDIO_CALL = "incoming_audio_call"
KIND_NEW_REQUEST = "new_request"
KIND_EMPLOYEE_ACCEPTED = "employee_accepted"

# A ringing notification delivered late is useless
CALL_NOTIFICATION_TTL_SECONDS = 30
CALL_ANDROID_CHANNEL_ID = "incoming_calls"
NOTIFICATION_SOUND = "default"

DESCRIPTION_PREVIEW_LENGTH = 50

DEFAULT_CALLER_NAME = "Someone"
DEFAULT_TEST_CALLER_NAME = "Test Caller"
DEFAULT_REQUEST_TITLE = "Nouvelle demande"
DEFAULT_EMPLOYEE_NAME = "Un employé"

DEFAULT_CURRENCY = "eur"
