# Models are stored in Firebase Firestore, not Django DB.
# This file is kept for Django app structure compatibility.
#
# Firestore Collections:
# - users/{uid}: fcmToken (removed by the notifier when FCM reports it dead)
# - calls/{callId}: status, type, calleeId, callerId, callerName
# - requests/{requestId}: statut, categorieId, clientId, description, address, acceptedEmployeeIds
# - employees/{employeeId}: userId, categorieId, name
# - clients/{clientId}: userId
#
# See firebase_service.py for Firestore operations.
