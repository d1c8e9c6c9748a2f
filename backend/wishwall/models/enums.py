from ..extensions import db

# Portable enum types. On PostgreSQL these map to native ENUM types; elsewhere to VARCHAR.

GENDERS = ("male", "female")

PENDING_SHIPMENT = "pending_shipment"
PENDING_CONFIRMATION = "pending_confirmation"
CONFIRMED = "confirmed"
AWAITING_RECEIPT = "awaiting_receipt"
COMPLETED = "completed"
GIFT_RETURNED = "gift_returned"
CANCELLED = "cancelled"

RECORD_STATUSES = (
    PENDING_SHIPMENT,
    PENDING_CONFIRMATION,
    CONFIRMED,
    AWAITING_RECEIPT,
    COMPLETED,
    GIFT_RETURNED,
    CANCELLED,
)

gender_enum = db.Enum(*GENDERS, name="gender_enum")
record_status_enum = db.Enum(*RECORD_STATUSES, name="wish_record_status_enum")
