# This project was developed with assistance from AI tools.
__version__ = "0.1.0"

from .database import Base, SessionLocal, engine, get_db
from .enums import (
    CreditStatus,
    Department,
    EmploymentType,
    FinancingStatus,
    PurchaseMechanism,
    ReservationStatus,
    StageStatus,
    TransferStatus,
    UnitStatus,
)
from .models import (
    AuditEvent,
    FinancingStage,
    FinancingTracker,
    Reservation,
    TitleTransfer,
    Unit,
    User,
    UserNotification,
)

__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_db",
    "__version__",
    # Enums
    "CreditStatus",
    "Department",
    "EmploymentType",
    "FinancingStatus",
    "PurchaseMechanism",
    "ReservationStatus",
    "StageStatus",
    "TransferStatus",
    "UnitStatus",
    # Models
    "AuditEvent",
    "FinancingStage",
    "FinancingTracker",
    "Reservation",
    "TitleTransfer",
    "Unit",
    "User",
    "UserNotification",
]
