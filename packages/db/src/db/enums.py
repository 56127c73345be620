# This project was developed with assistance from AI tools.
"""
Domain enums for the sale financing and title transfer lifecycle.

Shared domain types used by both SQLAlchemy models (db package)
and Pydantic schemas / services (credit package).
"""

import enum


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    UNDER_NEGOTIATION = "under_negotiation"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PurchaseMechanism(str, enum.Enum):
    CASH = "cash"
    BANK_FINANCING = "bank_financing"


class CreditStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    REJECTED = "rejected"
    TITLE_TRANSFER = "title_transfer"
    SOLD = "sold"


class StageStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"

    @classmethod
    def open_statuses(cls) -> frozenset["StageStatus"]:
        """Statuses of a stage that still needs work."""
        return frozenset({cls.PENDING, cls.IN_PROGRESS, cls.OVERDUE})

    @classmethod
    def sweepable_statuses(cls) -> frozenset["StageStatus"]:
        """Statuses the reconciliation sweep may flip to OVERDUE."""
        return frozenset({cls.PENDING, cls.IN_PROGRESS})


class FinancingStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @classmethod
    def terminal_statuses(cls) -> frozenset["FinancingStatus"]:
        """Overall statuses after which no stage may change."""
        return frozenset({cls.COMPLETED, cls.REJECTED})


class TransferStatus(str, enum.Enum):
    PENDING = "pending"
    PREPARATION = "preparation"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"

    @classmethod
    def open_statuses(cls) -> frozenset["TransferStatus"]:
        return frozenset({cls.PENDING, cls.PREPARATION, cls.SCHEDULED})


class UnitStatus(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    SOLD = "sold"


class EmploymentType(str, enum.Enum):
    GOVERNMENT = "government"
    PRIVATE = "private"


class Department(str, enum.Enum):
    ADMIN = "admin"
    SALES = "sales"
    MARKETING = "marketing"
    CREDIT = "credit"
    ACCOUNTING = "accounting"
