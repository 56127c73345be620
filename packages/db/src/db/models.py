# This project was developed with assistance from AI tools.
"""
Credit desk -- domain models

Reservation, unit and user records consumed by the engine, plus the
financing tracker (five SLA-boxed stages), title transfer handoff,
user notifications and the audit trail.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from .enums import (
    CreditStatus,
    Department,
    FinancingStatus,
    PurchaseMechanism,
    ReservationStatus,
    StageStatus,
    TransferStatus,
    UnitStatus,
)


def _values(enum_cls) -> list[str]:
    """Store enum values rather than member names."""
    return [member.value for member in enum_cls]


class User(Base):
    """Staff member; department and manager flag drive notification targeting."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    department = Column(
        Enum(Department, name="department", native_enum=False, values_callable=_values),
        nullable=False,
        index=True,
    )
    is_manager = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, department='{self.department}')>"


class Unit(Base):
    """Sellable property unit."""

    __tablename__ = "units"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(100), nullable=False)
    status = Column(
        Enum(UnitStatus, name="unit_status", native_enum=False, values_callable=_values),
        nullable=False,
        default=UnitStatus.AVAILABLE,
    )
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    reservations = relationship("Reservation", back_populates="unit")

    def __repr__(self):
        return f"<Unit(id={self.id}, code='{self.code}', status='{self.status}')>"


class Reservation(Base):
    """Sales reservation of a unit. Owns its financing tracker and title transfer."""

    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    unit_id = Column(
        Integer, ForeignKey("units.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    marketer_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    status = Column(
        Enum(ReservationStatus, name="reservation_status", native_enum=False, values_callable=_values),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    purchase_mechanism = Column(
        Enum(PurchaseMechanism, name="purchase_mechanism", native_enum=False, values_callable=_values),
        nullable=False,
    )
    is_supported_bank = Column(Boolean, nullable=False, default=False)
    credit_status = Column(
        Enum(CreditStatus, name="credit_status", native_enum=False, values_callable=_values),
        nullable=False,
        default=CreditStatus.PENDING,
        index=True,
    )
    down_payment_confirmed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    unit = relationship("Unit", back_populates="reservations")
    marketer = relationship("User")
    financing_tracker = relationship(
        "FinancingTracker", back_populates="reservation", uselist=False,
        cascade="all, delete-orphan",
    )
    title_transfer = relationship(
        "TitleTransfer", back_populates="reservation", uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def is_bank_financing(self) -> bool:
        return self.purchase_mechanism == PurchaseMechanism.BANK_FINANCING

    def __repr__(self):
        return f"<Reservation(id={self.id}, credit_status='{self.credit_status}')>"


class FinancingTracker(Base):
    """Bank financing progress for one reservation (1:1).

    Stage rows hang off the tracker; the tracker row is the unit of
    isolation, so every stage change also touches ``updated_at`` here to
    bump ``version``.
    """

    __tablename__ = "financing_trackers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(
        Integer, ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False, unique=True, index=True,
    )
    assigned_to = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    is_supported_bank = Column(Boolean, nullable=False, default=False)
    overall_status = Column(
        Enum(FinancingStatus, name="financing_status", native_enum=False, values_callable=_values),
        nullable=False,
        default=FinancingStatus.IN_PROGRESS,
        index=True,
    )
    rejection_reason = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    reservation = relationship("Reservation", back_populates="financing_tracker")
    assignee = relationship("User")
    stages = relationship(
        "FinancingStage",
        back_populates="tracker",
        cascade="all, delete-orphan",
        order_by="FinancingStage.stage",
        lazy="selectin",
    )

    def get_stage(self, number: int) -> "FinancingStage":
        for stage in self.stages:
            if stage.stage == number:
                return stage
        raise KeyError(f"Tracker {self.id} has no stage {number}")

    def _captured(self, field: str):
        for stage in self.stages:
            if stage.data and field in stage.data:
                return stage.data[field]
        return None

    @property
    def bank_name(self) -> str | None:
        return self._captured("bank_name")

    @property
    def client_salary(self):
        return self._captured("client_salary")

    @property
    def employment_type(self) -> str | None:
        return self._captured("employment_type")

    @property
    def appraiser_name(self) -> str | None:
        return self._captured("appraiser_name")

    def __repr__(self):
        return f"<FinancingTracker(id={self.id}, overall='{self.overall_status}')>"


class FinancingStage(Base):
    """One of the five ordered stages of a financing tracker."""

    __tablename__ = "financing_stages"
    __table_args__ = (
        UniqueConstraint("tracker_id", "stage", name="uq_financing_stage_tracker_stage"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tracker_id = Column(
        Integer, ForeignKey("financing_trackers.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    stage = Column(Integer, nullable=False)
    status = Column(
        Enum(StageStatus, name="stage_status", native_enum=False, values_callable=_values),
        nullable=False,
        default=StageStatus.PENDING,
        index=True,
    )
    deadline = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    data = Column(JSON, nullable=True)

    tracker = relationship("FinancingTracker", back_populates="stages")

    def __repr__(self):
        return f"<FinancingStage(tracker_id={self.tracker_id}, stage={self.stage}, status='{self.status}')>"


class TitleTransfer(Base):
    """Post-financing ownership handoff for one reservation (1:1)."""

    __tablename__ = "title_transfers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(
        Integer, ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False, unique=True, index=True,
    )
    processed_by = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    status = Column(
        Enum(TransferStatus, name="transfer_status", native_enum=False, values_callable=_values),
        nullable=False,
        default=TransferStatus.PREPARATION,
        index=True,
    )
    scheduled_date = Column(Date, nullable=True)
    completed_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    reservation = relationship("Reservation", back_populates="title_transfer")
    processor = relationship("User")

    def __repr__(self):
        return f"<TitleTransfer(id={self.id}, status='{self.status}')>"


class UserNotification(Base):
    """In-app notification delivered to a single user."""

    __tablename__ = "user_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    message = Column(Text, nullable=False)
    event_type = Column(String(100), nullable=True, index=True)
    context = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<UserNotification(id={self.id}, user_id={self.user_id}, type='{self.event_type}')>"


class AuditEvent(Base):
    """Append-only audit trail. INSERT + SELECT only -- no UPDATE or DELETE."""

    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    prev_hash = Column(String(64), nullable=True)
    user_id = Column(Integer, nullable=True)
    event_type = Column(String(100), nullable=False, index=True)
    reservation_id = Column(Integer, nullable=True, index=True)
    event_data = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<AuditEvent(id={self.id}, type='{self.event_type}')>"
