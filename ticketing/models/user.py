"""
User accounts, role grants and organizer profiles.

Roles are rows rather than a column so a single account can buy tickets and
run events; admins grant and revoke them individually.
"""

import enum

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, UniqueConstraint, CheckConstraint, Text
)
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin, UTCDateTime, utcnow


class Role(str, enum.Enum):
    BUYER = "BUYER"
    ORGANIZER = "ORGANIZER"
    ADMIN = "ADMIN"


class VerificationStatus(str, enum.Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    SUSPENDED = "SUSPENDED"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    phone = Column(String(32), unique=True, nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(UTCDateTime(), nullable=True)
    last_login_at = Column(UTCDateTime(), nullable=True)

    # Relationships
    roles = relationship(
        "UserRole",
        back_populates="user",
        lazy="selectin",
        cascade="all, delete-orphan",
        foreign_keys="UserRole.user_id",
    )
    organizer_profile = relationship(
        "OrganizerProfile", back_populates="user", lazy="selectin", uselist=False
    )

    @property
    def role_names(self) -> list[str]:
        return sorted(r.role for r in self.roles)

    def has_role(self, role: Role) -> bool:
        return any(r.role == role.value for r in self.roles)

    def is_locked(self, now=None) -> bool:
        return self.locked_until is not None and self.locked_until > (now or utcnow())

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    granted_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    granted_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    user = relationship("User", back_populates="roles", foreign_keys=[user_id])

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_role"),
        CheckConstraint("role IN ('BUYER', 'ORGANIZER', 'ADMIN')", name="check_user_role"),
    )


class OrganizerProfile(Base, TimestampMixin):
    __tablename__ = "organizer_profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    business_name = Column(String(255), nullable=False)
    business_type = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    website = Column(String(255), nullable=True)
    verification_status = Column(String(20), nullable=False, default=VerificationStatus.VERIFIED.value)

    # Payout destination (Paystack transfer recipient)
    payout_recipient_code = Column(String(100), nullable=True)
    bank_account_number = Column(String(20), nullable=True)
    bank_code = Column(String(20), nullable=True)
    bank_name = Column(String(255), nullable=True)
    bank_account_name = Column(String(255), nullable=True)
    payout_setup_at = Column(UTCDateTime(), nullable=True)

    user = relationship("User", back_populates="organizer_profile")

    __table_args__ = (
        CheckConstraint(
            "verification_status IN ('PENDING', 'VERIFIED', 'SUSPENDED')",
            name="check_organizer_verification_status",
        ),
    )

    @property
    def is_suspended(self) -> bool:
        return self.verification_status == VerificationStatus.SUSPENDED.value
