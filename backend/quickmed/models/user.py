from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from quickmed.db.base import Base

USER_ROLES = ("user", "pharmacy", "doctor", "admin")
USER_STATUSES = ("active", "blocked")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    phone = Column(String(64), nullable=True)
    age = Column(Integer, nullable=True)
    role = Column(String(32), nullable=False, default="user")  # user | pharmacy | doctor | admin
    status = Column(String(32), nullable=False, default="active")  # active | blocked
    doctor_id = Column(String(64), nullable=True)  # required when role == doctor
    pharmacy_reg_number = Column(String(64), nullable=True)  # required when role == pharmacy
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    addresses = relationship(
        "Address",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="Address.id",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Address(Base):
    """Saved shipping address. At most one per user has is_default set."""
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String(64), nullable=False)
    address = Column(String(512), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="addresses")
