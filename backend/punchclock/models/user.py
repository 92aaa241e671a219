from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from punchclock.core.database import Base
import enum


class UserType(str, enum.Enum):
    USER = "User"        # ordinary employee
    CLIENT = "Client"    # venue / billing client
    ADMIN = "Admin"
    MASTER = "Master"


# Roles that see every employee's punches on the dashboard (and the spend figure)
ALL_EMPLOYEE_TYPES = (UserType.CLIENT.value, UserType.ADMIN.value, UserType.MASTER.value)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)

    user_type = Column(String, default=UserType.USER.value, nullable=False)
    is_active = Column(Boolean, default=True)

    # Employee identifier used in rosters and on punches
    applicant_id = Column(String, unique=True, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def sees_all_employees(self) -> bool:
        return self.user_type in ALL_EMPLOYEE_TYPES
