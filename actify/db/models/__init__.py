"""
Domain-split SQLAlchemy models.

Importing this package registers every table on ``Base.metadata``.
"""

from .base import Base, now_utc  # re-export

from .users import User
from .organizations import Organization, OrganizationMembership
from .audit import AuditLog
from .notifications import UserNotificationPreference, Notification
from .residents import Resident
from .activities import ActivityTemplate, ActivitySeries, ActivityInstance, Attendance
from .notes import ProgressNoteTemplate, ProgressNote
from .queue import DailyOneOnOneQueue
from .council import ResidentCouncilMeeting, ResidentCouncilItem
from .budget import BudgetStockItem, BudgetStockCategory, BudgetStockExpense, BudgetStockSale
from .volunteers import Volunteer, VolunteerVisit

__all__ = [
    # base
    "Base",
    "now_utc",
    # users/facilities
    "User",
    "Organization",
    "OrganizationMembership",
    # audit/notifications
    "AuditLog",
    "UserNotificationPreference",
    "Notification",
    # residents/activities
    "Resident",
    "ActivityTemplate",
    "ActivitySeries",
    "ActivityInstance",
    "Attendance",
    # notes
    "ProgressNoteTemplate",
    "ProgressNote",
    "DailyOneOnOneQueue",
    # council
    "ResidentCouncilMeeting",
    "ResidentCouncilItem",
    # budget/stock
    "BudgetStockItem",
    "BudgetStockCategory",
    "BudgetStockExpense",
    "BudgetStockSale",
    # volunteers
    "Volunteer",
    "VolunteerVisit",
]
