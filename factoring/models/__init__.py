from factoring.models.audit_log import AuditLog
from factoring.models.company import Company
from factoring.models.document import Document
from factoring.models.funding_request import FundingRequest
from factoring.models.membership import Membership
from factoring.models.notification import Notification
from factoring.models.offer import Offer
from factoring.models.profile import Profile

__all__ = [
    "AuditLog",
    "Company",
    "Document",
    "FundingRequest",
    "Membership",
    "Notification",
    "Offer",
    "Profile",
]
