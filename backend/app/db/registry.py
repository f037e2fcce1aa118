from app.api.users.models import Users, UserRoles
from app.api.orgs.models import Organizations, ApprovalStatus
from app.api.events.models import Events
from app.api.events.signups.models import Signups, SignupStatus
from app.api.events.attendance.models import EventAttendance, AttendanceStatus
from app.api.certificates.models import Certificates
from app.api.notifications.models import Notifications
from app.api.audit.models import AuditLog
