from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .resource import Resource
from .reservation import Reservation
from .block import Block
from .event import Event, EventVisibility, event_resources
