# Models package — import all models here so Alembic can discover them.

from folio.models.user import User  # noqa: F401
from folio.models.resume import Resume, Experience, ResumeProject  # noqa: F401
from folio.models.project import Project  # noqa: F401
from folio.models.message import Message  # noqa: F401
from folio.models.kanban import KanbanStage, KanbanTicket  # noqa: F401
from folio.models.audit import AuditEvent  # noqa: F401
