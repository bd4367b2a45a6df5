from namaste_sync.db.base import Base

# Import all models here
from namaste_sync.models.audit_log import AuditLogRow
from namaste_sync.models.mapping_record import MappingRecordRow

__all__ = ["Base", "AuditLogRow", "MappingRecordRow"]
