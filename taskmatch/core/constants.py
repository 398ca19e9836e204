# taskmatch/core/constants.py
import enum


class UserType(str, enum.Enum):
    CLIENT = "client"
    PROVIDER = "provider"


class ServiceStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class NotificationType(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


SERVICE_CATEGORIES = (
    "tecnologia",
    "desenvolvimento",
    "design",
    "marketing",
    "redacao",
    "traducao",
    "consultoria",
    "financeiro",
    "juridico",
    "educacao",
    "outros",
)
