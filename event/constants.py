class EventStatus:
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @classmethod
    def values(cls) -> list[str]:
        return [cls.DRAFT, cls.PUBLISHED, cls.CANCELLED, cls.COMPLETED]


DEFAULT_TICKET_TYPE_ID = "default"
DEFAULT_TICKET_TYPE_NAME = "General Admission"
DEFAULT_TICKET_TYPE_DESCRIPTION = "General admission ticket"

MAX_IMAGE_BYTES = 2 * 1024 * 1024
DEFAULT_UPCOMING_LIMIT = 10
