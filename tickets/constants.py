class TicketStatus:
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    @classmethod
    def values(cls) -> list[str]:
        return [cls.PENDING, cls.PAID, cls.CANCELLED, cls.REFUNDED]


TICKET_NUMBER_PREFIX = "TKT"
MAX_TICKETS_PER_PURCHASE = 20
