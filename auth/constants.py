class UserRoles:
    SELLER = "seller"
    ORGANIZER = "organizer"
    ADMIN = "admin"

    @classmethod
    def values(cls) -> list[str]:
        return [cls.SELLER, cls.ORGANIZER, cls.ADMIN]


class AccountStatus:
    ACTIVE = "active"
    SUSPENDED = "suspended"

    @classmethod
    def values(cls) -> list[str]:
        return [cls.ACTIVE, cls.SUSPENDED]


# Subject carried by tokens issued to the platform administrator.
ADMIN_SUBJECT = "admin"

TOKEN_COOKIE_NAME = "token"
PASSWORD_RESET_EXPIRE_MINUTES = 60
