from enum import Enum


class RolesEnum(str, Enum):
    ADMIN = "ADMIN"
    MENTOR = "MENTOR"
    TRAINEE = "TRAINEE"


STAFF_ROLES = (RolesEnum.ADMIN.value, RolesEnum.MENTOR.value)
