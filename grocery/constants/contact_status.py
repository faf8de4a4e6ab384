from enum import Enum


class ContactStatus(str, Enum):
    pending = "pending"
    read = "read"
    replied = "replied"
