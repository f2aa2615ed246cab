from enum import StrEnum

class CircleStatus(StrEnum):
    FORMING = "forming"
    ACTIVE = "active"
    COMPLETED = "completed"

class CircleFrequency(StrEnum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"

class CircleOperation(StrEnum):
    CREATE = "create"
    ADD_MEMBER = "add_member"
    RECORD_CONTRIBUTION = "record_contribution"
    EXECUTE_PAYOUT = "execute_payout"
