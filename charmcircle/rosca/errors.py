"""
Error variants raised by the ROSCA core.

Every failure carries a stable ``code`` and structured ``details`` so callers can
match on the variant instead of parsing the message.
"""
from enum import StrEnum
from typing import Any


class CircleError(Exception):
    code: str = "circle_error"
    status_code: int = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        data = {"code": self.code}
        for key, value in self.details.items():
            data[key] = value.hex() if isinstance(value, bytes) else value
        return data


# Operation errors

class OperationError(CircleError):
    code = "operation_error"


class AlreadyStarted(OperationError):
    code = "already_started"

    def __init__(self, current_round: int):
        super().__init__("Cannot add members after circle has started", current_round=current_round)
        self.current_round = current_round


class DuplicateMember(OperationError):
    code = "duplicate_member"

    def __init__(self, pubkey: bytes):
        super().__init__("Member already exists", pubkey=pubkey)
        self.pubkey = pubkey


class InvalidPayoutRound(OperationError):
    code = "invalid_payout_round"

    def __init__(self, payout_round: int, member_count: int):
        super().__init__(
            f"Invalid payout round {payout_round}, must be <= {member_count}",
            payout_round=payout_round,
            member_count=member_count,
        )
        self.payout_round = payout_round
        self.member_count = member_count


class CircleComplete(OperationError):
    code = "circle_complete"

    def __init__(self):
        super().__init__("Circle is already complete")


class MemberNotFound(OperationError):
    code = "member_not_found"
    status_code = 404

    def __init__(self, pubkey: bytes):
        super().__init__("Member not found", pubkey=pubkey)
        self.pubkey = pubkey


class DuplicateContribution(OperationError):
    code = "duplicate_contribution"

    def __init__(self, pubkey: bytes, round_number: int):
        super().__init__(
            f"Member already contributed for round {round_number}",
            pubkey=pubkey,
            round=round_number,
        )
        self.pubkey = pubkey
        self.round = round_number


class AmountMismatch(OperationError):
    code = "amount_mismatch"

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Invalid contribution amount. Expected: {expected}, Got: {actual}",
            expected=expected,
            actual=actual,
        )
        self.expected = expected
        self.actual = actual


class PoolOverflow(OperationError):
    code = "pool_overflow"

    def __init__(self, current_pool: int, amount: int):
        super().__init__("Contribution would overflow the pool", current_pool=current_pool, amount=amount)
        self.current_pool = current_pool
        self.amount = amount


class RoundNotFunded(OperationError):
    code = "round_not_funded"

    def __init__(self, funded: int, required: int):
        super().__init__(
            f"Round is not fully funded yet ({funded}/{required} contributions)",
            funded=funded,
            required=required,
        )
        self.funded = funded
        self.required = required


class AlreadyPaid(OperationError):
    code = "already_paid"

    def __init__(self, pubkey: bytes):
        super().__init__("Member has already received payout", pubkey=pubkey)
        self.pubkey = pubkey


class InvalidIndex(OperationError):
    code = "invalid_index"

    def __init__(self, index: int, member_count: int):
        super().__init__(
            f"Invalid payout index ({index}), must be < {member_count}",
            index=index,
            member_count=member_count,
        )
        self.index = index
        self.member_count = member_count


# Whole-state and transition checks

class StateViolation(StrEnum):
    NO_MEMBERS = "no_members"
    ROUND_COUNT_MISMATCH = "round_count_mismatch"
    ROUND_OUT_OF_RANGE = "round_out_of_range"
    PAYOUT_INDEX_OUT_OF_RANGE = "payout_index_out_of_range"
    PAYOUT_ROUND_OUT_OF_RANGE = "payout_round_out_of_range"
    PREMATURE_PAYOUT = "premature_payout"
    CONTRIBUTION_ROUND_OUT_OF_RANGE = "contribution_round_out_of_range"
    CONTRIBUTION_AMOUNT_MISMATCH = "contribution_amount_mismatch"
    DUPLICATE_CONTRIBUTION_ROUND = "duplicate_contribution_round"
    POOL_MISMATCH = "pool_mismatch"


class StateValidationError(CircleError):
    code = "invalid_state"

    def __init__(self, violation: StateViolation, message: str, **details: Any):
        super().__init__(message, violation=str(violation), **details)
        self.violation = violation


class TransitionViolation(StrEnum):
    CIRCLE_ID_MISMATCH = "circle_id_mismatch"
    MEMBER_COUNT_CHANGED = "member_count_changed"
    INVALID_ROUND_PROGRESSION = "invalid_round_progression"
    POOL_DECREASED = "pool_decreased"
    POOL_NOT_RESET = "pool_not_reset"


class TransitionError(CircleError):
    code = "invalid_transition"

    def __init__(self, violation: TransitionViolation, message: str, **details: Any):
        super().__init__(message, violation=str(violation), **details)
        self.violation = violation


class DecodeError(CircleError):
    code = "decode_error"


class ContractViolation(CircleError):
    code = "contract_violation"
