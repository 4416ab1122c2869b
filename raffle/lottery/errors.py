"""Exceptions raised by the raffle state machine.

The hierarchy groups failures by how a caller should react:

* :class:`InputRejected` - caller error, safe to retry with corrected input.
* :class:`PhaseConflict` - expected under races, safe to retry later.
* :class:`ProtocolViolation` - a misbehaving or confused collaborator.
* :class:`PayoutTransferFailed` - the round is stuck until an operator acts.
"""

from __future__ import annotations

from typing import Optional


class RaffleError(Exception):
    """Base class for every raffle rejection."""


class InputRejected(RaffleError):
    pass


class PhaseConflict(RaffleError):
    pass


class ProtocolViolation(RaffleError):
    pass


class InsufficientStake(InputRejected):
    def __init__(self, amount: int, required: int) -> None:
        self.amount = amount
        self.required = required
        super().__init__(
            f"Entry requires at least {required} but {amount} was tendered"
        )


class IndexOutOfRange(InputRejected, IndexError):
    def __init__(self, index: int, count: int) -> None:
        self.index = index
        self.count = count
        super().__init__(f"Participant index {index} out of range for {count} entries")


class RoundNotOpen(PhaseConflict):
    def __init__(self, phase: str) -> None:
        self.phase = phase
        super().__init__(f"Round is not open (phase={phase})")


class UpkeepNotNeeded(PhaseConflict):
    """The draw gate was false when the draw was attempted.

    Carries the state that made the gate fail so that automation callers can
    report it without a second read.
    """

    def __init__(self, balance: int, participant_count: int, phase: str) -> None:
        self.balance = balance
        self.participant_count = participant_count
        self.phase = phase
        super().__init__(
            "Upkeep not needed "
            f"(balance={balance}, participants={participant_count}, phase={phase})"
        )


class NoDrawPending(PhaseConflict):
    def __init__(self, phase: str) -> None:
        self.phase = phase
        super().__init__(f"No draw is in flight (phase={phase})")


class GracePeriodNotElapsed(PhaseConflict):
    def __init__(self, elapsed: float, grace_period: float) -> None:
        self.elapsed = elapsed
        self.grace_period = grace_period
        super().__init__(
            f"Draw has been pending {elapsed:.0f}s, grace period is {grace_period:.0f}s"
        )


class UnknownOrStaleRequest(ProtocolViolation):
    def __init__(self, request_id: str, pending_request_id: Optional[str]) -> None:
        self.request_id = request_id
        self.pending_request_id = pending_request_id
        super().__init__(
            f"Randomness for request {request_id!r} does not match the pending "
            f"request {pending_request_id!r}"
        )


class MalformedRandomness(ProtocolViolation):
    pass


class PayoutTransferFailed(RaffleError):
    def __init__(self, recipient: str, amount: int) -> None:
        self.recipient = recipient
        self.amount = amount
        super().__init__(f"Transfer of {amount} to {recipient!r} failed")


__all__ = [
    "RaffleError",
    "InputRejected",
    "PhaseConflict",
    "ProtocolViolation",
    "InsufficientStake",
    "IndexOutOfRange",
    "RoundNotOpen",
    "UpkeepNotNeeded",
    "NoDrawPending",
    "GracePeriodNotElapsed",
    "UnknownOrStaleRequest",
    "MalformedRandomness",
    "PayoutTransferFailed",
]
