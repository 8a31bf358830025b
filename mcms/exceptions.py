"""
MCMS Exceptions

Custom exception classes for the chain adapters.

Validation errors (subclasses of ``ValidationError``) are always raised
before anything is submitted to a chain. Submission errors carry the name of
the pipeline step that failed so callers can resume instead of restarting.
"""

from typing import Optional


class MCMSException(Exception):
    """Base exception for MCMS."""
    pass


# ── Validation (raised before any network call) ──────────────────────

class ValidationError(MCMSException):
    """Input rejected locally, nothing was submitted."""
    pass


class InvalidConfig(ValidationError):
    """Quorum configuration violates a structural rule."""
    pass


class ConfigTooLarge(InvalidConfig):
    """Flattened configuration exceeds the fixed group array size."""
    pass


class GroupIndexOutOfRange(InvalidConfig):
    """A signer references a group index outside the fixed group array."""
    pass


class TooManySigners(InvalidConfig):
    """Signer count exceeds the chain's maximum."""
    pass


class MissingField(ValidationError):
    """A required chain-specific field is absent."""

    def __init__(self, name: str, message: Optional[str] = None):
        self.name = name
        super().__init__(message or f"{name} is required in operation additional fields")


class InvalidAdditionalFields(ValidationError):
    """Chain-specific additional fields payload does not match its schema."""
    pass


class UnsortedSignatures(ValidationError):
    """Signatures are not sorted ascending by recovered signer address."""
    pass


class InvalidSignature(ValidationError):
    """A signature could not be decoded or recovered."""
    pass


class QuorumNotReached(ValidationError):
    """Recovered signers do not satisfy the on-chain quorum."""
    pass


class InvalidChainID(ValidationError):
    """Chain selector does not resolve to a usable native chain id."""
    pass


class UnknownChainSelector(ValidationError):
    """Chain selector is not registered."""
    pass


class UnsupportedChainFamily(ValidationError):
    """Chain family has no adapter implementation."""
    pass


class InvalidTimelockOperation(ValidationError):
    """Timelock action is not one of schedule, cancel or bypass."""
    pass


class InvalidContractAddress(ValidationError):
    """Contract address string is not in the chain's expected format."""
    pass


class ChainMetadataNotFound(ValidationError):
    """An operation references a chain selector without chain metadata."""
    pass


class InvalidValidUntil(ValidationError):
    """Proposal valid-until timestamp is already in the past."""
    pass


class MerkleProofError(MCMSException):
    """Leaf not present in the Merkle tree."""
    pass


# ── Chain interaction ────────────────────────────────────────────────

class ChainClientError(MCMSException):
    """Raised by chain-client implementations when the chain rejects a call."""
    pass


class SubmissionFailed(MCMSException):
    """A chain transaction failed; ``step`` names the pipeline step."""

    def __init__(self, step: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.step = step
        self.cause = cause
        detail = message or (str(cause) if cause is not None else "submission failed")
        super().__init__(f"{step}: {detail}")


class NoCreatedEvent(SubmissionFailed):
    """A mutating call did not re-create the expected contract."""
    pass


class OperationNotReady(SubmissionFailed):
    """Timelock operation exists but its delay has not elapsed."""
    pass


class OperationNotFound(SubmissionFailed):
    """Timelock operation id is unknown (never scheduled or cancelled)."""
    pass


class UnsupportedOnChain(MCMSException):
    """The chain family structurally cannot answer this query."""
    pass


# ── Error classification ─────────────────────────────────────────────

NOT_READY_MARKERS = ("E_NOT_READY", "not ready")
NOT_FOUND_MARKERS = ("not found", "NOT_FOUND", "does not exist", "unknown", "UNKNOWN", "cancelled")


def classify_chain_error(exc: BaseException, step: str, timelock_operation: bool = False) -> SubmissionFailed:
    """
    Map a chain-client failure onto the error taxonomy.

    Not-ready / not-found markers only mean something on calls that address
    a timelock operation; everywhere else words like "cancelled" or
    "unknown" come from the transport, so the result is a plain
    SubmissionFailed. The returned exception should be raised ``from exc``
    by the caller.
    """
    if not timelock_operation:
        return SubmissionFailed(step, exc)
    text = str(exc)
    if any(marker in text for marker in NOT_READY_MARKERS):
        return OperationNotReady(step, exc)
    if any(marker in text for marker in NOT_FOUND_MARKERS):
        return OperationNotFound(step, exc)
    return SubmissionFailed(step, exc)
