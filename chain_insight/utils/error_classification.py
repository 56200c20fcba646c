"""
Error taxonomy and classification for the analysis pipeline.

Every failure that leaves the data access layer, the analysis engine or the
orchestrator is expressed as a ClassifiedError. The classifier maps raw
exceptions onto the taxonomy with an ordered rule table; the first rule whose
predicate matches wins and anything unmatched becomes an internal error.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    """Kinds of failure a caller can receive."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    DATABASE_ERROR = "DATABASE_ERROR"
    TIMEOUT = "TIMEOUT"
    CHAIN_ERROR = "CHAIN_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(frozen=True)
class ErrorTemplate:
    """Static description of one error code."""
    code: str
    kind: ErrorKind
    user_message: str
    suggestions: Tuple[str, ...]
    retryable: bool


ERROR_TEMPLATES: Mapping[str, ErrorTemplate] = MappingProxyType({
    "E001": ErrorTemplate(
        code="E001",
        kind=ErrorKind.VALIDATION_ERROR,
        user_message=(
            "The transaction hash provided is not in the correct format. "
            "Transaction hashes should be 64-character hexadecimal strings starting with \"0x\"."
        ),
        suggestions=(
            "Ensure the transaction hash is exactly 66 characters long (including 0x prefix)",
            "Verify the hash contains only hexadecimal characters (0-9, a-f, A-F)",
            "Copy the hash directly from a blockchain explorer",
            "Check if you meant to analyze a block instead of a transaction",
        ),
        retryable=False,
    ),
    "E002": ErrorTemplate(
        code="E002",
        kind=ErrorKind.NOT_FOUND,
        user_message=(
            "This transaction could not be found in the Hyperliquid database. "
            "It may be too recent, on a different chain, or the hash might be incorrect."
        ),
        suggestions=(
            "Verify the transaction hash is correct",
            "Check if the transaction is on Hyperliquid Mainnet (Chain ID 998)",
            "Wait a few minutes if the transaction is very recent",
            "Confirm the transaction was successful on a blockchain explorer",
            "Try analyzing the block containing this transaction instead",
        ),
        retryable=True,
    ),
    "E003": ErrorTemplate(
        code="E003",
        kind=ErrorKind.NOT_FOUND,
        user_message=(
            "This block could not be found in the Hyperliquid database. "
            "The block number might be too high, too low, or on a different network."
        ),
        suggestions=(
            "Verify the block number exists on Hyperliquid",
            "Check if you meant to use \"latest\" for the most recent block",
            "Ensure you're querying the correct chain (Mainnet: 998, Testnet: 99998)",
            "Try a different block number or use a blockchain explorer to find valid blocks",
            "Wait a moment if querying a very recent block number",
        ),
        retryable=True,
    ),
    "E004": ErrorTemplate(
        code="E004",
        kind=ErrorKind.DATABASE_ERROR,
        user_message=(
            "There was a temporary issue connecting to the Hyperliquid data service. "
            "This is usually resolved quickly."
        ),
        suggestions=(
            "Please try your request again in a few seconds",
            "If the issue persists, the Hyperliquid data service may be experiencing high load",
            "Try analyzing a different transaction or block",
            "Check if the Hyperliquid network is experiencing issues",
        ),
        retryable=True,
    ),
    "E005": ErrorTemplate(
        code="E005",
        kind=ErrorKind.CHAIN_ERROR,
        user_message=(
            "The specified chain ID is not supported. "
            "Only Hyperliquid Mainnet and Testnet are supported."
        ),
        suggestions=(
            "Use Chain ID 998 for Hyperliquid Mainnet",
            "Use Chain ID 99998 for Hyperliquid Testnet",
            "Verify you're analyzing data from the Hyperliquid network",
            "Check the documentation for supported networks",
        ),
        retryable=False,
    ),
    "E006": ErrorTemplate(
        code="E006",
        kind=ErrorKind.TIMEOUT,
        user_message=(
            "The data query took too long to complete. "
            "This might be due to high network load or a complex analysis request."
        ),
        suggestions=(
            "Try your request again - timeouts are often temporary",
            "If analyzing a very active block, try a different block number",
            "Consider analyzing individual transactions instead of entire blocks",
            "Check if there are network congestion issues",
        ),
        retryable=True,
    ),
    "E007": ErrorTemplate(
        code="E007",
        kind=ErrorKind.RATE_LIMIT,
        user_message=(
            "You've made too many analysis requests in a short time. "
            "Please wait a moment before making another request."
        ),
        suggestions=(
            "Wait 30-60 seconds before making another request",
            "Use the cache by re-analyzing recently analyzed transactions/blocks",
            "Consider analyzing fewer items at once",
            "Spread your requests out over time",
        ),
        retryable=True,
    ),
    "E008": ErrorTemplate(
        code="E008",
        kind=ErrorKind.INTERNAL_ERROR,
        user_message=(
            "An unexpected error occurred while processing your request. "
            "Our team has been notified and will investigate."
        ),
        suggestions=(
            "Please try your request again",
            "If the error persists, try analyzing a different transaction or block",
            "Check if your request parameters are correct",
            "Contact support if the issue continues",
        ),
        retryable=True,
    ),
    "E009": ErrorTemplate(
        code="E009",
        kind=ErrorKind.INTERNAL_ERROR,
        user_message=(
            "There was an issue processing the blockchain data. "
            "This might be due to unusual transaction patterns or data formatting."
        ),
        suggestions=(
            "Try analyzing a different transaction or block",
            "If this is a complex transaction, the analysis might take longer",
            "Verify the transaction/block exists and is valid",
            "Contact support if this error occurs frequently",
        ),
        retryable=True,
    ),
    "E010": ErrorTemplate(
        code="E010",
        kind=ErrorKind.VALIDATION_ERROR,
        user_message=(
            "The analysis request is missing information or contains an invalid value."
        ),
        suggestions=(
            "Specify whether you want to analyze a transaction or a block",
            "Provide a transaction hash, a block number or \"latest\"",
            "Check that the service has a database connection configured",
        ),
        retryable=False,
    ),
})


@dataclass(frozen=True)
class ClassifiedError:
    """A failure mapped onto the taxonomy. Immutable once created."""
    kind: ErrorKind
    message: str
    user_message: str
    code: str
    retryable: bool
    suggestions: Tuple[str, ...] = ()
    context: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_response(self) -> Dict[str, Any]:
        """Render the failure response returned to callers."""
        return {
            "success": False,
            "error": self.user_message,
            "error_code": self.code,
            "retryable": self.retryable,
            "suggestions": list(self.suggestions),
        }


class PipelineError(Exception):
    """Carries a ClassifiedError across layer boundaries."""

    def __init__(self, error: ClassifiedError):
        super().__init__(error.message)
        self.error = error

    @property
    def code(self) -> str:
        return self.error.code

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


def build_error(code: str, message: str, context: Optional[Mapping[str, Any]] = None) -> ClassifiedError:
    """
    Create a ClassifiedError from one of the registered codes.

    Args:
        code: Error code (E001-E010)
        message: Technical message for logs
        context: Failure context (identifiers, operation name)

    Returns:
        Classified error carrying the code's user message and suggestions
    """
    template = ERROR_TEMPLATES[code]
    return ClassifiedError(
        kind=template.kind,
        message=message,
        user_message=template.user_message,
        code=template.code,
        retryable=template.retryable,
        suggestions=template.suggestions,
        context=MappingProxyType(dict(context or {})),
    )


def invalid_hash_error(tx_hash: str) -> ClassifiedError:
    return build_error("E001", f"Invalid transaction hash format: {tx_hash}", {"tx_hash": tx_hash})


def transaction_not_found_error(tx_hash: str) -> ClassifiedError:
    return build_error("E002", f"Transaction {tx_hash} not found", {"tx_hash": tx_hash})


def block_not_found_error(block_number: Any) -> ClassifiedError:
    return build_error("E003", f"Block {block_number} not found", {"block_number": str(block_number)})


def database_error(detail: str, context: Optional[Mapping[str, Any]] = None) -> ClassifiedError:
    return build_error("E004", f"Database operation failed: {detail}", context)


def chain_error(message: str, network_id: Any = None) -> ClassifiedError:
    return build_error("E005", message, {"network_id": network_id})


def timeout_error(operation: str, context: Optional[Mapping[str, Any]] = None) -> ClassifiedError:
    ctx = dict(context or {})
    ctx.setdefault("operation", operation)
    return build_error("E006", f"Query timeout during {operation}", ctx)


def rate_limit_error(context: Optional[Mapping[str, Any]] = None) -> ClassifiedError:
    return build_error("E007", "Rate limit exceeded", context)


def internal_error(detail: str, context: Optional[Mapping[str, Any]] = None) -> ClassifiedError:
    return build_error("E008", f"Internal error: {detail}", context)


def data_processing_error(step: str, detail: str,
                          context: Optional[Mapping[str, Any]] = None) -> ClassifiedError:
    ctx = dict(context or {})
    ctx.setdefault("step", step)
    return build_error("E009", f"Data processing failed at {step}: {detail}", ctx)


def invalid_request_error(detail: str, context: Optional[Mapping[str, Any]] = None) -> ClassifiedError:
    return build_error("E010", f"Invalid request: {detail}", context)


@dataclass(frozen=True)
class ClassificationRule:
    """One (predicate, result) pair of the classifier's rule table."""
    name: str
    matches: Callable[[BaseException, str, Mapping[str, Any]], bool]
    build: Callable[[BaseException, str, Mapping[str, Any]], ClassifiedError]


def _is_not_found_transaction(exc: BaseException, message: str, context: Mapping[str, Any]) -> bool:
    return "not found" in message.lower() and bool(context.get("tx_hash"))


def _is_not_found_block(exc: BaseException, message: str, context: Mapping[str, Any]) -> bool:
    return "not found" in message.lower() and context.get("block_number") is not None


def _is_timeout(exc: BaseException, message: str, context: Mapping[str, Any]) -> bool:
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return True
    lowered = message.lower()
    return "timeout" in lowered or "timed out" in lowered


def _is_invalid_hash(exc: BaseException, message: str, context: Mapping[str, Any]) -> bool:
    return "invalid transaction hash" in message.lower()


def _is_chain_error(exc: BaseException, message: str, context: Mapping[str, Any]) -> bool:
    lowered = message.lower()
    if "invalid" in lowered and "chain id" in lowered:
        return True
    return "unsupported" in lowered and "chain" in lowered


def _is_database_error(exc: BaseException, message: str, context: Mapping[str, Any]) -> bool:
    return isinstance(exc, SQLAlchemyError)


DEFAULT_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "transaction_not_found",
        _is_not_found_transaction,
        lambda exc, msg, ctx: build_error("E002", msg, ctx),
    ),
    ClassificationRule(
        "block_not_found",
        _is_not_found_block,
        lambda exc, msg, ctx: build_error("E003", msg, ctx),
    ),
    ClassificationRule(
        "timeout",
        _is_timeout,
        lambda exc, msg, ctx: timeout_error(ctx.get("operation", "query"), ctx),
    ),
    ClassificationRule(
        "invalid_hash",
        _is_invalid_hash,
        lambda exc, msg, ctx: build_error("E001", msg, ctx),
    ),
    ClassificationRule(
        "chain",
        _is_chain_error,
        lambda exc, msg, ctx: build_error("E005", msg, ctx),
    ),
    ClassificationRule(
        "database",
        _is_database_error,
        lambda exc, msg, ctx: database_error(msg, ctx),
    ),
)


class ErrorClassifier:
    """
    Stateless, priority-ordered matcher from failures to ClassifiedError.

    Errors that are already classified pass through unchanged. Otherwise the
    rules are tested in order and the first match wins; an unmatched failure
    becomes INTERNAL_ERROR.
    """

    def __init__(self, rules: Optional[Tuple[ClassificationRule, ...]] = None):
        self._rules: Tuple[ClassificationRule, ...] = tuple(rules or DEFAULT_RULES)

    @property
    def rules(self) -> Tuple[ClassificationRule, ...]:
        return self._rules

    def classify(self, error: Any, context: Optional[Mapping[str, Any]] = None) -> ClassifiedError:
        """
        Classify a failure.

        Args:
            error: Exception, ClassifiedError or message string
            context: Identifiers of the failed request (tx_hash, block_number,
                network_id, operation)

        Returns:
            The matching ClassifiedError
        """
        if isinstance(error, ClassifiedError):
            return error
        if isinstance(error, PipelineError):
            return error.error

        ctx: Dict[str, Any] = dict(context or {})
        if isinstance(error, BaseException):
            exc = error
            message = str(error) or type(error).__name__
        else:
            exc = Exception(str(error))
            message = str(error)

        for rule in self._rules:
            if rule.matches(exc, message, ctx):
                logger.debug(f"Error matched classification rule '{rule.name}': {message}")
                return rule.build(exc, message, ctx)

        return internal_error(message, ctx)

    def is_retryable(self, error: Any) -> bool:
        return self.classify(error).retryable

    def error_response(self, error: Any, context: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Classify a failure and render the caller-facing response."""
        return self.classify(error, context).to_response()

    @staticmethod
    def success_response(data: Any) -> Dict[str, Any]:
        return {"success": True, "data": data}

    @staticmethod
    def error_summary(error: ClassifiedError) -> str:
        return f"{error.kind.value}: {error.user_message}"

    @staticmethod
    def log_error(error: ClassifiedError, operation: str) -> None:
        """Log a classified error with its code and context."""
        log_fn = logger.warning if error.kind in (ErrorKind.VALIDATION_ERROR, ErrorKind.NOT_FOUND) else logger.error
        log_fn(
            f"[{error.code}] {error.kind.value} during {operation}: {error.message}",
            extra={
                "error_code": error.code,
                "error_kind": error.kind.value,
                "operation": operation,
                "retryable": error.retryable,
                "error_context": dict(error.context),
                "error_timestamp": error.timestamp.isoformat(),
            },
        )

    def rule_names(self) -> List[str]:
        return [rule.name for rule in self._rules]


# Global classifier instance
error_classifier = ErrorClassifier()
