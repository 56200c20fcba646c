"""
Request orchestration: cache lookup, fetch, analyze, format and store.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from chain_insight.analysis.address_risk import analyze_address_risk, analyze_transfer_risk
from chain_insight.analysis.models import BLOCK, TRANSACTION, AnalysisResult, NetworkContext
from chain_insight.cache.smart_cache import CacheKind
from chain_insight.chains.connections import ConnectionHandle
from chain_insight.chains.registry import NetworkIdentity
from chain_insight.data.blocks import parse_block_identifier
from chain_insight.data.models import BlockRecord, TransactionRecord
from chain_insight.formatting.prompts import system_prompt
from chain_insight.pipeline.context import AnalysisContext
from chain_insight.utils.error_classification import (
    PipelineError,
    block_not_found_error,
    invalid_hash_error,
    invalid_request_error,
    transaction_not_found_error,
)
from chain_insight.utils.structured_logging import with_correlation_id
from chain_insight.utils.values import is_valid_address, is_valid_tx_hash, serialize_big_ints

logger = logging.getLogger(__name__)

REQUEST_KINDS = (TRANSACTION, BLOCK)


@dataclass(frozen=True)
class AnalysisRequest:
    """One inbound analysis request."""
    kind: str
    identifier: Union[str, int]
    network_id: int

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'AnalysisRequest':
        """
        Build a request from ``{kind, identifier, network_id}``.

        Raises:
            PipelineError: VALIDATION_ERROR for a missing or malformed field
        """
        kind = data.get("kind")
        if kind not in REQUEST_KINDS:
            raise PipelineError(invalid_request_error(
                f"kind must be one of {', '.join(REQUEST_KINDS)}, got {kind!r}", {"kind": kind}
            ))

        identifier = data.get("identifier")
        if identifier is None or identifier == "":
            raise PipelineError(invalid_request_error("identifier is required", {"kind": kind}))

        return cls(kind=kind, identifier=identifier, network_id=_parse_network_id(data.get("network_id")))


def _parse_network_id(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise PipelineError(invalid_request_error(
        f"network_id must be an integer chain id, got {value!r}", {"network_id": value}
    ))


def _require_address(value: Any) -> str:
    if not is_valid_address(value):
        raise PipelineError(invalid_request_error(f"invalid address {value!r}", {"address": value}))
    return value.lower()


def _parse_amount(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal(0)
    error = invalid_request_error(f"amount must be a non-negative number, got {value!r}", {"amount": value})
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise PipelineError(error) from e
    if not amount.is_finite() or amount < 0:
        raise PipelineError(error)
    return amount


def _cache_health(hit_rate: float) -> Tuple[str, str]:
    if hit_rate > 70:
        health = "Excellent"
    elif hit_rate > 50:
        health = "Good"
    else:
        health = "Poor"
    if hit_rate < 50:
        suggestion = "Consider increasing cache TTL or analyzing access patterns"
    else:
        suggestion = "Cache performing optimally"
    return health, suggestion


class AnalysisOrchestrator:
    """
    Handles analysis requests end to end.

    Each request is validated, looked up in the cache, fetched, analyzed,
    formatted and cached. Failures are classified once at this boundary and
    returned as failure responses; nothing is cached for a failed attempt.
    """

    def __init__(self, context: AnalysisContext):
        """
        Initialize the orchestrator.

        Args:
            context: Shared registry, caches, engine and formatter
        """
        self.context = context

    @with_correlation_id()
    async def handle(self, request: Union[AnalysisRequest, Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Process one analysis request.

        Args:
            request: AnalysisRequest or ``{kind, identifier, network_id}``

        Returns:
            ``{success: True, data}`` with integer values as strings, or the
            classified failure response
        """
        error_context = self._error_context(request)
        try:
            if not isinstance(request, AnalysisRequest):
                request = AnalysisRequest.from_mapping(request)

            logger.info(f"Handling {request.kind} request for {request.identifier} on chain {request.network_id}")
            if request.kind == TRANSACTION:
                data = await self._handle_transaction(request)
            else:
                data = await self._handle_block(request)
            return self.context.classifier.success_response(data)

        except Exception as e:
            classified = self.context.classifier.classify(e, error_context)
            self.context.classifier.log_error(classified, f"{error_context.get('kind', 'unknown')} analysis")
            return classified.to_response()

    async def _handle_transaction(self, request: AnalysisRequest) -> Dict[str, Any]:
        identifier = request.identifier
        if not is_valid_tx_hash(identifier):
            raise PipelineError(invalid_hash_error(str(identifier)))
        tx_hash = identifier.lower()
        network = self.context.registry.require(request.network_id)

        cache_key = self.context.cache.transaction_key(network.chain_id, tx_hash)
        cached = await self.context.cache.get(cache_key)
        if cached is not None:
            logger.info(f"Serving cached analysis for transaction {tx_hash}")
            return cached

        handle = await self.context.connections.get_connection_handle(network.chain_id)
        record = await handle.data_client.transactions.get_transaction(tx_hash)
        if record is None:
            raise PipelineError(transaction_not_found_error(tx_hash))

        network_context = await self._network_context(handle, network)
        payload = self._build_payload(self.context.engine.analyze(record, network_context), network)

        await self.context.cache.set(cache_key, payload, CacheKind.TRANSACTION)
        return payload

    async def _handle_block(self, request: AnalysisRequest) -> Dict[str, Any]:
        target = parse_block_identifier(request.identifier)
        network = self.context.registry.require(request.network_id)
        cache = self.context.cache

        # "latest" moves, so it is only looked up once resolved to a number
        if target != "latest":
            cached = await cache.get(cache.block_key(network.chain_id, target))
            if cached is not None:
                logger.info(f"Serving cached analysis for block {target}")
                return cached

        handle = await self.context.connections.get_connection_handle(network.chain_id)
        block = await handle.data_client.blocks.get_block(target)
        if block is None:
            raise PipelineError(block_not_found_error(target))

        network_context = await self._network_context(handle, network)
        payload = self._build_payload(self.context.engine.analyze(block, network_context), network)

        await cache.set(cache.block_key(network.chain_id, block.number), payload, CacheKind.BLOCK)
        return payload

    async def _network_context(self, handle: ConnectionHandle, network: NetworkIdentity) -> NetworkContext:
        """Recent blocks as light context. Best-effort."""
        analysis_config = self.context.config.analysis
        recent = []
        if analysis_config.include_network_metrics:
            recent = await handle.data_client.blocks.get_recent_blocks(analysis_config.context_blocks)

        return NetworkContext(
            network=network,
            recent_blocks=tuple(recent),
            latest_block_number=recent[0].number if recent else None,
            analysis_time=time.time(),
        )

    def _build_payload(self, result: AnalysisResult, network: NetworkIdentity) -> Dict[str, Any]:
        formatted = self.context.formatter.format(result, result.kind)
        analysis = serialize_big_ints(result)
        raw_data = analysis.pop("record")

        payload: Dict[str, Any] = {
            "raw_data": raw_data,
            "analysis": analysis,
            "formatted_analysis": formatted.text,
            "directive": formatted.directive,
            "type": result.kind,
            "chain_id": str(network.chain_id),
        }
        record = result.record
        if isinstance(record, TransactionRecord):
            payload["hash"] = record.hash
        elif isinstance(record, BlockRecord):
            payload["block_number"] = str(record.number)
        return payload

    @staticmethod
    def _error_context(request: Union[AnalysisRequest, Mapping[str, Any]]) -> Dict[str, Any]:
        if isinstance(request, AnalysisRequest):
            kind, identifier, network_id = request.kind, request.identifier, request.network_id
        elif isinstance(request, Mapping):
            kind, identifier, network_id = request.get("kind"), request.get("identifier"), request.get("network_id")
        else:
            return {}

        context: Dict[str, Any] = {"kind": kind, "network_id": network_id}
        if kind == TRANSACTION:
            context["tx_hash"] = identifier
        elif kind == BLOCK:
            context["block_number"] = str(identifier)
        return context

    async def generate_report(self, request: Union[AnalysisRequest, Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Analyze a request and pass the result to the text generator.

        The generator receives the fixed system prompt of the request kind
        and the formatted analysis followed by its directive.

        Returns:
            ``{success: True, data: {report, analysis}}`` or a failure response
        """
        response = await self.handle(request)
        if not response["success"]:
            return response

        data = response["data"]
        try:
            if self.context.text_generator is None:
                raise PipelineError(invalid_request_error("no text generator is configured"))
            message = f"{data['formatted_analysis']}\n{data['directive']}"
            report = await self.context.text_generator(system_prompt(data["type"]), message)
            return self.context.classifier.success_response({"report": report, "analysis": data})

        except Exception as e:
            classified = self.context.classifier.classify(e, {"operation": "report generation"})
            self.context.classifier.log_error(classified, "report generation")
            return classified.to_response()

    async def cache_statistics(self) -> Dict[str, Any]:
        """
        Cache performance, breakdown and health, sweeping expired entries.

        Returns:
            ``{success: True, data}`` with performance, data_breakdown,
            maintenance and recommendations blocks
        """
        try:
            stats = await self.context.cache.get_stats()
            cleaned = await self.context.cache.clean_expired()
            health, suggestion = _cache_health(stats["hit_rate"])

            maintenance: Dict[str, Any] = {
                "expired_entries_cleaned": cleaned,
                "last_cleanup": datetime.now(timezone.utc).isoformat(),
            }
            if self.context.scheduler is not None:
                maintenance["scheduler"] = self.context.scheduler.get_status()

            return self.context.classifier.success_response({
                "performance": {
                    "cache_size": stats["size"],
                    "max_size": stats["max_size"],
                    "utilization_percent": round(stats["size"] / stats["max_size"] * 100),
                    "hit_rate": round(stats["hit_rate"], 2),
                    "total_access": stats["total_access"],
                    "average_access_per_entry": stats["average_access_per_entry"],
                    "hits": stats["access_stats"]["hits"],
                    "misses": stats["access_stats"]["misses"],
                },
                "data_breakdown": stats["kind_breakdown"],
                "maintenance": maintenance,
                "recommendations": {
                    "cache_health": health,
                    "suggestion": suggestion,
                },
            })

        except Exception as e:
            classified = self.context.classifier.classify(e, {"operation": "cache statistics"})
            self.context.classifier.log_error(classified, "cache statistics")
            return classified.to_response()

    async def recent_blocks(self, network_id: Any, limit: Optional[int] = None) -> Dict[str, Any]:
        """Most recent blocks of a network, newest first."""
        try:
            network = self.context.registry.require(_parse_network_id(network_id))
            handle = await self.context.connections.get_connection_handle(network.chain_id)
            blocks = await handle.data_client.blocks.get_recent_blocks(limit or self.context.config.analysis.context_blocks)
            return self.context.classifier.success_response(serialize_big_ints(blocks))

        except Exception as e:
            classified = self.context.classifier.classify(e, {"network_id": network_id, "operation": "recent blocks"})
            self.context.classifier.log_error(classified, "recent blocks")
            return classified.to_response()

    async def address_transactions(self, address: str, network_id: Any,
                                   limit: Optional[int] = None) -> Dict[str, Any]:
        """Most recent transactions sent or received by an address."""
        try:
            if not is_valid_address(address):
                raise PipelineError(invalid_request_error(f"invalid address {address!r}", {"address": address}))
            network = self.context.registry.require(_parse_network_id(network_id))
            handle = await self.context.connections.get_connection_handle(network.chain_id)
            transactions = await handle.data_client.transactions.get_address_transactions(
                address, limit or self.context.config.analysis.address_history_limit
            )
            return self.context.classifier.success_response(serialize_big_ints(transactions))

        except Exception as e:
            classified = self.context.classifier.classify(e, {"address": address, "operation": "address history"})
            self.context.classifier.log_error(classified, "address history")
            return classified.to_response()

    async def address_risk(self, address: str, network_id: Any) -> Dict[str, Any]:
        """
        Risk reading of an address from its indexed transaction history.

        Returns:
            ``{success: True, data}`` with the address stats, risk score,
            factors and security flags, or a failure response
        """
        try:
            address = _require_address(address)
            network = self.context.registry.require(_parse_network_id(network_id))
            handle = await self.context.connections.get_connection_handle(network.chain_id)
            stats = await handle.data_client.transactions.get_address_stats(address)
            return self.context.classifier.success_response(serialize_big_ints(analyze_address_risk(stats)))

        except Exception as e:
            classified = self.context.classifier.classify(e, {"address": address, "operation": "address risk"})
            self.context.classifier.log_error(classified, "address risk")
            return classified.to_response()

    async def transfer_risk(self, to_address: str, network_id: Any, from_address: Optional[str] = None,
                            amount: Any = None) -> Dict[str, Any]:
        """
        Combined risk of a transfer, weighting the recipient over the sender.

        Args:
            to_address: Recipient address
            network_id: Chain id
            from_address: Sender address, if known
            amount: Transfer amount in native units, if known

        Returns:
            ``{success: True, data}`` with both address readings, the overall
            risk, warnings and recommendations, or a failure response
        """
        try:
            to_address = _require_address(to_address)
            if from_address:
                from_address = _require_address(from_address)
            value = _parse_amount(amount)
            network = self.context.registry.require(_parse_network_id(network_id))
            handle = await self.context.connections.get_connection_handle(network.chain_id)

            transactions = handle.data_client.transactions
            to_stats = await transactions.get_address_stats(to_address)
            from_stats = await transactions.get_address_stats(from_address) if from_address else None
            analysis = analyze_transfer_risk(to_stats, from_stats, value)
            return self.context.classifier.success_response(serialize_big_ints(analysis))

        except Exception as e:
            classified = self.context.classifier.classify(
                e, {"address": to_address, "from_address": from_address, "operation": "transfer risk"}
            )
            self.context.classifier.log_error(classified, "transfer risk")
            return classified.to_response()
