"""
Activity profile and classification of a single transaction.
"""

import logging
from decimal import Decimal
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from chain_insight.analysis.models import ActivityProfile, Classification, SecurityNote, TokenTransfer
from chain_insight.analysis.scoring import ScoringTable
from chain_insight.chains.registry import NetworkIdentity
from chain_insight.data.models import EMPTY_INPUT, LogEntry, TransactionRecord
from chain_insight.utils.values import to_int, to_units

logger = logging.getLogger(__name__)

TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
APPROVAL_TOPIC = "0x8c5be1e5ebec7d5bd14f71427d1e84f3dd0314c0f7b2291e5b200ac8c7c3b925"

KNOWN_SELECTORS: Mapping[str, str] = MappingProxyType({
    # ERC-20
    "0xa9059cbb": "USDC Transfer",
    "0x23b872dd": "USDC Transfer From",
    "0x095ea7b3": "USDC Approval",
    # DEX
    "0x38ed1739": "Spot Trade",
    "0x7ff36ab5": "Buy with Native",
    "0x18cbafe5": "Sell to Native",
    "0xe8e33700": "Provide Liquidity",
    "0xbaa2abde": "Remove Liquidity",
    # Perpetuals (placeholder selectors)
    "0x1234abcd": "Open Perpetual Position",
    "0x5678efgh": "Close Perpetual Position",
    "0x9012ijkl": "Modify Position",
    "0xabcd1234": "Liquidate Position",
    "0xefgh5678": "Add Margin",
    "0xijkl9012": "Remove Margin",
    # Order book (placeholder selectors)
    "0x11111111": "Place Limit Order",
    "0x22222222": "Cancel Order",
    "0x33333333": "Execute Market Order",
    "0x44444444": "Batch Orders",
    # Vaults (placeholder selectors)
    "0x55555555": "Deposit to Vault",
    "0x66666666": "Withdraw from Vault",
    "0x77777777": "Claim Rewards",
    "0x88888888": "Compound Rewards",
})

SWAP_SELECTORS = frozenset({"0x38ed1739", "0x7ff36ab5", "0x18cbafe5"})

# topic0 of the lending pool and vault flash-loan events
AAVE_V2_FLASH_LOAN_TOPIC = "0x631042c832b07452973831137f2d73e395028b44b250dedc5abb0ee766e168ac"
AAVE_V3_FLASH_LOAN_TOPIC = "0xefefaba5e921573100900a3ad9cf29f222d995fb3b6045797eaea7521bd8d6f0"
BALANCER_FLASH_LOAN_TOPIC = "0x0d7d75e01ab95780d3cd1c8ec0dd6c2ce19e3a20427eec8bf53283b6fb8e95f0"
UNISWAP_V3_FLASH_TOPIC = "0xbdbdb71d7860376ba52b25a5028beea23581364a40522f6bcfb86bb1f2dca633"

FLASH_LOAN_TOPICS: Mapping[str, str] = MappingProxyType({
    AAVE_V2_FLASH_LOAN_TOPIC: "Aave V2 FlashLoan",
    AAVE_V3_FLASH_LOAN_TOPIC: "Aave V3 FlashLoan",
    BALANCER_FLASH_LOAN_TOPIC: "Balancer FlashLoan",
    UNISWAP_V3_FLASH_TOPIC: "Uniswap V3 Flash",
})

FLASH_LOAN_SELECTORS: Mapping[str, str] = MappingProxyType({
    "0xab9c4b5d": "Flash Loan",
    "0x42b0b77c": "Flash Loan Simple",
    "0x5cffe9de": "ERC-3156 Flash Loan",
    "0x5c38449e": "Vault Flash Loan",
    "0x490e6cbc": "Pool Flash",
})

# Stores that keep decoded event names alongside the raw log
FLASH_KEYWORDS = ("flash",)
FLASH_TOPIC_KEYWORDS = ("borrow", "repay")

TOKEN_SWAP = "Token Swap"
NFT_TRANSFER = "NFT Transfer"
CONTRACT_INTERACTION = "Contract Interaction"
CONTRACT_DEPLOYMENT = "Contract Deployment"


def native_value(record: TransactionRecord, network: NetworkIdentity) -> Decimal:
    """Transaction value in display units of the network currency."""
    return to_units(record.value, network.decimals)


def normalized_input(record: TransactionRecord) -> str:
    return (record.input or EMPTY_INPUT).lower()


def topic_address(topic: str) -> str:
    """The address packed into the low 20 bytes of a 32-byte topic."""
    return "0x" + topic[-40:].lower()


def decode_transfer(log: LogEntry, network: NetworkIdentity) -> Optional[TokenTransfer]:
    """
    Decode an ERC-20 or ERC-721 Transfer event.

    ERC-20 transfers carry the amount in the data field; ERC-721 transfers
    index the token id as a fourth topic and move exactly one token.
    """
    if log.topic0 != TRANSFER_TOPIC or len(log.topics) < 3:
        return None

    if len(log.topics) >= 4:
        token_type, value = "ERC721", Decimal(1)
    else:
        token_type, value = "ERC20", to_units(to_int(log.data or "0x0"), network.decimals)

    return TokenTransfer(
        token_type=token_type,
        token_address=log.address,
        token_symbol=log.address,
        from_address=topic_address(log.topics[1]),
        to_address=topic_address(log.topics[2]),
        value=value,
    )


def is_flash_event(log: LogEntry) -> bool:
    """A known flash-loan event, or a log whose stored fields name one."""
    if log.topic0 in FLASH_LOAN_TOPICS:
        return True
    data = (log.data or "").lower()
    if any(keyword in data for keyword in FLASH_KEYWORDS):
        return True
    return any(keyword in topic.lower() for topic in log.topics for keyword in FLASH_TOPIC_KEYWORDS)


def build_activity_profile(record: TransactionRecord, network: NetworkIdentity) -> ActivityProfile:
    """
    Collect what a transaction did.

    Native value becomes a native transfer, a call with data to an address
    becomes a contract interaction, the function selector is looked up in
    the known-selector table and receipt logs contribute token transfers,
    approvals and flash-loan events.
    """
    action_types: List[str] = []
    transfers: List[TokenTransfer] = []
    interactions: List[str] = []
    security_notes: List[SecurityNote] = []

    input_data = normalized_input(record)
    value = native_value(record, network)

    if value > 0:
        action_types.append(f"{network.currency_symbol} Transfer")
        transfers.append(TokenTransfer(
            token_type="Native",
            token_address="native",
            token_symbol=network.currency_symbol,
            from_address=record.from_address,
            to_address=record.to_address or "Contract Creation",
            value=value,
        ))

    if not record.to_address:
        action_types.append(CONTRACT_DEPLOYMENT)

    selector: Optional[str] = None
    known_functions: Tuple[str, ...] = ()
    if record.to_address and input_data != EMPTY_INPUT:
        action_types.append(CONTRACT_INTERACTION)
        interactions.append(record.to_address.lower())
        if len(input_data) >= 10:
            selector = input_data[:10]
            function_name = KNOWN_SELECTORS.get(selector) or FLASH_LOAN_SELECTORS.get(selector)
            if function_name:
                known_functions = (function_name,)
                action_types.extend(known_functions)

    approvals = 0
    flash_events = 0
    emitters = set()
    token_transfers: List[TokenTransfer] = []
    for log in record.logs:
        emitters.add(log.address)
        transfer = decode_transfer(log, network)
        if transfer is not None:
            token_transfers.append(transfer)
            continue
        if log.topic0 == APPROVAL_TOPIC:
            approvals += 1
        elif is_flash_event(log):
            flash_events += 1

    if not flash_events and selector in FLASH_LOAN_SELECTORS:
        flash_events = 1

    transfers.extend(token_transfers)
    for address in sorted(emitters):
        if address and address not in interactions:
            interactions.append(address)

    if any(transfer.token_type == "ERC721" for transfer in token_transfers):
        action_types.append(NFT_TRANSFER)
    if selector in SWAP_SELECTORS and any(transfer.token_type == "ERC20" for transfer in token_transfers):
        action_types.append(TOKEN_SWAP)

    if record.to_address and input_data != EMPTY_INPUT and not known_functions:
        target = record.to_address.lower()
        if target not in emitters:
            security_notes.append(SecurityNote(
                level="Warning",
                message=f"{target} is not a verified contract: unrecognized function and no events emitted",
                address=target,
            ))

    return ActivityProfile(
        action_types=tuple(action_types),
        transfers=tuple(transfers),
        interactions=tuple(interactions),
        approvals=approvals,
        flash_events=flash_events,
        function_selector=selector,
        known_functions=known_functions,
        security_notes=tuple(security_notes),
    )


def classify_transaction(record: TransactionRecord, network: NetworkIdentity,
                         scoring: ScoringTable) -> Classification:
    """Base type, value category, gas usage label and selector."""
    input_data = normalized_input(record)
    if not record.to_address:
        transaction_type = CONTRACT_DEPLOYMENT
    elif input_data == EMPTY_INPUT:
        transaction_type = "Simple Transfer"
    else:
        transaction_type = CONTRACT_INTERACTION

    value = native_value(record, network)
    selector = input_data[:10] if len(input_data) >= 10 else None

    return Classification(
        transaction_type=transaction_type,
        value_category=scoring.value_category(value),
        gas_efficiency=scoring.gas_usage_label(to_int(record.gas_used), to_int(record.gas_limit)),
        is_contract_interaction=input_data != EMPTY_INPUT and bool(record.to_address),
        function_selector=selector,
        value=value,
    )
