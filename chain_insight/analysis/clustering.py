"""
Rule-based single-label clustering of transactions.

Rules are evaluated in order and the first matching predicate decides the
label; the order is part of the semantics.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, List, Sequence

from chain_insight.analysis.activity import CONTRACT_DEPLOYMENT, NFT_TRANSFER, TOKEN_SWAP
from chain_insight.analysis.models import ActivityProfile, ClusteringResult
from chain_insight.analysis.scoring import ScoringTable
from chain_insight.data.models import TransactionRecord
from chain_insight.utils.values import to_int


@dataclass(frozen=True)
class ClusteringFeatures:
    """Inputs every clustering predicate reads."""
    transfer_count: int
    interaction_count: int
    action_type_count: int
    gas_used: int
    value: Decimal
    has_contract: bool
    has_swap: bool
    has_nft: bool
    is_deployment: bool

    @classmethod
    def from_activity(cls, record: TransactionRecord, activity: ActivityProfile,
                      value: Decimal) -> "ClusteringFeatures":
        return cls(
            transfer_count=len(activity.transfers),
            interaction_count=len(activity.interactions),
            action_type_count=len(activity.action_types),
            gas_used=to_int(record.gas_used),
            value=value,
            has_contract=len(activity.interactions) > 0,
            has_swap=TOKEN_SWAP in activity.action_types,
            has_nft=NFT_TRANSFER in activity.action_types,
            is_deployment=CONTRACT_DEPLOYMENT in activity.action_types,
        )


@dataclass(frozen=True)
class ClusteringRule:
    """A (predicate, result) pair."""
    predicate: Callable[[ClusteringFeatures], bool]
    result: ClusteringResult

    @property
    def label(self) -> str:
        return self.result.label


def default_rules(scoring: ScoringTable) -> List[ClusteringRule]:
    """The clustering rules in evaluation order."""
    return [
        ClusteringRule(
            predicate=lambda f: (f.transfer_count > 3 and f.interaction_count > 2
                                 and f.gas_used > scoring.high_gas_usage),
            result=ClusteringResult(
                label="MEV/Arbitrage",
                confidence=85,
                similarity_factors=("High transfer count", "Multiple interactions", "High gas usage"),
                risk_contribution=3,
            ),
        ),
        ClusteringRule(
            predicate=lambda f: f.has_swap and f.interaction_count > 1 and f.value > 10,
            result=ClusteringResult(
                label="DeFi Power User",
                confidence=75,
                similarity_factors=("Token swaps", "Multiple DeFi protocols", "Significant value"),
                risk_contribution=1,
            ),
        ),
        ClusteringRule(
            predicate=lambda f: f.has_nft and f.transfer_count >= 1,
            result=ClusteringResult(
                label="NFT Trader",
                confidence=80,
                similarity_factors=("NFT transfers", "Trading activity"),
                risk_contribution=1,
            ),
        ),
        ClusteringRule(
            predicate=lambda f: f.transfer_count <= 1 and f.interaction_count <= 1 and not f.has_contract,
            result=ClusteringResult(
                label="Simple User",
                confidence=90,
                similarity_factors=("Low complexity", "Direct transfers"),
                risk_contribution=0,
            ),
        ),
        ClusteringRule(
            predicate=lambda f: f.gas_used > scoring.clustering_automation_gas and f.action_type_count > 2,
            result=ClusteringResult(
                label="Automated System",
                confidence=70,
                similarity_factors=("High gas usage", "Multiple action types"),
                risk_contribution=2,
            ),
        ),
        ClusteringRule(
            predicate=lambda f: f.is_deployment,
            result=ClusteringResult(
                label="Contract Deployer",
                confidence=95,
                similarity_factors=("Contract deployment",),
                risk_contribution=1,
            ),
        ),
        ClusteringRule(
            predicate=lambda f: f.transfer_count > 5 or f.interaction_count > 4,
            result=ClusteringResult(
                label="High Activity User",
                confidence=60,
                similarity_factors=("High transaction complexity",),
                risk_contribution=2,
            ),
        ),
    ]


def cluster(features: ClusteringFeatures, rules: Sequence[ClusteringRule]) -> ClusteringResult:
    """Return the result of the first matching rule, or the uncategorized default."""
    for rule in rules:
        if rule.predicate(features):
            return rule.result
    return ClusteringResult()
