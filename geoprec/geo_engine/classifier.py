"""
Confidence & Accuracy Classifier

Maps cluster statistics onto a discrete confidence tier and a human-readable
accuracy label. Both are pure functions of the same ClassificationEvidence.

Decision table (first matching row wins, cutoffs from EngineConfig):

    max divergence   agreeing     tier         label
    < exact          >= 5         exata        multi-triangulado
    < precise        >= 4         exata        triangulado-preciso
    < exact          >= 3 + zip   exata        zip-triangulado
    < triangulated   >= 3         muito-alta   triangulado
    < triangulated   >= 2         alta         preciso
    < near majority  >= 4         muito-alta   maioria-proxima
    < city           >= 3         alta         maioria-confirmada
    < city           >= 2         alta         cidade-confirmada
    < region         any          media        regiao-confirmada
    otherwise                     single-source divergente

A confirmed zip upgrades the tier one step; mobile ISPs are capped at alta.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from ..geo_core.config import EngineConfig
from ..geo_core.models import (
    AccuracyLabel, ConfidenceTier, IspType, MOBILE_CAP_SUFFIX, ZIP_SUFFIX
)


@dataclass(frozen=True)
class ClassificationEvidence:
    """Statistics the classifier decides on"""
    source_count: int                   # usable observations
    agree_count: int                    # in-cluster observations
    max_divergence_km: float = 0.0      # in-cluster max pairwise distance
    zip_confirmed: bool = False
    isp_type: IspType = IspType.UNKNOWN
    consensus: bool = True


MOBILE_TIER_CEILING = ConfidenceTier.ALTA

_SPECIAL_LABELS = (AccuracyLabel.SEM_DADOS, AccuracyLabel.FONTE_UNICA, AccuracyLabel.SEM_CONSENSO)


def _base_grade(evidence: ClassificationEvidence, config: EngineConfig) -> Tuple[ConfidenceTier, AccuracyLabel]:
    if evidence.source_count == 0:
        return ConfidenceTier.SINGLE_SOURCE, AccuracyLabel.SEM_DADOS
    if evidence.source_count == 1:
        return ConfidenceTier.SINGLE_SOURCE, AccuracyLabel.FONTE_UNICA
    if not evidence.consensus or evidence.agree_count < 2:
        return ConfidenceTier.SINGLE_SOURCE, AccuracyLabel.SEM_CONSENSO

    div = evidence.max_divergence_km
    agree = evidence.agree_count

    if div < config.exact_divergence_km and agree >= 5:
        return ConfidenceTier.EXATA, AccuracyLabel.MULTI_TRIANGULADO
    if div < config.precise_divergence_km and agree >= 4:
        return ConfidenceTier.EXATA, AccuracyLabel.TRIANGULADO_PRECISO
    if div < config.exact_divergence_km and agree >= 3 and evidence.zip_confirmed:
        return ConfidenceTier.EXATA, AccuracyLabel.ZIP_TRIANGULADO
    if div < config.triangulated_divergence_km and agree >= 3:
        return ConfidenceTier.MUITO_ALTA, AccuracyLabel.TRIANGULADO
    if div < config.triangulated_divergence_km:
        return ConfidenceTier.ALTA, AccuracyLabel.PRECISO
    if div < config.near_majority_divergence_km and agree >= 4:
        return ConfidenceTier.MUITO_ALTA, AccuracyLabel.MAIORIA_PROXIMA
    if div < config.city_divergence_km and agree >= 3:
        return ConfidenceTier.ALTA, AccuracyLabel.MAIORIA_CONFIRMADA
    if div < config.city_divergence_km:
        return ConfidenceTier.ALTA, AccuracyLabel.CIDADE_CONFIRMADA
    if div < config.region_divergence_km:
        return ConfidenceTier.MEDIA, AccuracyLabel.REGIAO_CONFIRMADA
    return ConfidenceTier.SINGLE_SOURCE, AccuracyLabel.DIVERGENTE


def _grade(evidence: ClassificationEvidence, config: EngineConfig) -> Tuple[ConfidenceTier, str]:
    tier, base_label = _base_grade(evidence, config)
    label = base_label.value

    if evidence.zip_confirmed and base_label not in _SPECIAL_LABELS and tier is not ConfidenceTier.EXATA:
        tier = tier.upgraded()
        label += ZIP_SUFFIX

    if config.cap_mobile_isp and evidence.isp_type is IspType.MOBILE:
        capped = tier.capped_at(MOBILE_TIER_CEILING)
        if capped is not tier:
            tier = capped
            label += MOBILE_CAP_SUFFIX

    return tier, label


def classify_confidence(evidence: ClassificationEvidence,
                        config: Optional[EngineConfig] = None) -> ConfidenceTier:
    """Confidence tier for the given evidence"""
    return _grade(evidence, config or EngineConfig())[0]


def classify_accuracy(evidence: ClassificationEvidence,
                      config: Optional[EngineConfig] = None) -> str:
    """Accuracy label for the given evidence, including +zip / |mobile-cap modifiers"""
    return _grade(evidence, config or EngineConfig())[1]
