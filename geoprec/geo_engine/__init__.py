from .providers import GeoProvider, PROVIDER_REGISTRY, create_provider, create_providers
from .source_adapter import SourceAdapter, create_source_adapter
from .country_filter import filter_by_country, majority_country
from .clustering import find_consensus
from .refinement import refine
from .zip_validation import ZipValidation, validate_zip
from .classifier import ClassificationEvidence, classify_confidence, classify_accuracy
from .uncertainty import UncertaintyEstimate, estimate_uncertainty
from .assembler import assemble_estimate, build_unavailable
from .precision_engine import PrecisionEngine, create_precision_engine

__all__ = [
    "GeoProvider", "PROVIDER_REGISTRY", "create_provider", "create_providers",
    "SourceAdapter", "create_source_adapter",
    "filter_by_country", "majority_country",
    "find_consensus",
    "refine",
    "ZipValidation", "validate_zip",
    "ClassificationEvidence", "classify_confidence", "classify_accuracy",
    "UncertaintyEstimate", "estimate_uncertainty",
    "assemble_estimate", "build_unavailable",
    "PrecisionEngine", "create_precision_engine",
]
