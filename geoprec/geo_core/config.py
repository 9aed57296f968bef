"""GeoPrec Core Configuration - Engine tunables, provider settings and YAML loading"""

import json
import logging
import os
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Dict, Any, Optional, List

import yaml

from . import constants as C
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# ===============================================================================
# CONFIGURATION DATA CLASSES
# ===============================================================================

DEFAULT_PROVIDER_NAMES = [
    'ip-api.com',
    'ipwho.is',
    'ipapi.co',
    'ipwhois.app',
    'freeipapi.com',
    'reallyfreegeoip.org',
    'geoplugin.net',
    'iplocate.io',
]


@dataclass
class ProviderSettings:
    """Per-provider configuration"""
    name: str
    enabled: bool = True
    timeout: Optional[float] = None     # falls back to EngineConfig.provider_timeout
    api_key: Optional[str] = None
    weight: Optional[float] = None      # falls back to constants.SOURCE_WEIGHTS
    url: Optional[str] = None           # endpoint template override, must contain {ip}
    db_path: Optional[str] = None       # local database providers only

    @classmethod
    def from_value(cls, value: Any) -> 'ProviderSettings':
        """Accept a bare provider name or a mapping"""
        if isinstance(value, str):
            return cls(name=value)
        if isinstance(value, dict):
            known = {f.name for f in fields(cls)}
            unknown = set(value) - known
            if unknown:
                raise ConfigurationError(f"Unknown provider setting(s): {sorted(unknown)}")
            if 'name' not in value:
                raise ConfigurationError("Provider entry is missing 'name'")
            return cls(**value)
        raise ConfigurationError(f"Invalid provider entry: {value!r}")


@dataclass
class EngineConfig:
    """Tunables of the precision engine"""

    # Clustering
    agreement_threshold_km: float = C.DEFAULT_AGREEMENT_THRESHOLD_KM
    cluster_city_match: bool = True

    # IWCR
    max_rounds: int = C.DEFAULT_MAX_ROUNDS
    small_cluster_rounds: int = C.DEFAULT_SMALL_CLUSTER_ROUNDS
    convergence_threshold_m: float = C.DEFAULT_CONVERGENCE_THRESHOLD_M
    refine_tolerance: float = C.DEFAULT_REFINE_TOLERANCE
    outlier_prepass: bool = True

    # Timing
    provider_timeout: float = C.DEFAULT_PROVIDER_TIMEOUT
    overall_deadline: Optional[float] = None    # None = slowest provider timeout

    # Classifier cutoffs (km)
    exact_divergence_km: float = 3.0
    precise_divergence_km: float = 5.0
    triangulated_divergence_km: float = 10.0
    near_majority_divergence_km: float = 25.0
    city_divergence_km: float = 50.0
    region_divergence_km: float = 150.0
    cap_mobile_isp: bool = True

    # Uncertainty (meters)
    p68_floor_m: float = C.P68_FLOOR_M
    p95_floor_m: float = C.P95_FLOOR_M
    fallback_p68_m: float = C.FALLBACK_P68_M
    fallback_p95_m: float = C.FALLBACK_P95_M
    fallback_max_m: float = C.FALLBACK_MAX_M
    no_zip_penalty: float = C.NO_ZIP_PENALTY
    mobile_penalty: float = C.MOBILE_PENALTY

    # Providers
    providers: List[ProviderSettings] = field(
        default_factory=lambda: [ProviderSettings(name=name) for name in DEFAULT_PROVIDER_NAMES]
    )
    user_agent: str = C.DEFAULT_USER_AGENT

    # Logging settings
    log_level: str = C.DEFAULT_LOG_LEVEL
    log_file: str = "geoprec.log"
    enable_file_logging: bool = False

    def __post_init__(self):
        self.providers = [
            p if isinstance(p, ProviderSettings) else ProviderSettings.from_value(p)
            for p in self.providers
        ]

    @property
    def enabled_providers(self) -> List[ProviderSettings]:
        return [p for p in self.providers if p.enabled]

    def timeout_for(self, settings: ProviderSettings) -> float:
        return settings.timeout if settings.timeout is not None else self.provider_timeout

    def weight_for(self, source: str) -> float:
        """Reliability prior of a source, honouring per-provider overrides"""
        for settings in self.providers:
            if settings.name == source and settings.weight is not None:
                return settings.weight
        return C.SOURCE_WEIGHTS.get(source, C.DEFAULT_SOURCE_WEIGHT)

    def effective_deadline(self) -> float:
        if self.overall_deadline is not None:
            return self.overall_deadline
        timeouts = [self.timeout_for(p) for p in self.enabled_providers]
        return max(timeouts) if timeouts else self.provider_timeout

    def validate(self) -> List[str]:
        """Validate configuration settings"""
        errors = []

        if self.agreement_threshold_km <= 0:
            errors.append("agreement_threshold_km must be positive")
        if self.max_rounds < 1:
            errors.append("max_rounds must be at least 1")
        if self.small_cluster_rounds < 1:
            errors.append("small_cluster_rounds must be at least 1")
        if self.convergence_threshold_m < 0:
            errors.append("convergence_threshold_m cannot be negative")
        if not 0 <= self.refine_tolerance < 1:
            errors.append("refine_tolerance must be in [0, 1)")
        if self.provider_timeout <= 0:
            errors.append("provider_timeout must be positive")
        if self.overall_deadline is not None and self.overall_deadline <= 0:
            errors.append("overall_deadline must be positive")

        cutoffs = [
            self.exact_divergence_km, self.precise_divergence_km,
            self.triangulated_divergence_km, self.near_majority_divergence_km,
            self.city_divergence_km, self.region_divergence_km,
        ]
        if any(c <= 0 for c in cutoffs):
            errors.append("divergence cutoffs must be positive")
        elif cutoffs != sorted(cutoffs):
            errors.append("divergence cutoffs must be non-decreasing from exact to region")

        if self.no_zip_penalty < 1 or self.mobile_penalty < 1:
            errors.append("uncertainty penalties must be >= 1")
        if not self.fallback_p68_m <= self.fallback_p95_m <= self.fallback_max_m:
            errors.append("fallback radii must satisfy p68 <= p95 <= max")

        names = [p.name for p in self.providers]
        if len(names) != len(set(names)):
            errors.append("provider names must be unique")
        for settings in self.providers:
            if settings.timeout is not None and settings.timeout <= 0:
                errors.append(f"timeout of provider {settings.name} must be positive")
            if settings.weight is not None and not 0 < settings.weight <= 1:
                errors.append(f"weight of provider {settings.name} must be in (0, 1]")
            if settings.url is not None and '{ip}' not in settings.url:
                errors.append(f"url of provider {settings.name} must contain '{{ip}}'")

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_log_levels:
            errors.append(f"log_level must be one of: {valid_log_levels}")

        return errors


# ===============================================================================
# CONFIGURATION MANAGER
# ===============================================================================

class ConfigManager:
    """Loads EngineConfig from YAML/JSON and applies CLI overrides"""

    def __init__(self, config_path: Optional[str] = None, cli_overrides: Optional[Dict[str, Any]] = None):
        self.config_path = config_path or self._get_default_config_path()
        self.config = EngineConfig()
        self.cli_overrides = cli_overrides or {}
        self._load_config(required=config_path is not None)

    def _get_default_config_path(self) -> str:
        env_path = os.environ.get('GEOPREC_CONFIG')
        if env_path:
            return env_path
        return str(Path.home() / ".geoprec" / "config.yaml")

    def _load_config(self, required: bool):
        """Load configuration from file and apply CLI overrides"""
        if os.path.exists(self.config_path):
            data = self._read_file(self.config_path)
            self.config = create_config_from_dict(data)
            logger.debug(f"Loaded configuration from {self.config_path}")
        elif required:
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")
        else:
            logger.debug(f"No configuration at {self.config_path}, using defaults")

        self._apply_cli_overrides()

        errors = self.config.validate()
        if errors:
            raise ConfigurationError("Invalid configuration: " + "; ".join(errors))

    @staticmethod
    def _read_file(path: str) -> Dict[str, Any]:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                if path.endswith('.json'):
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f) or {}
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load config from {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return data

    def _apply_cli_overrides(self):
        """Apply CLI parameter overrides to configuration"""
        for key, value in self.cli_overrides.items():
            if value is None:
                continue
            if key == 'only_providers':
                wanted = set(value)
                unknown = wanted - {p.name for p in self.config.providers}
                for name in sorted(unknown):
                    self.config.providers.append(ProviderSettings(name=name))
                for settings in self.config.providers:
                    settings.enabled = settings.name in wanted
            elif hasattr(self.config, key):
                setattr(self.config, key, value)
            else:
                raise ConfigurationError(f"Unknown configuration key: {key}")

    def save_config(self, path: Optional[str] = None) -> str:
        """Save current configuration to file"""
        target = path or self.config_path
        Path(target).parent.mkdir(parents=True, exist_ok=True)
        config_data = self.to_dict()
        with open(target, 'w', encoding='utf-8') as f:
            if target.endswith('.json'):
                json.dump(config_data, f, indent=2)
            else:
                f.write(CONFIG_HEADER)
                yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)
        logger.info(f"Configuration saved to: {target}")
        return target

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value"""
        return getattr(self.config, key, default)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        data = asdict(self.config)
        data['providers'] = [
            {k: v for k, v in provider.items() if v is not None}
            for provider in data['providers']
        ]
        return data

    def __repr__(self) -> str:
        return f"ConfigManager(config_path='{self.config_path}')"


CONFIG_HEADER = """# GeoPrec Configuration File
# Distances in km unless suffixed _m (meters); timeouts in seconds.
# providers: list of names or mappings with name/enabled/timeout/api_key/weight/url/db_path
"""


# ===============================================================================
# CONFIGURATION UTILITIES
# ===============================================================================

def load_config(config_path: Optional[str] = None) -> ConfigManager:
    """Load configuration manager"""
    return ConfigManager(config_path)


def create_config_from_dict(data: Dict[str, Any]) -> EngineConfig:
    """Create EngineConfig from dictionary, rejecting unknown keys"""
    known = {f.name for f in fields(EngineConfig)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(f"Unknown configuration key(s): {sorted(unknown)}")
    return EngineConfig(**data)


def create_cli_overrides(verbose=None, quiet=None, timeout=None, agreement_km=None,
                         providers=None) -> Dict[str, Any]:
    """Create CLI overrides dictionary from common parameters"""
    overrides = {}

    if verbose:
        overrides['log_level'] = 'DEBUG'
    elif quiet:
        overrides['log_level'] = 'WARNING'

    if timeout is not None:
        overrides['provider_timeout'] = float(timeout)

    if agreement_km is not None:
        overrides['agreement_threshold_km'] = float(agreement_km)

    if providers:
        overrides['only_providers'] = list(providers)

    return overrides
