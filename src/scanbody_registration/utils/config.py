"""
Configuration management for scanbody-registration.

One pydantic section per registration component, read from YAML.
All lengths are millimeters.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Literal, List, Any, Dict

from pydantic import BaseModel, Field, ValidationError, field_validator
import yaml


# -----------------------
# Typed config structures
# -----------------------


class DetectionConfig(BaseModel):
    max_landmark_distance: float = Field(
        default=5.0,
        gt=0,
        description="Maximum pairwise landmark distance (mm) inside one scanbody",
    )
    strategy: Literal["greedy", "compact"] = Field(
        default="greedy",
        description="'greedy' takes the first valid triple in input order; "
                    "'compact' takes the smallest-perimeter triples first",
    )


class ExtractionConfig(BaseModel):
    scan_patch_radius: float = Field(default=2.5, gt=0, description="Landmark-centered patch radius (mm)")
    template_patch_radius: float = Field(default=1.5, gt=0, description="Template sample patch radius (mm)")
    min_scan_patch_points: int = Field(default=10, ge=0, description="Scan patches need strictly more points")
    min_template_patch_points: int = Field(default=15, ge=0, description="Template patches need strictly more points")
    region_radius_factor: float = Field(default=1.5, gt=0)
    min_region_radius: float = Field(default=10.0, gt=0, description="Floor for the scan region radius (mm)")
    min_region_points: int = Field(default=50, ge=0, description="Minimum scan points around a scanbody")
    template_height_fraction: float = Field(default=0.2, description="Vertical sample offset as a fraction of template height")
    template_lateral_fraction: float = Field(default=0.3, description="Lateral sample offset as a fraction of template width/depth")


class MatchingWeightsConfig(BaseModel):
    normal: float = Field(default=0.4)
    density: float = Field(default=0.2)
    curvature: float = Field(default=0.25)
    compactness: float = Field(default=0.15)


class MatchingConfig(BaseModel):
    score_threshold: float = Field(default=0.3, ge=0, le=1)
    min_correspondences: int = Field(default=2, ge=1)
    weights: MatchingWeightsConfig = Field(default_factory=MatchingWeightsConfig)


class BasicPlacementConfig(BaseModel):
    search_radii: List[float] = Field(
        default_factory=lambda: [1.0, 2.0, 3.0, 4.0],
        description="Progressively larger XY radii (mm) searched for the highest scan point",
    )
    refine_radius: float = Field(default=1.0, gt=0)
    normal_radius: float = Field(default=2.5, gt=0)
    rms_radius: float = Field(default=5.0, gt=0)
    template_up: List[float] = Field(default_factory=lambda: [0.0, 0.0, 1.0])

    @field_validator("search_radii")
    @classmethod
    def _radii_not_empty(cls, v: List[float]) -> List[float]:
        if not v:
            raise ValueError("search_radii must contain at least one radius")
        return sorted(v)

    @field_validator("template_up")
    @classmethod
    def _three_components(cls, v: List[float]) -> List[float]:
        if len(v) != 3:
            raise ValueError("template_up must have exactly three components")
        if not any(v):
            raise ValueError("template_up must not be the zero vector")
        return v


class RegistrationConfig(BaseModel):
    mode: Literal["advanced", "basic"] = Field(default="advanced")


class ParallelConfig(BaseModel):
    enabled: bool = Field(default=False, description="Register scanbodies concurrently on a thread pool")
    n_workers: Optional[int] = Field(default=None, description="Worker threads (None = auto-detect)")


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class AppConfig(BaseModel):
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    basic: BasicPlacementConfig = Field(default_factory=BasicPlacementConfig)
    registration: RegistrationConfig = Field(default_factory=RegistrationConfig)
    parallel: ParallelConfig = Field(default_factory=ParallelConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# -----------------------
# Loader
# -----------------------

DEFAULT_CONFIG_NAME = "default.yaml"


def _project_root() -> Path:
    """Repository root: this file lives at <root>/src/scanbody_registration/utils/config.py."""
    return Path(__file__).resolve().parents[3]


def default_config_path() -> Path:
    return _project_root() / "config" / DEFAULT_CONFIG_NAME


def load_config(path: Optional[str | Path] = None, *, allow_missing: bool = True) -> AppConfig:
    """
    Read a YAML file into an AppConfig.

    Sections and keys left out of the file keep their model defaults, so an
    empty file yields ``AppConfig()``.

    Args:
        path: YAML file; ``config/default.yaml`` under the repository root when None
        allow_missing: Fall back to ``AppConfig()`` when the file does not exist

    Raises:
        FileNotFoundError: File missing and ``allow_missing`` is False
        ValueError: A value fails validation (message names the file)
    """
    cfg_path = default_config_path() if path is None else Path(path)

    if not cfg_path.is_file():
        if not allow_missing:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return AppConfig()

    raw: Dict[str, Any] = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {cfg_path}: {e}") from e
