"""Configuration management for hydrological time-series processing."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

THRESHOLD_METHODS = ("dma", "mma", "d30", "fft")


class RainfallConfig(BaseModel):
    """Tipping-bucket gauge and event segmentation settings."""

    bucket_volume: float = Field(default=0.2, gt=0.0, description="Rain depth of one tip (mm)")
    min_intensity: float = Field(
        default=0.2,
        gt=0.0,
        description="Lowest intensity still inside an event (mm/h)",
    )
    max_intensity: float = Field(
        default=127.0,
        gt=0.0,
        description="Highest plausible intensity (mm/h)",
    )
    mintip: bool = Field(default=True, description="Collapse tips onto the 1-minute grid")
    halves: bool = Field(default=True, description="Pad events with half-bucket end points")
    nominal_intensity: float = Field(default=3.0, gt=0.0, description="Single-tip rate (mm/h)")
    depure_seconds: float = Field(default=1.1, ge=0.0)
    max_bias: float = Field(default=0.25, gt=0.0)
    max_iterations: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def validate_intensity_bounds(self) -> "RainfallConfig":
        """Validate that the intensity bounds are not inverted."""
        if self.max_intensity <= self.min_intensity:
            raise ValueError("max_intensity must be greater than min_intensity")
        return self


class AggregationConfig(BaseModel):
    """Fixed-interval aggregation settings."""

    interval_minutes: Optional[int] = Field(
        default=None,
        gt=0,
        description="Target interval; None uses the median discharge spacing",
    )


class GapFillConfig(BaseModel):
    """Cross-correlation gap filling settings."""

    min_correlation: float = Field(default=0.99, gt=0.0, le=1.0)
    cutend: bool = Field(default=False)
    restore_native: bool = Field(default=False)


class DroughtConfig(BaseModel):
    """Threshold-level drought analysis settings."""

    quantile: float = Field(default=20.0, description="Threshold percentile (percent)")
    window_days: int = Field(default=30, ge=1)
    pooling_days: int = Field(default=10, ge=0)
    min_duration_days: int = Field(default=10, ge=1)
    method: Union[str, int] = Field(default="dma")
    smooth: bool = Field(default=True)

    @field_validator("quantile")
    def validate_quantile(cls, v: float) -> float:
        """Validate the percentile level."""
        if not 0.0 < v < 100.0:
            raise ValueError("quantile must be between 0 and 100 (exclusive)")
        return v

    @field_validator("method")
    def validate_method(cls, v: Union[str, int]) -> str:
        """Normalise the threshold method to its name."""
        if isinstance(v, int) and not isinstance(v, bool):
            if not 1 <= v <= len(THRESHOLD_METHODS):
                raise ValueError(f"method must be one of {list(THRESHOLD_METHODS)} or 1..4")
            return THRESHOLD_METHODS[v - 1]
        name = str(v).lower()
        if name not in THRESHOLD_METHODS:
            raise ValueError(f"method must be one of {list(THRESHOLD_METHODS)} or 1..4")
        return name


class BaseFlowConfig(BaseModel):
    """Baseflow separation settings."""

    alpha: float = Field(default=-0.1, description="Chapman filter alpha parameter")
    c_factor: float = Field(default=0.085, gt=0.0, description="Filter parameter C per day")
    recession_days: int = Field(default=7, ge=3)
    min_r2: float = Field(default=0.8, gt=0.0, le=1.0)
    block_days: int = Field(default=5, ge=2)
    turning_factor: float = Field(default=0.9, gt=0.0, le=1.0)


class DiversionConfig(BaseModel):
    """Flow diversion settings (flows in m3/s)."""

    q_max: List[float] = Field(default=[1.0], description="Intake capacities")
    q_min: List[float] = Field(default=[0.0], description="Minimum residual flows")
    recovery_rate: float = Field(default=0.5, ge=0.0, le=1.0)
    residence_factors: List[float] = Field(default=[1.0])

    @field_validator("q_max", "q_min")
    def validate_flows(cls, v: List[float]) -> List[float]:
        """Validate that flow limits are non-negative."""
        if not v:
            raise ValueError("At least one flow limit is required")
        if any(q < 0 for q in v):
            raise ValueError("Flow limits must be non-negative")
        return v

    @field_validator("residence_factors")
    def validate_residence_factors(cls, v: List[float]) -> List[float]:
        """Validate the return-flow distribution."""
        if any(f < 0 for f in v) or sum(v) <= 0:
            raise ValueError("residence_factors must be non-negative with a positive sum")
        return v


class Settings(BaseModel):
    """Main settings class containing all configuration."""

    rainfall: RainfallConfig = Field(default_factory=RainfallConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    gap_fill: GapFillConfig = Field(default_factory=GapFillConfig)
    drought: DroughtConfig = Field(default_factory=DroughtConfig)
    base_flow: BaseFlowConfig = Field(default_factory=BaseFlowConfig)
    diversion: DiversionConfig = Field(default_factory=DiversionConfig)

    @classmethod
    def from_yaml(cls, config_path: Path) -> "Settings":
        """Load settings from a YAML file."""
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict: Dict[str, Any] = yaml.safe_load(f) or {}
        return cls(**config_dict)

    def to_yaml(self, output_path: Path) -> None:
        """Save settings to a YAML file."""
        with open(output_path, "w", encoding="utf-8") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)


default_settings = Settings()
