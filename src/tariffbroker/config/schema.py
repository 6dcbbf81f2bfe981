"""Pydantic schema for broker configuration validation."""

import hashlib
import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class Broker(BaseModel):
    """Broker identity."""
    username: str = Field(min_length=1, description="Our broker's username")
    default_broker: str = Field(
        default="default broker",
        description="Reference broker whose tariffs are not treated as competition"
    )


class Timing(BaseModel):
    """Simulation clock and decision cadence."""
    period_length: int = Field(gt=0, description="Timeslots per decision period")
    warmup_timeslots: int = Field(ge=0, description="No decisions until the timeslot index exceeds this")
    cycle_length: int = Field(gt=0, description="Timeslots per usage cycle (168 = one week)")
    timeslot_duration_ms: int = Field(gt=0, default=3_600_000, description="Wall-clock length of a timeslot")


class Usage(BaseModel):
    """Usage estimator parameters."""
    alpha: float = Field(gt=0, le=1, description="Exponential smoothing factor")


class Pricing(BaseModel):
    """Decision-engine parameters."""
    entry_budget: int = Field(ge=0, description="Aggressive-entry publications allowed over the whole game")
    perturbation: float = Field(ge=0, lt=1, description="Maximum relative move of a rate toward zero")
    rate_ceiling: float = Field(
        lt=0, description="Least favorable consumption rate we will publish (per kWh)"
    )
    random_seed: int = Field(description="Seed for rate perturbation")


class Tariff(BaseModel):
    """Terms attached to every tariff we compose."""
    signup_payment: float = Field(default=0.0, description="Signup payment")
    early_withdraw_payment: float = Field(default=0.0, description="Early withdraw payment")
    periodic_payment: float = Field(default=0.0, description="Daily meter charge")
    min_duration: int = Field(ge=0, default=256_000_000, description="Minimum subscription (ms)")


class Balancing(BaseModel):
    """Price factors for balancing orders derived from a tariff's own rates."""
    interruptible_fraction: float = Field(gt=0, le=1, default=0.5)
    interruptible_price_factor: float = Field(gt=0, le=1, default=0.9)
    up_regulation_price_factor: float = Field(gt=0, le=1, default=0.5)
    down_regulation_price_factor: float = Field(gt=0, le=1, default=0.9)


class Triggers(BaseModel):
    """Timeslots at which one-shot portfolio procedures run (None disables)."""
    balancing_timeslot: Optional[int] = Field(default=None, ge=0)
    supersede_timeslot: Optional[int] = Field(default=None, ge=0)
    balancing: Balancing = Field(default_factory=Balancing)


class InitialTariffs(BaseModel):
    """Opening tariffs published when the broker owns none."""
    enabled: bool = Field(default=False)
    fixed_per_kwh: float = Field(default=-0.2, description="Fixed cost per kWh")
    margin: float = Field(ge=0, default=0.1, description="Target profit margin")
    perturbation: float = Field(ge=0, lt=1, default=0.1, description="Random discount on the opening rate")
    production_factor: float = Field(default=-0.5, description="Production rate as a multiple of market price")


class Diagnostics(BaseModel):
    """Per-period statistics output."""
    stats_path: Optional[str] = Field(default=None, description="Human-readable stats file (None disables)")


class Simulation(BaseModel):
    """Synthetic scenario parameters for the scenario runner."""
    num_timeslots: int = Field(gt=0, description="Timeslots to run")
    competitors: int = Field(ge=0, description="Number of rival brokers")
    segments: int = Field(gt=0, description="Customer segments in the market")
    segment_population: int = Field(gt=0, description="Population per segment")
    initial_cash: float = Field(default=0.0)
    random_seed: int = Field(description="Random seed for reproducibility")


class Config(BaseModel):
    """Complete configuration for the tariff broker."""
    broker: Broker
    timing: Timing
    usage: Usage
    pricing: Pricing
    tariff: Tariff = Field(default_factory=Tariff)
    triggers: Triggers = Field(default_factory=Triggers)
    initial_tariffs: InitialTariffs = Field(default_factory=InitialTariffs)
    diagnostics: Diagnostics = Field(default_factory=Diagnostics)
    simulation: Simulation

    @field_validator("broker", mode="before")
    @classmethod
    def coerce_broker(cls, v):
        """Accept a bare username string for the broker section."""
        if isinstance(v, str):
            return {"username": v}
        return v

    @model_validator(mode="after")
    def validate_identity(self):
        """Our broker cannot be the reference broker."""
        if self.broker.username == self.broker.default_broker:
            raise ValueError(
                f"Broker username '{self.broker.username}' collides with the default broker"
            )
        return self

    def compute_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_dict = self.model_dump()
        config_str = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()
