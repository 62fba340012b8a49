from typing import Any, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from launch_sim.errors import InvalidConfig


BID_SHAPES = {"uniform", "log_uniform", "power_law"}

# Older payloads and the dashboard used these spellings.
_BID_SHAPE_ALIASES = {
    "log-uniform": "log_uniform",
    "loguniform": "log_uniform",
    "random": "log_uniform",
    "power-law": "power_law",
    "powerlaw": "power_law",
}


class TraderMix(BaseModel):
    model_config = ConfigDict(frozen=True)

    random: int = 5
    momentum: int = 3
    arbitrage: int = 2

    @field_validator("random", "momentum", "arbitrage")
    @classmethod
    def count_range(cls, v, info):
        if v < 0 or v > 1000:
            raise ValueError(f"{info.field_name} trader count must be between 0 and 1000")
        return v

    @property
    def total(self) -> int:
        return self.random + self.momentum + self.arbitrage


class ScenarioConfig(BaseModel):
    """Everything one scenario run needs. Immutable once built."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    total_supply: float = 1_000_000
    floor_price: float = 0.10
    cap_multiplier: float = 5.0
    bid_count: int = 100
    bid_shape: str = "power_law"
    traders: TraderMix = Field(default_factory=TraderMix)
    trading_days: int = 7
    tge_price: float = 0.50
    payout_reserve: float = 200_000
    seed: int = 42

    @field_validator("total_supply")
    @classmethod
    def supply_positive(cls, v):
        if v <= 0:
            raise ValueError("total_supply must be > 0")
        return v

    @field_validator("floor_price", "tge_price")
    @classmethod
    def price_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @field_validator("cap_multiplier")
    @classmethod
    def cap_range(cls, v):
        if v < 1:
            raise ValueError("cap_multiplier must be >= 1")
        return v

    @field_validator("bid_count")
    @classmethod
    def bid_count_range(cls, v):
        if v < 1 or v > 100_000:
            raise ValueError("bid_count must be between 1 and 100000")
        return v

    @field_validator("bid_shape", mode="before")
    @classmethod
    def valid_bid_shape(cls, v):
        vv = str(v).lower().strip()
        vv = _BID_SHAPE_ALIASES.get(vv, vv)
        if vv not in BID_SHAPES:
            raise ValueError("bid_shape must be one of: uniform, log_uniform, power_law")
        return vv

    @field_validator("trading_days")
    @classmethod
    def days_range(cls, v):
        if v < 1 or v > 365:
            raise ValueError("trading_days must be between 1 and 365")
        return v

    @field_validator("payout_reserve")
    @classmethod
    def reserve_non_negative(cls, v):
        if v < 0:
            raise ValueError("payout_reserve must be >= 0")
        return v

    @field_validator("seed")
    @classmethod
    def seed_non_negative(cls, v):
        if v < 0:
            raise ValueError("seed must be >= 0")
        return v


class SweepRequest(BaseModel):
    base: ScenarioConfig = Field(default_factory=ScenarioConfig)
    parameter: str
    values: List[Any]

    @field_validator("values")
    @classmethod
    def values_range(cls, v):
        if len(v) < 1 or len(v) > 64:
            raise ValueError("values must contain between 1 and 64 entries")
        return v


def build_config(payload: Any = None, **overrides) -> ScenarioConfig:
    """Validate `payload` (mapping or ScenarioConfig) into a ScenarioConfig.

    Validation failures surface as InvalidConfig.
    """
    if isinstance(payload, ScenarioConfig) and not overrides:
        return payload
    if isinstance(payload, ScenarioConfig):
        data = payload.model_dump()
    elif payload is None:
        data = {}
    elif isinstance(payload, Mapping):
        data = dict(payload)
    else:
        raise InvalidConfig(f"cannot build a scenario from {type(payload).__name__}")
    data.update(overrides)
    try:
        return ScenarioConfig(**data)
    except ValidationError as exc:
        raise InvalidConfig(str(exc)) from exc


def reference_scenario() -> ScenarioConfig:
    """The reference launch: 1M supply, $0.10 floor, 100 power-law bids."""
    return ScenarioConfig(
        total_supply=1_000_000,
        floor_price=0.10,
        cap_multiplier=5.0,
        bid_count=100,
        bid_shape="power_law",
        traders=TraderMix(random=5, momentum=3, arbitrage=2),
        trading_days=7,
        tge_price=0.50,
        payout_reserve=200_000,
        seed=42,
    )
