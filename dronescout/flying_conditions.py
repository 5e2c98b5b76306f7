"""
Flying-conditions risk assessment

Classifies a weather observation into a drone flight risk level. Rules are
evaluated in a fixed order; each rule can add warnings and raise the risk
floor, none of them can lower it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

MPS_TO_MPH = 2.237
METERS_TO_MILES = 0.000621371
DEFAULT_VISIBILITY_MI = 10.0  # No visibility report reads as good visibility


class UnitSystem(str, Enum):
    IMPERIAL = "imperial"
    METRIC = "metric"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)

    def escalate(self, other: "RiskLevel") -> "RiskLevel":
        return other if other.rank > self.rank else self


_RISK_ORDER = (RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH)


@dataclass(frozen=True)
class WeatherObservation:
    """Current weather at the flight location, in the provider's units"""
    wind_speed: Optional[float] = None
    wind_gust: Optional[float] = None
    visibility_m: Optional[float] = None
    condition: Optional[str] = None
    temperature: Optional[float] = None
    cloud_cover: Optional[float] = None
    units: UnitSystem = UnitSystem.IMPERIAL

    def _speed_mph(self, speed: Optional[float]) -> Optional[float]:
        if speed is None:
            return None
        if self.units is UnitSystem.METRIC:
            return speed * MPS_TO_MPH
        return speed

    @property
    def wind_mph(self) -> Optional[float]:
        return self._speed_mph(self.wind_speed)

    @property
    def gust_mph(self) -> Optional[float]:
        return self._speed_mph(self.wind_gust)

    @property
    def visibility_mi(self) -> float:
        if self.visibility_m is None:
            return DEFAULT_VISIBILITY_MI
        return self.visibility_m * METERS_TO_MILES

    @property
    def temperature_f(self) -> Optional[float]:
        if self.temperature is None:
            return None
        if self.units is UnitSystem.METRIC:
            return self.temperature * 9 / 5 + 32
        return self.temperature


@dataclass(frozen=True)
class FlightRiskAssessment:
    safe: bool
    risk: RiskLevel
    warnings: List[str] = field(default_factory=list)
    recommendation: str = ""

    def to_dict(self) -> dict:
        return {
            "safe": self.safe,
            "risk": self.risk.value,
            "warnings": list(self.warnings),
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class RuleOutcome:
    warnings: List[str] = field(default_factory=list)
    risk: RiskLevel = RiskLevel.LOW


Rule = Callable[[WeatherObservation], RuleOutcome]


# ==================== RULES ====================

def wind_rule(obs: WeatherObservation) -> RuleOutcome:
    warnings = []
    risk = RiskLevel.LOW

    wind = obs.wind_mph
    if wind is not None:
        if wind > 25:
            warnings.append(f"High winds ({wind:.0f} mph) - exceeds safe limit for most drones")
            risk = RiskLevel.HIGH
        elif wind > 15:
            warnings.append(f"Moderate winds ({wind:.0f} mph) - fly with caution")
            risk = RiskLevel.MEDIUM
        elif wind > 10:
            warnings.append(f"Light winds ({wind:.0f} mph)")

    gust = obs.gust_mph
    if gust is not None and gust > 25:
        warnings.append(f"Strong gusts ({gust:.0f} mph)")

    return RuleOutcome(warnings, risk)


def visibility_rule(obs: WeatherObservation) -> RuleOutcome:
    visibility = obs.visibility_mi
    if visibility < 3:
        return RuleOutcome([f"Poor visibility ({visibility:.1f} mi) - below VLOS minimums"], RiskLevel.HIGH)
    if visibility < 5:
        return RuleOutcome([f"Reduced visibility ({visibility:.1f} mi)"], RiskLevel.MEDIUM)
    return RuleOutcome()


def precipitation_rule(obs: WeatherObservation) -> RuleOutcome:
    if obs.condition in ("Rain", "Snow"):
        return RuleOutcome([f"{obs.condition} - most drones are not weather sealed"], RiskLevel.HIGH)
    if obs.condition == "Drizzle":
        return RuleOutcome(["Drizzle - moisture risk to electronics"], RiskLevel.MEDIUM)
    return RuleOutcome()


def temperature_rule(obs: WeatherObservation) -> RuleOutcome:
    temp = obs.temperature_f
    if temp is None:
        return RuleOutcome()
    if temp < 32:
        return RuleOutcome([f"Freezing temperatures ({temp:.0f}°F) - reduced battery performance"], RiskLevel.MEDIUM)
    if temp > 95:
        return RuleOutcome([f"High temperatures ({temp:.0f}°F) - risk of overheating"], RiskLevel.MEDIUM)
    return RuleOutcome()


def cloud_cover_rule(obs: WeatherObservation) -> RuleOutcome:
    if obs.cloud_cover is not None and obs.cloud_cover > 80:
        return RuleOutcome([f"Heavy cloud cover ({obs.cloud_cover:.0f}%)"])
    return RuleOutcome()


RULES: Sequence[Rule] = (
    wind_rule,
    visibility_rule,
    precipitation_rule,
    temperature_rule,
    cloud_cover_rule,
)


def assess_flying_conditions(obs: WeatherObservation, rules: Sequence[Rule] = RULES) -> FlightRiskAssessment:
    """Fold the rule list over an observation into one assessment"""
    risk = RiskLevel.LOW
    warnings: List[str] = []

    for rule in rules:
        outcome = rule(obs)
        warnings.extend(outcome.warnings)
        risk = risk.escalate(outcome.risk)

    # Any warning at all, even without escalation, means not "safe"
    safe = risk is RiskLevel.LOW and not warnings

    if safe:
        recommendation = "Good flying conditions"
    elif risk is RiskLevel.HIGH:
        recommendation = "Do not fly"
    else:
        recommendation = "Fly with caution"

    return FlightRiskAssessment(
        safe=safe,
        risk=risk,
        warnings=warnings,
        recommendation=recommendation,
    )


def observation_from_openweather(payload: dict, units: str = "imperial") -> WeatherObservation:
    """Map an OpenWeatherMap current-weather payload into an observation"""
    wind = payload.get("wind") or {}
    main = payload.get("main") or {}
    clouds = payload.get("clouds") or {}
    weather = payload.get("weather") or [{}]

    return WeatherObservation(
        wind_speed=wind.get("speed"),
        wind_gust=wind.get("gust"),
        visibility_m=payload.get("visibility"),
        condition=weather[0].get("main"),
        temperature=main.get("temp"),
        cloud_cover=clouds.get("all"),
        units=UnitSystem(units),
    )
