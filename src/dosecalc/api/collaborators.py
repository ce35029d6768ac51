from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from dosecalc.core.profile import TherapyProfile
from dosecalc.core.snapshot import ClinicalSnapshot
from dosecalc.core.units import GlucoseUnit, as_decimal, parse_unit


@dataclass(frozen=True)
class MealEntry:
    """Resolved meal macros. All zeros means "no meal"."""
    carbs: Decimal = Decimal("0")
    fat: Decimal = Decimal("0")
    protein: Decimal = Decimal("0")
    note: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("carbs", "fat", "protein"):
            object.__setattr__(self, name, as_decimal(getattr(self, name)))


@dataclass(frozen=True)
class GlucoseReading:
    glucose: Decimal
    delta: Decimal = Decimal("0")
    unit: GlucoseUnit = GlucoseUnit.MGDL

    def __post_init__(self) -> None:
        object.__setattr__(self, "glucose", as_decimal(self.glucose))
        object.__setattr__(self, "delta", as_decimal(self.delta))
        object.__setattr__(self, "unit", parse_unit(self.unit))


@dataclass(frozen=True)
class ActiveTotals:
    """Already-decayed insulin and carbohydrate figures."""
    insulin_on_board: Decimal
    carbs_on_board: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "insulin_on_board", as_decimal(self.insulin_on_board))
        object.__setattr__(self, "carbs_on_board", as_decimal(self.carbs_on_board))


@dataclass
class AcceptedDose:
    """Dose confirmed by the operator, handed to the delivery/logging sink."""
    amount: Decimal
    was_clamped: bool
    meal_id: Optional[str] = None
    sequence: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'amount': str(self.amount),
            'was_clamped': self.was_clamped,
            'meal_id': self.meal_id,
            'sequence': self.sequence,
            'timestamp': self.timestamp.isoformat(),
        }


class MealResolver(ABC):
    @abstractmethod
    def resolve(self, meal_id: str) -> Optional[MealEntry]:
        """Return the meal for ``meal_id`` or None when it does not exist."""


class GlucoseSource(ABC):
    @abstractmethod
    def current(self) -> GlucoseReading:
        """Return the glucose reading and short-term delta at this moment."""


class InsulinCarbEstimator(ABC):
    @abstractmethod
    def current(self) -> ActiveTotals:
        """Return current IOB and COB. COB must already include any new meal."""


class TherapyStore(ABC):
    @abstractmethod
    def load(self) -> TherapyProfile:
        """Return the configured therapy profile."""


class DoseSink(ABC):
    """
    Receives the outcome of a bolus-entry session.

    Exactly one of ``accept`` or ``decline`` is called per confirmed session.
    """

    @abstractmethod
    def accept(self, dose: AcceptedDose) -> None:
        """Deliver or log the confirmed dose."""

    @abstractmethod
    def decline(self, meal_id: Optional[str]) -> None:
        """The operator chose to continue without a bolus."""


def build_snapshot(
    glucose_source: GlucoseSource,
    estimator: InsulinCarbEstimator,
    meal_resolver: Optional[MealResolver] = None,
    meal_id: Optional[str] = None,
    fatty_meal_selected: bool = False,
) -> ClinicalSnapshot:
    """Assemble a snapshot from the collaborators at the moment of calculation."""
    reading = glucose_source.current()
    totals = estimator.current()
    meal = MealEntry()
    if meal_id is not None and meal_resolver is not None:
        meal = meal_resolver.resolve(meal_id) or MealEntry()
    return ClinicalSnapshot(
        current_glucose=reading.glucose,
        glucose_delta=reading.delta,
        insulin_on_board=totals.insulin_on_board,
        carbs_on_board=totals.carbs_on_board,
        meal_carbs=meal.carbs,
        meal_fat=meal.fat,
        meal_protein=meal.protein,
        fatty_meal_selected=fatty_meal_selected,
        glucose_unit=reading.unit,
        meal_id=meal_id,
        meal_note=meal.note,
    )


__all__ = [
    "MealEntry",
    "GlucoseReading",
    "ActiveTotals",
    "AcceptedDose",
    "MealResolver",
    "GlucoseSource",
    "InsulinCarbEstimator",
    "TherapyStore",
    "DoseSink",
    "build_snapshot",
]
