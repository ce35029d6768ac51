from pathlib import Path
import sys

import pytest

project_root = Path(__file__).resolve().parents[1]
src_path = project_root / "src"

if src_path.exists():
    sys.path.insert(0, str(src_path))

from dosecalc.api.collaborators import DoseSink  # noqa: E402
from dosecalc.core.profile import TherapyProfile  # noqa: E402
from dosecalc.core.snapshot import ClinicalSnapshot  # noqa: E402


class RecordingSink(DoseSink):
    def __init__(self):
        self.accepted = []
        self.declined = []

    def accept(self, dose):
        self.accepted.append(dose)

    def decline(self, meal_id):
        self.declined.append(meal_id)


@pytest.fixture
def profile() -> TherapyProfile:
    return TherapyProfile(
        carb_ratio=10,
        insulin_sensitivity_factor=50,
        target_glucose=100,
        basal_rate=0.8,
        bolus_fraction=1.0,
        fatty_meal_factor=0.7,
        max_bolus=10,
    )


@pytest.fixture
def snapshot() -> ClinicalSnapshot:
    return ClinicalSnapshot(
        current_glucose=180,
        glucose_delta=0,
        insulin_on_board=1.0,
        carbs_on_board=20,
        meal_carbs=20,
        meal_id="meal-1",
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
