from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

from dosecalc.core.calculator import DoseBreakdown
from dosecalc.core.profile import TherapyProfile
from dosecalc.core.safety.clamp import ClampDecision
from dosecalc.core.snapshot import ClinicalSnapshot


@dataclass
class CalculationRecord:
    """One calculation with the exact inputs that produced it."""
    sequence: int
    profile: Dict[str, Any]
    snapshot: Dict[str, Any]
    breakdown: Dict[str, Any]
    decision: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.now)

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"sequence": self.sequence, "timestamp": self.timestamp.isoformat()}
        row.update({f"profile_{k}": v for k, v in self.profile.items()})
        row.update({f"snapshot_{k}": v for k, v in self.snapshot.items()})
        row.update({k: v for k, v in self.breakdown.items() if k != "sequence"})
        row.update({f"clamp_{k}": v for k, v in self.decision.items()})
        return row


class AuditTrail:
    """Append-only record of every calculation in a session."""

    def __init__(self) -> None:
        self.records: List[CalculationRecord] = []

    def record(
        self,
        profile: TherapyProfile,
        snapshot: ClinicalSnapshot,
        breakdown: DoseBreakdown,
        decision: ClampDecision,
    ) -> CalculationRecord:
        entry = CalculationRecord(
            sequence=breakdown.sequence,
            profile=profile.to_dict(),
            snapshot=snapshot.to_dict(),
            breakdown=breakdown.to_dict(),
            decision=decision.to_dict(),
        )
        self.records.append(entry)
        return entry

    def __len__(self) -> int:
        return len(self.records)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([record.to_row() for record in self.records])

    def export(self, output_dir: Path) -> Dict[str, str]:
        output_dir.mkdir(parents=True, exist_ok=True)
        json_path = output_dir / "calculations.json"
        csv_path = output_dir / "calculations.csv"
        json_path.write_text(json.dumps([record.to_row() for record in self.records], indent=2))
        self.to_dataframe().to_csv(csv_path, index=False)
        return {"json": str(json_path), "csv": str(csv_path)}
