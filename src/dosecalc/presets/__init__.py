"""Built-in therapy profile presets."""

from __future__ import annotations

import json
from importlib.resources import files
from typing import Any, Dict, List

from dosecalc.core.profile import TherapyProfile
from dosecalc.validation import validate_profile_dict


def load_presets() -> List[Dict[str, Any]]:
    content = files("dosecalc.presets").joinpath("presets.json").read_text()
    return json.loads(content)


def get_preset(name: str) -> Dict[str, Any]:
    presets = load_presets()
    for preset in presets:
        if preset.get("name") == name:
            return preset
    raise KeyError(name)


def get_preset_profile(name: str) -> TherapyProfile:
    return validate_profile_dict(get_preset(name)["profile"])


__all__ = ["load_presets", "get_preset", "get_preset_profile"]
