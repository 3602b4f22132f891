"""Load prompt templates from the packaged YAML file."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict

import yaml

logger = logging.getLogger(__name__)

PROMPTS_PATH = Path(__file__).parent / "prompts" / "rfp_flows.yaml"


@lru_cache(maxsize=None)
def _load_all(path: Path = PROMPTS_PATH) -> Dict[str, Dict[str, str]]:
    if not path.exists():
        raise FileNotFoundError(f"Could not find prompt file: {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    prompts = data.get("prompts") or {}
    logger.info(f"Loaded {len(prompts)} prompt(s) from {path.name} (version {data.get('version')})")
    return prompts


def load_prompt(name: str) -> str:
    """Return the user template for the named flow."""
    prompts = _load_all()
    entry = prompts.get(name)
    if not entry or "user_template" not in entry:
        raise KeyError(f"Prompt '{name}' not found in {PROMPTS_PATH.name}. Available: {sorted(prompts)}")
    return entry["user_template"]
