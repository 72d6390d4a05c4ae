# museum/model_props.py
from typing import Any, Dict, Optional, Tuple

#! MODEL FAMILIES

OPENAI_TEXT_PREFIXES = ("gpt-", "gpt4", "o1", "o3", "o4")
OPENAI_IMAGE_PREFIXES = ("dall-e", "gpt-image")
# reasoning models reject sampling parameters
NO_TEMPERATURE_PREFIXES = ("o1", "o3", "o4", "gpt-5")


def is_openai_model(model_name) -> bool:
    # keep it simple; adjust if you start using exotic names
    return any(model_name.startswith(p) for p in OPENAI_TEXT_PREFIXES)


def is_openai_image_model(model_name) -> bool:
    return any(model_name.startswith(p) for p in OPENAI_IMAGE_PREFIXES)


def supports_temperature(model_name: str) -> bool:
    return not any(model_name.startswith(p) for p in NO_TEMPERATURE_PREFIXES)


def parse_model_name(raw: str) -> Tuple[str, Dict[str, Any]]:
    """Parse strings like:
        - 'gpt-4o-mini'
        - 'gpt-5.1_low_low'
        - 'gpt-5.1_fast'
    into (base_model, openai_params).
    The first suffix token is verbosity, the second reasoning effort, unless a preset name is used.
    """
    raw = (raw or "").strip()
    if not raw:
        raise ValueError("parse_model_name: No Model Name passed. ")

    parts = raw.split("_")
    base = parts[0]
    if len(parts) <= 1:
        return base, {}

    verbosity: Optional[str] = None
    reasoning_effort: Optional[str] = None

    verbosity_tokens = {"low", "medium", "high"}
    reasoning_tokens = {"none", "minimal", "low", "medium", "high"}

    presets: Dict[str, Tuple[str, str]] = {
        "standard": ("low", "low"),
        "fast": ("low", "none"),
        "deep": ("medium", "high"),
    }

    unknown = []
    for tok in parts[1:]:
        t = tok.strip().lower()
        if not t:
            continue
        if t in presets:
            p_verb, p_reason = presets[t]
            verbosity = verbosity or p_verb
            reasoning_effort = reasoning_effort or p_reason
            continue
        if verbosity is None and t in verbosity_tokens:
            verbosity = t
            continue
        if reasoning_effort is None and t in reasoning_tokens:
            reasoning_effort = t
            continue
        unknown.append(t)

    if unknown:
        raise ValueError(f"parse_model_name: Unknown model suffix token(s) {unknown} in '{raw}'. ")

    params: Dict[str, Any] = {}
    if verbosity is not None:
        params.setdefault("text", {})["verbosity"] = verbosity
    if reasoning_effort is not None:
        params.setdefault("reasoning", {})["effort"] = reasoning_effort
    return base, params
