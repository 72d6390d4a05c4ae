# museum/theme_catalog.py
import copy
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import commentjson

logger = logging.getLogger("museum_backend")

PLACEHOLDER_PREFIX = "PLACEHOLDER_"


@dataclass(frozen=True)
class ThemeTemplate:
    original_object_id: str
    x: float
    y: float
    is_reversed: bool = False
    interaction_behavior: Optional[str] = None
    freeform_payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_placeholder(self) -> bool:
        return self.original_object_id.startswith(PLACEHOLDER_PREFIX)


@dataclass(frozen=True)
class ThemeConfig:
    id: int
    name: str
    characteristics: List[str]
    description: str
    floor_color: str
    left_wall_color: str
    right_wall_color: str
    weather: str
    music_name: str
    music_url: str
    default_objects: List[ThemeTemplate] = field(default_factory=list)

    @property
    def colors(self) -> Dict[str, str]:
        return {
            "floorColor": self.floor_color,
            "leftWallColor": self.left_wall_color,
            "rightWallColor": self.right_wall_color,
        }

    @property
    def background_music(self) -> Dict[str, str]:
        return {"name": self.music_name, "url": self.music_url}

    def theme_state(self) -> Dict[str, Any]:
        return {**self.colors, "weather": self.weather, "backgroundMusic": self.background_music}

    def info(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "characteristics": list(self.characteristics),
            "description": self.description,
        }


def _placeholder_templates(theme_id: int, first=(0.75, 0.4), second=(0.3, 0.35)) -> List[ThemeTemplate]:
    # real catalog ids get filled in through THEME_TEMPLATES_PATH once content is ready
    return [
        ThemeTemplate(f"{PLACEHOLDER_PREFIX}OBJECT_ID_{theme_id}_1", first[0], first[1]),
        ThemeTemplate(f"{PLACEHOLDER_PREFIX}OBJECT_ID_{theme_id}_2", second[0], second[1]),
    ]


DEFAULT_THEMES: Dict[int, ThemeConfig] = {
    1: ThemeConfig(
        id=1,
        name="동심파",
        characteristics=["순수함", "가족애", "따뜻함"],
        description="어린 시절의 추억과 가족과의 유대감을 중시하는 따뜻하고 순수한 마음",
        floor_color="#F5E6D3",
        left_wall_color="#FFE4E1",
        right_wall_color="#FFF0F5",
        weather="sunny",
        music_name="동심의 오후",
        music_url="/music/theme-1.mp3",
        default_objects=_placeholder_templates(1),
    ),
    2: ThemeConfig(
        id=2,
        name="낭만파",
        characteristics=["감성", "예술", "사랑"],
        description="감성적이고 예술적인 표현을 통해 사랑과 낭만을 삶의 중요한 가치로 여기는 성향",
        floor_color="#E8D5E0",
        left_wall_color="#F3E5F5",
        right_wall_color="#EDE7F6",
        weather="sunset",
        music_name="노을 아래 왈츠",
        music_url="/music/theme-2.mp3",
        default_objects=_placeholder_templates(2, first=(0.85, 0.2)),
    ),
    3: ThemeConfig(
        id=3,
        name="도시파",
        characteristics=["자립심", "열정", "세련됨"],
        description="주체적이고 열정적인 태도로 현대적이고 세련된 감각을 추구하며 성취를 중시하는 성향",
        floor_color="#D6D6D6",
        left_wall_color="#ECEFF1",
        right_wall_color="#CFD8DC",
        weather="night",
        music_name="도시의 밤",
        music_url="/music/theme-3.mp3",
        default_objects=_placeholder_templates(3),
    ),
    4: ThemeConfig(
        id=4,
        name="자연파",
        characteristics=["자연", "소박함", "평온함"],
        description="복잡함보다는 단순함을 추구하며 자연 속에서의 평화와 여유로운 삶을 지향하는 성향",
        floor_color="#D7E4C0",
        left_wall_color="#E8F5E9",
        right_wall_color="#F1F8E9",
        weather="raining",
        music_name="숲의 빗소리",
        music_url="/music/theme-4.mp3",
        default_objects=_placeholder_templates(4),
    ),
    5: ThemeConfig(
        id=5,
        name="기억파",
        characteristics=["추억", "그리움", "연결"],
        description="과거의 인연을 소중히 여기고 깊은 그리움과 사람 간의 연결을 강조하는 성향",
        floor_color="#E0D4C3",
        left_wall_color="#EFEBE9",
        right_wall_color="#D7CCC8",
        weather="snowing",
        music_name="첫눈의 기억",
        music_url="/music/theme-5.mp3",
        default_objects=_placeholder_templates(5),
    ),
}


class ThemeCatalog:
    """
    Read-only map of theme id -> ThemeConfig.
    """

    MIN_THEME_ID = 1
    MAX_THEME_ID = 5

    def __init__(self, themes: Optional[Dict[int, ThemeConfig]] = None):
        self._themes: Dict[int, ThemeConfig] = dict(themes if themes is not None else DEFAULT_THEMES)

    def get(self, theme_id: int) -> Optional[ThemeConfig]:
        return self._themes.get(theme_id)

    def all(self) -> List[ThemeConfig]:
        return [self._themes[k] for k in sorted(self._themes)]

    def templates(self, theme_id: int) -> Optional[List[ThemeTemplate]]:
        config = self._themes.get(theme_id)
        return list(config.default_objects) if config else None

    def is_ready(self, theme_id: int) -> bool:
        """A theme with no templates, or any placeholder template, is not ready for provisioning."""
        templates = self.templates(theme_id)
        if not templates:
            return False
        return not any(t.is_placeholder for t in templates)

    def with_templates(self, overrides: Dict[int, List[ThemeTemplate]]) -> "ThemeCatalog":
        themes = dict(self._themes)
        for theme_id, templates in overrides.items():
            if theme_id not in themes:
                raise ValueError(f"Theme templates given for unknown theme {theme_id}")
            base = themes[theme_id]
            themes[theme_id] = replace(base, default_objects=list(templates))
        return ThemeCatalog(themes)


def _template_from_dict(raw: Dict[str, Any]) -> ThemeTemplate:
    coords = raw.get("coordinates") or {}
    if not raw.get("originalObjectId"):
        raise ValueError("Theme template is missing originalObjectId")
    if "x" not in coords or "y" not in coords:
        raise ValueError(f"Theme template {raw['originalObjectId']} is missing coordinates")
    return ThemeTemplate(
        original_object_id=str(raw["originalObjectId"]),
        x=float(coords["x"]),
        y=float(coords["y"]),
        is_reversed=bool(raw.get("isReversed", False)),
        interaction_behavior=raw.get("itemFunction"),
        freeform_payload=copy.deepcopy(raw.get("additionalData") or {}),
    )


def load_theme_catalog(path: str = "") -> ThemeCatalog:
    """
    Built-in themes, with default-object templates replaced from a JSON-with-comments file:
        { "3": [ {"originalObjectId": "...", "coordinates": {"x": 0.7, "y": 0.4}, "itemFunction": null} ] }
    Fails fast if the file is configured but missing or malformed.
    """
    catalog = ThemeCatalog()
    if not path:
        return catalog

    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(f"Theme templates file not found at '{cfg_path}'. ")

    with cfg_path.open("r", encoding="utf-8") as f:
        data = commentjson.load(f)
    if not isinstance(data, dict):
        raise ValueError("Theme templates file must be an object keyed by theme id")

    overrides = {int(k): [_template_from_dict(t) for t in v] for k, v in data.items()}
    logger.info(f"[THEMES] Loaded templates for themes {sorted(overrides)} from {cfg_path}")
    return catalog.with_templates(overrides)
