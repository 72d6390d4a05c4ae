import logging
from typing import Dict, List

from museum.errors import MuseumError, ValidationError
from museum.llm_client import TextGenerator
from museum.theme_catalog import ThemeCatalog
from museum.theme_prompts import (
    THEME_ANALYSIS_SYSTEM_PROMPT,
    THEME_ANALYSIS_USER_PROMPT,
    THEME_LIST_ENTRY,
)
from museum.utils import Utils

logger = logging.getLogger("museum_backend")

REQUIRED_RESPONSES = 5
ANALYSIS_TEMPERATURE = 0.7

# keyword -> theme scoring used when the model answer is unusable
FALLBACK_KEYWORDS: Dict[int, List[str]] = {
    1: ["가족", "따뜻", "순수"],
    2: ["사랑", "감성", "예술"],
    3: ["성공", "열정", "성장"],
    4: ["자연", "평화", "단순"],
    5: ["추억", "기억", "그리움"],
}

FALLBACK_REASONS: Dict[int, str] = {
    1: "따뜻한 마음을 간직한 당신에게는, 이 테마가 잘 어울릴 것 같아요.",
    2: "감성이 풍부한 당신에게는, 이 테마가 잘 어울릴 것 같아요.",
    3: "열정적이고 진취적인 당신에게는, 이 테마가 잘 어울릴 것 같아요.",
    4: "평온함을 추구하는 당신에게는, 이 테마가 잘 어울릴 것 같아요.",
    5: "소중한 추억을 간직한 당신에게는, 이 테마가 잘 어울릴 것 같아요.",
}


class ThemeAnalysisService(Utils):
    """
    Recommends one of the five themes from the onboarding answers.
    """

    def __init__(self, text_generator: TextGenerator, catalog: ThemeCatalog):
        self.text_generator = text_generator
        self.catalog = catalog
        self._system_prompt = self.unsafe_string_format(
            THEME_ANALYSIS_SYSTEM_PROMPT,
            THEME_LIST="\n".join(
                self.unsafe_string_format(
                    THEME_LIST_ENTRY,
                    THEME_ID=t.id,
                    THEME_NAME=t.name,
                    CHARACTERISTICS=", ".join(t.characteristics),
                    DESCRIPTION=t.description,
                )
                for t in catalog.all()
            ),
        )

    def analyze_responses(self, responses: List[dict]) -> dict:
        """
        Returns {"choice": 1..5, "reason": str}. A failed or malformed model answer falls back
        to keyword scoring; only bad input raises.
        """
        if not responses or len(responses) != REQUIRED_RESPONSES:
            raise ValidationError(f"Exactly {REQUIRED_RESPONSES} onboarding responses are required")
        for r in responses:
            if not str(r.get("question") or "").strip() or not str(r.get("answer") or "").strip():
                raise ValidationError("Each response must have both question and answer fields")

        answers_text = "\n\n".join(
            f"Q{i + 1}: {r['question']}\nA{i + 1}: {r['answer']}" for i, r in enumerate(responses)
        )
        prompt = self.unsafe_string_format(THEME_ANALYSIS_USER_PROMPT, RESPONSES=answers_text)
        try:
            raw = self.text_generator.generate_text(
                prompt,
                system_prompt=self._system_prompt,
                temperature=ANALYSIS_TEMPERATURE,
                json_mode=True,
            )
            return self._parse_analysis(raw)
        except (MuseumError, ValueError) as e:
            logger.warning(f"[ANALYSIS] model analysis unusable, falling back to keywords: {e}")
            return self.fallback_analysis(responses)

    def _parse_analysis(self, raw: str) -> dict:
        data = self.load_fault_tolerant_json(raw, llm=self.text_generator)
        if not isinstance(data, dict):
            raise ValueError("Analysis response is not an object")
        try:
            choice = int(data.get("choice"))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid theme choice: {data.get('choice')!r}") from e
        reason = self.coerce_field_to_str(data.get("reason"))
        if self.catalog.get(choice) is None:
            raise ValueError(f"Theme choice out of range: {choice}")
        if not reason:
            raise ValueError("Analysis response has no reason")
        return {"choice": choice, "reason": reason}

    def fallback_analysis(self, responses: List[dict]) -> dict:
        all_answers = " ".join(str(r.get("answer", "")).lower() for r in responses)
        scores = {theme_id: 0 for theme_id in FALLBACK_KEYWORDS}
        for theme_id, keywords in FALLBACK_KEYWORDS.items():
            if any(k in all_answers for k in keywords):
                scores[theme_id] += 2
        # ties go to the later theme
        best = max(sorted(scores), key=lambda t: (scores[t], t))
        return {"choice": best, "reason": FALLBACK_REASONS[best]}

    def theme_info(self, theme_id: int) -> dict:
        config = self.catalog.get(theme_id) or self.catalog.get(1)
        return config.info()
