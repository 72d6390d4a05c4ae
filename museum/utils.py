import json
import logging
import re
from typing import Any, List, Optional

import commentjson
import yaml
from json_repair import repair_json
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from museum.entities import User, UserModifiedObject, UserObject
from museum.errors import NotFoundError

logger = logging.getLogger("museum_backend")


class Utils():
    SessionFactory = None

    def color_print(self, text, color=None):
        COLOR_CODES = {
            'black': '30', 'red': '31', 'green': '32', 'yellow': '33', 'blue': '34', 'magenta': '35',
            'cyan': '36', 'white': '37', 'bright_black': '90', 'bright_red': '91', 'bright_green': '92',
            'bright_yellow': '93', 'bright_blue': '94', 'bright_magenta': '95', 'bright_cyan': '96', 'bright_white': '97'
        }
        if color and color.lower() in COLOR_CODES:
            color_code = COLOR_CODES[color.lower()]
            start = f"\033[{color_code}m"
            end = "\033[0m"
            text = f"{start}{text}{end}"
        logger.info(str(text))
        return False

    def clean_triple_backticks(self, code) -> str:
        pattern = r'```[a-zA-Z]*\n?|```\n?'
        return re.sub(pattern, '', code)

    def load_fault_tolerant_json(self, json_str, llm=None):
        """
        Attempts to load a JSON-like string: commentjson first, then pyyaml, then json_repair.
        An optional text generator gets one chance to fix the document.
        Raises ValueError when everything fails.
        """
        def remove_comments(input_str):
            return re.sub(r'^\s*//.*?$|/\*.*?\*/', '', input_str, flags=re.MULTILINE | re.DOTALL)

        def load_json(candidate):
            err = ""
            try:
                data = commentjson.loads(self.clean_triple_backticks(candidate))
                if isinstance(data, (dict, list)):
                    return data, ""
                err = "JSON parsing did not produce a document"
            except Exception as e:
                err = str(e)
            try:
                data = yaml.safe_load(remove_comments(self.clean_triple_backticks(candidate)))
                if isinstance(data, (dict, list)):
                    return data, ""
                err += "\n--\nYAML parsing did not produce a document"
            except yaml.YAMLError as e:
                err += "\n--\n" + str(e)
            return None, err

        data, err = load_json(json_str)
        if data:
            return data
        repaired = repair_json(self.clean_triple_backticks(json_str))
        r_data, r_err = load_json(repaired)
        if r_data:
            return r_data
        if llm is not None:
            self.color_print(f"load_fault_tolerant_json: JSON parsing failed: {r_err}. \nTrying LLM recovery...", color="red")
            prompt = (
                "Fix the following so it is a single valid JSON document. "
                "Return only the JSON, nothing else.\n\n" + json_str
            )
            r_data, r_err = load_json(llm.generate_text(prompt))
            if r_data:
                return r_data
        raise ValueError(f"load_fault_tolerant_json: JSON parsing failed: {r_err} \n- Original JSON: {json_str}")

    def extract_last_json_object(self, text: str) -> Optional[dict]:
        """
        Scans for balanced {...} substrings and returns the last one that parses as a JSON object.
        Model commentary before or after the payload is ignored.
        """
        if not text:
            return None
        found = None
        depth = 0
        start = -1
        in_string = False
        escaped = False
        for i, ch in enumerate(text):
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"' and depth > 0:
                in_string = True
            elif ch == "{":
                if depth == 0:
                    start = i
                depth += 1
            elif ch == "}" and depth > 0:
                depth -= 1
                if depth == 0:
                    candidate = text[start:i + 1]
                    try:
                        parsed = json.loads(candidate)
                    except ValueError:
                        parsed = None
                    if isinstance(parsed, dict):
                        found = parsed
                    start = -1
        return found

    def coerce_field_to_str(self, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        try:
            return json.dumps(value, ensure_ascii=False)
        except TypeError:
            return str(value).strip()

    def unsafe_string_format(self, dest_string, print_unused_keys_report=True, **kwargs):
        """
        Formats a destination string by replacing placeholders with corresponding values from kwargs.

        it works differently from the standard "format" method as instead of looking for all the potential keys,
        looks only for the keys as passed in kwargs (JSON braces in prompts stay untouched)
        """
        missing_keys = []

        def replacer(match):
            key = match.group(1)
            if key in kwargs:
                return str(kwargs[key])
            missing_keys.append(key)
            return match.group(0)

        pattern = re.compile(r'\{(\w+)\}')
        result = pattern.sub(replacer, dest_string)
        if missing_keys and print_unused_keys_report:
            logger.debug(f"Missing keys within string-to-format in unsafe_string_format: {', '.join(missing_keys)}")
        return result

    # -----------------------
    # Image variants
    # -----------------------

    def snapshot_variant(self, variant: dict) -> dict:
        """Copy of an image variant without its identifier."""
        return {k: v for k, v in (variant or {}).items() if k not in ("id", "_id")}

    def snapshot_variants(self, variants: list) -> list:
        return [self.snapshot_variant(v) for v in variants or []]

    # -----------------------
    # Profile persistence
    # -----------------------

    def get_user_or_raise(self, session: Session, user_id: str) -> User:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def modified_ids_for(self, session: Session, user_id: str) -> List[str]:
        rows = session.execute(
            select(UserModifiedObject.modified_object_id)
            .where(UserModifiedObject.user_id == user_id)
            .order_by(UserModifiedObject.position)
        ).scalars().all()
        return list(rows)

    def object_ids_for(self, session: Session, user_id: str) -> List[str]:
        rows = session.execute(
            select(UserObject.object_id)
            .where(UserObject.user_id == user_id)
            .order_by(UserObject.position)
        ).scalars().all()
        return list(rows)

    def owns_modified(self, session: Session, user_id: str, modified_id: str) -> bool:
        row = session.execute(
            select(UserModifiedObject.position).where(
                UserModifiedObject.user_id == user_id,
                UserModifiedObject.modified_object_id == modified_id,
            )
        ).first()
        return row is not None

    def append_modified_ids(self, session: Session, user_id: str, modified_ids: List[str]) -> None:
        session.add_all([UserModifiedObject(user_id=user_id, modified_object_id=mid) for mid in modified_ids])

    def remove_modified_id(self, session: Session, user_id: str, modified_id: str) -> None:
        session.execute(
            delete(UserModifiedObject).where(
                UserModifiedObject.user_id == user_id,
                UserModifiedObject.modified_object_id == modified_id,
            )
        )
