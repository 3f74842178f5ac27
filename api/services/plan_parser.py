"""
Parsers for the planning call's design concepts.

Two response formats are supported and chosen by configuration, each with its
own strategy class:

- "json": a JSON object with a "designs" array, possibly wrapped in a code
  fence or surrounded by prose. The object is taken from the first "{" to the
  last "}" of the text.
- "delimited": plain text with numbered markers, one title and one description
  per concept:

      ##T1##
      Modern Minimalist
      ##D1##
      Clean lines, ...
      ##T2##
      ...

Strategies return ParsedPlans or ParseFailure; parse_design_plans() turns a
failure into PlanParseError.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from core.exceptions import PlanParseError
from services.staging_models import DesignPlan

logger = logging.getLogger(__name__)

JSON_FORMAT = "json"
DELIMITED_FORMAT = "delimited"


@dataclass(frozen=True)
class ParsedPlans:
    plans: List[DesignPlan]


@dataclass(frozen=True)
class ParseFailure:
    reason: str


PlanParseResult = Union[ParsedPlans, ParseFailure]


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Parse the substring between the first "{" and the last "}".

    Returns None when there is no such substring or it is not a JSON object.
    """
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        value = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        logger.debug(f"Embedded JSON did not parse: {e}")
        return None
    return value if isinstance(value, dict) else None


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class JsonPlanParser:
    """Reads {"designs": [{"title", "description", "imagePrompt"?}, ...]}."""

    format_name = JSON_FORMAT

    def parse(self, text: str, expected_count: int) -> PlanParseResult:
        data = extract_json_object(text)
        if data is None:
            return ParseFailure("no JSON object found in the response")

        designs = data.get("designs")
        if not isinstance(designs, list):
            return ParseFailure("JSON object has no 'designs' array")
        if len(designs) != expected_count:
            return ParseFailure(f"expected {expected_count} designs, got {len(designs)}")

        plans = []
        for index, entry in enumerate(designs, start=1):
            if not isinstance(entry, dict):
                return ParseFailure(f"design {index} is not an object")
            title = _clean(entry.get("title"))
            description = _clean(entry.get("description"))
            if not title or not description:
                return ParseFailure(f"design {index} is missing a title or description")
            image_prompt = _clean(entry.get("imagePrompt") or entry.get("image_prompt")) or None
            plans.append(DesignPlan(title=title, description=description, image_prompt=image_prompt))
        return ParsedPlans(plans)


class DelimitedPlanParser:
    """Reads ##Tn## / ##Dn## marker pairs."""

    format_name = DELIMITED_FORMAT

    TITLE_MARKER = re.compile(r"##T(\d+)##")
    DESCRIPTION_MARKER = re.compile(r"##D(\d+)##")

    def parse(self, text: str, expected_count: int) -> PlanParseResult:
        if not text:
            return ParseFailure("empty response")

        numbers = sorted({int(n) for n in self.TITLE_MARKER.findall(text)})
        if not numbers:
            return ParseFailure("no ##T1## style markers found in the response")
        if numbers != list(range(1, expected_count + 1)):
            return ParseFailure(f"expected design markers 1..{expected_count}, found {numbers}")
        description_numbers = sorted({int(n) for n in self.DESCRIPTION_MARKER.findall(text)})
        if description_numbers != numbers:
            return ParseFailure(f"description markers {description_numbers} do not match title markers {numbers}")

        plans = []
        for n in range(1, expected_count + 1):
            title_match = re.search(rf"##T{n}##\s*(.*?)\s*##D{n}##", text, re.DOTALL)
            description_match = re.search(rf"##D{n}##\s*(.*?)\s*(?=##[TD]\d+##|\Z)", text, re.DOTALL)
            title = title_match.group(1).strip() if title_match else ""
            description = description_match.group(1).strip() if description_match else ""
            if not title or not description:
                return ParseFailure(f"design {n} is missing a title or description")
            plans.append(DesignPlan(title=title, description=description))
        return ParsedPlans(plans)


PLAN_PARSERS = {
    JSON_FORMAT: JsonPlanParser,
    DELIMITED_FORMAT: DelimitedPlanParser,
}


def get_plan_parser(plan_format: str):
    """Parser strategy for a configured response format."""
    try:
        return PLAN_PARSERS[plan_format]()
    except KeyError:
        raise ValueError(f"Unknown plan format '{plan_format}', expected one of {sorted(PLAN_PARSERS)}") from None


def parse_design_plans(text: str, expected_count: int, plan_format: str = JSON_FORMAT) -> List[DesignPlan]:
    """Parse exactly expected_count design plans or raise PlanParseError."""
    result = get_plan_parser(plan_format).parse(text, expected_count)
    if isinstance(result, ParseFailure):
        logger.error(f"Failed to parse {plan_format} design plans: {result.reason}. Response: {text[:500]!r}")
        raise PlanParseError(
            f"Could not parse the design concepts from the model's response ({result.reason})."
        )
    return result.plans
