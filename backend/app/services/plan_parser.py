"""
Turn a coach's free-text week ("Mon: practice 4:45-5:45, LS: 5x200m ...") into a ParsedPlan with Gemini.
The engine only consumes the ParsedPlan contract; this module is the adapter in front of it.
"""
from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError as PydanticValidationError

from app.config import settings
from app.schemas.plan import ParsedPlan
from app.services.gemini_common import get_model, run_generate_content

logger = logging.getLogger(__name__)

GENERATION_CONFIG = {
    "temperature": 0.1,
    "max_output_tokens": 4096,
    "response_mime_type": "application/json",
}

PLAN_PARSE_PROMPT = """You convert a team's weekly training plan, written by a coach, into JSON.

Rules:
1. Each weekday mentioned (Sunday..Saturday) is one entry in "days"; skip days that are not mentioned.
2. A day written as "Off" (or with no training) has "isOffDay": true and no sessions.
3. Session "type" is one of: practice, lift, conditioning, recovery, competition, optional.
   "Lift"/"Lifting" is lift; anything marked optional is optional with "isOptional": true; default practice.
4. Times go in "startTime"/"endTime" as 24h "HH:MM" (afternoon practice "4:45-5:45" is 16:45-17:45).
5. Locations ("in PWG", "at the track") go in "location".
6. Event-group prefixes ("LS:", "SS:", "Hurdles:", "Jumps:", "Throws:", "Distance:", "Multis:",
   "(hurdlers do X)") mark group-specific work. Put the group reference exactly as the coach wrote it
   into "forGroups" on the exercise, or on the session when the whole session is for that group.
   "forGroups": null means everyone.
7. Keep workout notation verbatim in "details" (e.g. "5x200m 84% 5m rest (25.0-26.2)").

Output ONLY this JSON shape:
{
  "days": [
    {
      "dayOfWeek": "monday",
      "isOffDay": false,
      "sessions": [
        {
          "type": "practice",
          "title": null,
          "startTime": "16:45",
          "endTime": "17:45",
          "location": null,
          "isOptional": false,
          "forGroups": null,
          "exercises": [
            {"name": "Warmup, flat strides", "details": null, "forGroups": null},
            {"name": "Speed Work", "details": "5x200m 84% 5m rest", "forGroups": ["LS"]}
          ]
        }
      ]
    }
  ],
  "detectedGroups": ["LS"],
  "scheduleInfo": {"practiceTime": "4:45-5:45", "liftTime": null, "location": null}
}"""

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class PlanParseError(ValueError):
    pass


def parse_plan_json(text: str) -> ParsedPlan:
    """Decode model output into a ParsedPlan, tolerating code fences, surrounding prose and trailing commas."""
    raw = (text or "").strip()
    if raw.startswith("```"):
        raw = raw.split("\n", 1)[-1].rsplit("```", 1)[0].strip()
    match = _JSON_OBJECT.search(raw)
    if not match:
        raise PlanParseError("No JSON object in parser response")
    candidate = match.group(0)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            data = json.loads(re.sub(r",\s*([}\]])", r"\1", candidate))
        except json.JSONDecodeError as e:
            logger.warning("plan_parser: invalid JSON from model (first 500 chars): %s", candidate[:500])
            raise PlanParseError("Could not read the parsed plan") from e
    if not isinstance(data, dict) or not isinstance(data.get("days"), list):
        raise PlanParseError("Invalid plan structure: missing days array")
    try:
        return ParsedPlan.model_validate(data)
    except PydanticValidationError as e:
        raise PlanParseError(f"Invalid plan structure: {e.error_count()} field error(s)") from e


async def parse_plan_text(text: str) -> ParsedPlan:
    """Send plan text to Gemini and return the structured plan. Raises PlanParseError on empty or unusable output."""
    body = (text or "").strip()
    if not body:
        raise PlanParseError("No plan text provided")
    if len(body) > settings.plan_text_max_chars:
        logger.warning(
            "plan_parser: text of %s chars truncated to %s", len(body), settings.plan_text_max_chars
        )
        body = body[: settings.plan_text_max_chars]
    model = get_model(GENERATION_CONFIG, system_instruction=PLAN_PARSE_PROMPT)
    response = await run_generate_content(model, f"Parse this training plan:\n\n{body}")
    if not response or not getattr(response, "text", None):
        raise PlanParseError("Empty response from Gemini")
    plan = parse_plan_json(response.text)
    logger.info("plan_parser: parsed %s days, groups=%s", len(plan.days), plan.detected_groups)
    return plan
