"""
Model-backed command interpreter.

Turns a free-form command into an InterpretationResult by asking Gemini to
route it, treating the model's text as untrusted input:

1. No Gemini key → heuristic result, no request made
2. One completion request (no retries)
3. First '{' .. last '}' parsed as JSON and validated into a tagged ParseOutcome
4. Any failure (transport, parsing, validation) → heuristic result

The policy is an ordered chain of strategies; each returns a result or None
and the first result wins. The heuristic strategy is total, so the chain
always produces an answer.
"""
import json
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from mailassist.config import get_settings
from mailassist.integrations.gemini_client import complete
from mailassist.models.assistant import (
    ALLOWED_ACTIONS,
    Action,
    CriterionField,
    DeleteCriterion,
    InterpretationResult,
    ResultSource,
)
from mailassist.services.heuristics import classify
from mailassist.utils.errors import AIError
from mailassist.utils.logger import get_logger

logger = get_logger(__name__)

Strategy = Callable[[str], Awaitable[Optional[InterpretationResult]]]


ROUTER_PROMPT = """You are an AI email assistant command router. A user will type a natural language command about their email.

Your job is to classify the command into one of these actions:
- "fetch_latest": user wants to read or see their most recent emails.
- "delete_email": user wants to delete or remove one or more emails.
- "help": user is asking for help or what commands are available.
- "draft_reply": user wants help drafting or sending a reply.
- "unknown": anything else that does not clearly match.

If the action is "delete_email", you MAY also infer structured delete parameters:
- deleteParams.keyword: a short keyword or phrase to match emails.
- deleteParams.field: either "subject" or "from".

Return STRICTLY a single JSON object of this shape (no extra keys, no explanation text):
{{
  "action": "fetch_latest" | "delete_email" | "help" | "draft_reply" | "unknown",
  "deleteParams"?: {{
    "keyword": string,
    "field": "subject" | "from"
  }}
}}

User command: "{command}"
"""


def build_router_prompt(command: str) -> str:
    """Embed the command in the fixed routing prompt."""
    return ROUTER_PROMPT.format(command=command)


# =============================================================================
# MODEL OUTPUT VALIDATION
# =============================================================================

@dataclass
class ParseOutcome:
    """Tagged result of validating model output."""
    ok: bool
    result: Optional[InterpretationResult] = None
    error: str = ""

    @classmethod
    def success(cls, result: InterpretationResult) -> "ParseOutcome":
        return cls(ok=True, result=result)

    @classmethod
    def failure(cls, error: str) -> "ParseOutcome":
        return cls(ok=False, error=error)


def extract_json_object(text: str) -> Optional[str]:
    """Return the substring from the first '{' to the last '}', if well ordered."""
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last <= first:
        return None
    return text[first:last + 1]


def _validate_action(raw) -> Action:
    if isinstance(raw, str) and raw in ALLOWED_ACTIONS:
        return Action(raw)
    return Action.UNKNOWN


def _validate_delete_params(raw) -> Optional[DeleteCriterion]:
    if not isinstance(raw, dict):
        return None

    keyword = raw.get("keyword")
    keyword = keyword.strip() if isinstance(keyword, str) else ""
    field = raw.get("field")

    if not keyword or field not in (CriterionField.FROM.value, CriterionField.SUBJECT.value):
        return None

    return DeleteCriterion(keyword=keyword, field=CriterionField(field))


def parse_model_output(text: str) -> ParseOutcome:
    """
    Validate the router's raw text into an InterpretationResult.

    An unrecognized action is coerced to UNKNOWN and malformed deleteParams
    are dropped (the action is kept). Anything that is not a JSON object is
    a failure.

    Examples:
        >>> parse_model_output('here you go {"action":"fetch_latest"} thanks').result.action
        <Action.FETCH_LATEST: 'fetch_latest'>
    """
    if not isinstance(text, str):
        return ParseOutcome.failure("response is not text")

    candidate = extract_json_object(text)
    if candidate is None:
        return ParseOutcome.failure("no JSON object in response")

    try:
        raw = json.loads(candidate)
    except json.JSONDecodeError as e:
        return ParseOutcome.failure(f"invalid JSON: {e}")

    if not isinstance(raw, dict):
        return ParseOutcome.failure("JSON is not an object")

    try:
        result = InterpretationResult(
            action=_validate_action(raw.get("action")),
            delete_params=_validate_delete_params(raw.get("deleteParams")),
            source=ResultSource.MODEL,
        )
    except ValueError as e:
        return ParseOutcome.failure(f"invalid result: {e}")

    return ParseOutcome.success(result)


# =============================================================================
# STRATEGIES
# =============================================================================

async def model_strategy(command: str) -> Optional[InterpretationResult]:
    """Ask Gemini to route the command; None when unavailable or unreliable."""
    if not get_settings().has_model_credential:
        logger.info("No Gemini key configured, using heuristic routing")
        return None

    try:
        text = await complete(build_router_prompt(command), temperature=0.0)
    except AIError as e:
        logger.warning(f"Router request failed: {e.message}")
        return None

    outcome = parse_model_output(text)
    if not outcome.ok:
        logger.warning(f"Discarding router output: {outcome.error}")
        return None

    return outcome.result


async def heuristic_strategy(command: str) -> Optional[InterpretationResult]:
    return classify(command)


DEFAULT_STRATEGIES: List[Strategy] = [model_strategy, heuristic_strategy]


async def run_chain(command: str, strategies: List[Strategy]) -> Optional[InterpretationResult]:
    """Run strategies left to right; the first non-None result wins."""
    for strategy in strategies:
        try:
            result = await strategy(command)
        except Exception as e:
            logger.warning(f"Strategy {getattr(strategy, '__name__', strategy)} failed: {e}")
            continue
        if result is not None:
            return result
    return None


async def interpret(command: str, strategies: Optional[List[Strategy]] = None) -> InterpretationResult:
    """
    Interpret a user command. Never raises.

    Args:
        command: User's natural language command
        strategies: Override the strategy chain (tests)

    Returns:
        InterpretationResult with action and, for deletes, optional params
    """
    result = await run_chain(command, strategies or DEFAULT_STRATEGIES)
    if result is None:
        result = classify(command)

    logger.info(f"Interpreted command as {result.action.value} ({result.source.value})")
    return result
