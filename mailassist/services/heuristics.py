"""
Heuristic command classifier.

This module provides:
1. Keyword routing of a raw command to an Action (last-resort interpreter)
2. Deletion-parameter extraction (keyword + field) from free text

Both are pure and deterministic. The model-backed interpreter falls back to
classify(); the dispatcher uses the same classify() to re-route unknown
actions and extract_deletion_params() to refine coarse delete parameters.
"""
import re
from typing import Optional

from mailassist.models.assistant import (
    Action,
    CriterionField,
    DeleteCriterion,
    InterpretationResult,
    ResultSource,
)


# =============================================================================
# ROUTING RULES (first match wins)
# =============================================================================

# Each rule: (words that must ALL appear, words of which ANY must appear, action)
ROUTING_RULES = [
    (("read", "email"), (), Action.FETCH_LATEST),
    ((), ("delete", "remove"), Action.DELETE_EMAIL),
    ((), ("help", "command"), Action.HELP),
    ((), ("reply", "respond"), Action.DRAFT_REPLY),
]

# Deletion parameter patterns
FROM_PATTERN = re.compile(r'from\s+(.+)', re.IGNORECASE)
DELETE_PATTERN = re.compile(r'(?:delete|remove)\s+(?:email\s+)?(.+)', re.IGNORECASE)


def _matches(lower: str, all_of: tuple, any_of: tuple) -> bool:
    if all_of and not all(word in lower for word in all_of):
        return False
    if any_of and not any(word in lower for word in any_of):
        return False
    return True


def classify(command: str) -> InterpretationResult:
    """
    Map raw text to an action using substring checks.

    A delete command carries the whole original text as a subject keyword;
    callers that need finer parameters refine it with
    extract_deletion_params().

    Args:
        command: User's raw command

    Returns:
        InterpretationResult (never raises; unmatched text gives UNKNOWN)

    Examples:
        >>> classify("Read my latest emails").action
        <Action.FETCH_LATEST: 'fetch_latest'>
        >>> classify("remove the newsletter").delete_params.field
        <CriterionField.SUBJECT: 'subject'>
    """
    lower = (command or "").lower()

    for all_of, any_of, action in ROUTING_RULES:
        if not _matches(lower, all_of, any_of):
            continue

        if action == Action.DELETE_EMAIL:
            return InterpretationResult(
                action=action,
                delete_params=DeleteCriterion(keyword=command, field=CriterionField.SUBJECT),
                source=ResultSource.HEURISTIC,
            )
        return InterpretationResult(action=action, source=ResultSource.HEURISTIC)

    return InterpretationResult(action=Action.UNKNOWN, source=ResultSource.HEURISTIC)


def extract_deletion_params(text: str) -> Optional[DeleteCriterion]:
    """
    Extract which email to delete from a command.

    Order:
    - "... from <sender>"             → keyword=sender, field=from
    - "delete|remove [email] <rest>"  → keyword=rest, field=subject
    - anything else                   → whole input as a subject keyword

    Returns:
        DeleteCriterion, or None when the input is blank
    """
    normalized = (text or "").strip()
    if not normalized:
        return None

    match = FROM_PATTERN.search(normalized)
    if match and match.group(1).strip():
        return DeleteCriterion(keyword=match.group(1).strip(), field=CriterionField.FROM)

    match = DELETE_PATTERN.search(normalized)
    if match and match.group(1).strip():
        return DeleteCriterion(keyword=match.group(1).strip(), field=CriterionField.SUBJECT)

    return DeleteCriterion(keyword=normalized, field=CriterionField.SUBJECT)
