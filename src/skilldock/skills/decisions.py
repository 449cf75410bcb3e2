"""Confirmation decisions supplied by the host UI.

Operations that may destroy data (overwriting a project skill or a library
skill) ask an injected decision provider instead of opening dialogs, so the
services stay usable from a CLI, an editor or a test.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Literal

ConfirmationKind = Literal["overwrite_repo_skill", "overwrite_library_skill"]


class Decision(str, Enum):
    """Answer to a confirmation request."""

    PROCEED = "proceed"
    CANCEL = "cancel"
    OVERWRITE = "overwrite"
    KEEP_BOTH = "keep_both"
    SKIP = "skip"


@dataclass(frozen=True)
class ConfirmationRequest:
    """What the user is being asked to confirm.

    Attributes:
        kind: Type of confirmation
        skill_id: Id of the affected skill
        skill_name: Display name of the affected skill
        location: Human-readable place being overwritten (a directory)
    """

    kind: ConfirmationKind
    skill_id: str
    skill_name: str
    location: str

    @property
    def message(self) -> str:
        """Default prompt text."""
        if self.kind == "overwrite_repo_skill":
            return f'Skill "{self.skill_name}" already exists in {self.location}. Overwrite?'
        return f'Skill "{self.skill_name}" already exists in your library. Overwrite?'


DecisionProvider = Callable[[ConfirmationRequest], Awaitable[Decision]]


def always(decision: Decision) -> DecisionProvider:
    """Build a provider that answers every request with the same decision."""

    async def provider(request: ConfirmationRequest) -> Decision:
        return decision

    return provider


async def confirm_overwrite(
    provider: DecisionProvider | None,
    request: ConfirmationRequest,
) -> bool:
    """Ask the provider whether an existing skill may be overwritten.

    Without a provider nothing is overwritten.
    """
    if provider is None:
        return False
    decision = await provider(request)
    return decision in (Decision.OVERWRITE, Decision.PROCEED)
