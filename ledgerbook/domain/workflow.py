"""
Approval State Machine - legal transitions of a journal entry.

    (new) -> draft | pending_approval | posted
    draft -> draft (edit) | pending_approval | posted | (deleted)
    pending_approval -> approved | rejected
    rejected -> pending_approval (edit + resubmit by the creator)
    approved -> posted

Content edits are only allowed on draft and rejected entries, so an approved
entry is posted exactly as approved. ``posted`` is terminal. A direct post by
a role without posting rights is downgraded to ``pending_approval`` instead of
being refused.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from ledgerbook.core.security import Actor, Permission, RBACService

from .exceptions import IllegalTransition, UnauthorizedTransition
from .value_objects import EntryStatus

logger = logging.getLogger(__name__)


class WorkflowAction(str, Enum):
    SAVE_DRAFT = "save_draft"
    SUBMIT = "submit"
    POST = "post"
    APPROVE = "approve"
    REJECT = "reject"
    DELETE = "delete"


class Requirement(str, Enum):
    """Who may perform a transition, beyond holding the base permission."""
    PERMISSION = "permission"
    CREATOR_OR_PERMISSION = "creator_or_permission"
    CREATOR = "creator"


@dataclass(frozen=True, slots=True)
class TransitionRule:
    source: EntryStatus | None
    action: WorkflowAction
    target: EntryStatus | None
    permission: Permission
    requirement: Requirement = Requirement.PERMISSION
    downgrade_to: WorkflowAction | None = None


@dataclass(frozen=True, slots=True)
class Transition:
    """Resolved transition for a given actor; ``target`` None means deletion."""
    source: EntryStatus | None
    action: WorkflowAction
    target: EntryStatus | None
    downgraded: bool = False

    @property
    def is_posting(self) -> bool:
        return self.target == EntryStatus.POSTED


_CREATOR_OR_EDITOR = Requirement.CREATOR_OR_PERMISSION

RULES: tuple[TransitionRule, ...] = (
    TransitionRule(None, WorkflowAction.SAVE_DRAFT, EntryStatus.DRAFT, Permission.ENTRY_CREATE),
    TransitionRule(
        None, WorkflowAction.SUBMIT, EntryStatus.PENDING_APPROVAL, Permission.ENTRY_CREATE
    ),
    TransitionRule(
        None, WorkflowAction.POST, EntryStatus.POSTED, Permission.ENTRY_POST,
        downgrade_to=WorkflowAction.SUBMIT,
    ),
    TransitionRule(
        EntryStatus.DRAFT, WorkflowAction.SAVE_DRAFT, EntryStatus.DRAFT,
        Permission.ENTRY_EDIT_ANY, _CREATOR_OR_EDITOR,
    ),
    TransitionRule(
        EntryStatus.DRAFT, WorkflowAction.SUBMIT, EntryStatus.PENDING_APPROVAL,
        Permission.ENTRY_EDIT_ANY, _CREATOR_OR_EDITOR,
    ),
    TransitionRule(
        EntryStatus.DRAFT, WorkflowAction.POST, EntryStatus.POSTED, Permission.ENTRY_POST,
        downgrade_to=WorkflowAction.SUBMIT,
    ),
    TransitionRule(
        EntryStatus.DRAFT, WorkflowAction.DELETE, None,
        Permission.ENTRY_DELETE_ANY, _CREATOR_OR_EDITOR,
    ),
    TransitionRule(
        EntryStatus.PENDING_APPROVAL, WorkflowAction.APPROVE, EntryStatus.APPROVED,
        Permission.ENTRY_APPROVE,
    ),
    TransitionRule(
        EntryStatus.PENDING_APPROVAL, WorkflowAction.REJECT, EntryStatus.REJECTED,
        Permission.ENTRY_APPROVE,
    ),
    TransitionRule(
        EntryStatus.REJECTED, WorkflowAction.SUBMIT, EntryStatus.PENDING_APPROVAL,
        Permission.ENTRY_CREATE, Requirement.CREATOR,
    ),
    TransitionRule(
        EntryStatus.APPROVED, WorkflowAction.POST, EntryStatus.POSTED, Permission.ENTRY_POST
    ),
)

TRANSITIONS: dict[tuple[EntryStatus | None, WorkflowAction], TransitionRule] = {
    (rule.source, rule.action): rule for rule in RULES
}

# Line items may only change while the entry has not been approved.
EDITABLE_STATUSES = frozenset({EntryStatus.DRAFT, EntryStatus.REJECTED})


class ApprovalStateMachine:
    """Resolves (status, action, actor) into a legal transition or raises."""

    def __init__(self, rbac: RBACService | None = None):
        self.rbac = rbac or RBACService()

    def rule_for(self, status: EntryStatus | None, action: WorkflowAction) -> TransitionRule:
        rule = TRANSITIONS.get((status, action))
        if rule is None:
            raise IllegalTransition(status.value if status else None, action.value)
        return rule

    def is_allowed(self, status: EntryStatus | None, action: WorkflowAction) -> bool:
        return (status, action) in TRANSITIONS

    def resolve_edit(
        self,
        status: EntryStatus,
        action: WorkflowAction,
        actor: Actor,
        created_by: str | None = None,
    ) -> Transition:
        """Resolve a transition that also replaces the entry's content."""
        if status not in EDITABLE_STATUSES:
            raise IllegalTransition(
                status.value, "edit", "only draft and rejected entries can be edited"
            )
        return self.resolve(status, action, actor, created_by)

    def resolve(
        self,
        status: EntryStatus | None,
        action: WorkflowAction,
        actor: Actor,
        created_by: str | None = None,
    ) -> Transition:
        rule = self.rule_for(status, action)
        if self._authorized(rule, actor, created_by):
            return Transition(rule.source, rule.action, rule.target)

        if rule.downgrade_to is not None:
            downgraded = self.rule_for(status, rule.downgrade_to)
            if self._authorized(downgraded, actor, created_by):
                logger.warning(
                    "Direct post by %s (%s) downgraded to %s",
                    actor.username, actor.role.value, downgraded.target.value,
                )
                return Transition(downgraded.source, downgraded.action, downgraded.target, True)

        source = status.value if status else None
        raise UnauthorizedTransition(
            source,
            action.value,
            f"role {actor.role.value} is not allowed to {action.value} this entry",
        )

    def _authorized(self, rule: TransitionRule, actor: Actor, created_by: str | None) -> bool:
        is_creator = created_by is not None and created_by == actor.user_id
        if rule.requirement == Requirement.CREATOR:
            return is_creator
        has_permission = self.rbac.has_permission(actor.role, rule.permission)
        if rule.requirement == Requirement.CREATOR_OR_PERMISSION:
            return is_creator or has_permission
        return has_permission
