"""
Unit tests - approval state machine and role permissions.
"""

import pytest

from ledgerbook.core.security import Actor, Permission, RBACService, UserRole
from ledgerbook.domain.exceptions import IllegalTransition, UnauthorizedTransition
from ledgerbook.domain.value_objects import EntryStatus
from ledgerbook.domain.workflow import TRANSITIONS, ApprovalStateMachine, WorkflowAction

LEGAL = {
    (None, WorkflowAction.SAVE_DRAFT),
    (None, WorkflowAction.SUBMIT),
    (None, WorkflowAction.POST),
    (EntryStatus.DRAFT, WorkflowAction.SAVE_DRAFT),
    (EntryStatus.DRAFT, WorkflowAction.SUBMIT),
    (EntryStatus.DRAFT, WorkflowAction.POST),
    (EntryStatus.DRAFT, WorkflowAction.DELETE),
    (EntryStatus.PENDING_APPROVAL, WorkflowAction.APPROVE),
    (EntryStatus.PENDING_APPROVAL, WorkflowAction.REJECT),
    (EntryStatus.REJECTED, WorkflowAction.SUBMIT),
    (EntryStatus.APPROVED, WorkflowAction.POST),
}

ALL_PAIRS = [
    (status, action)
    for status in [None, *EntryStatus]
    for action in WorkflowAction
]


@pytest.fixture
def machine():
    return ApprovalStateMachine()


def actor(role: UserRole, user_id: str = "u-1") -> Actor:
    return Actor(user_id=user_id, username=user_id, role=role)


class TestTransitionTable:

    def test_table_matches_lifecycle(self):
        assert set(TRANSITIONS) == LEGAL

    @pytest.mark.parametrize("status,action", ALL_PAIRS)
    def test_every_pair_is_either_legal_or_refused(self, machine, status, action):
        admin = actor(UserRole.ADMINISTRATOR)
        if (status, action) in LEGAL:
            transition = machine.resolve(status, action, admin, created_by=admin.user_id)
            assert transition.action == action
        else:
            with pytest.raises(IllegalTransition):
                machine.resolve(status, action, admin, created_by=admin.user_id)

    @pytest.mark.parametrize("action", list(WorkflowAction))
    def test_posted_is_terminal(self, machine, action):
        assert not machine.is_allowed(EntryStatus.POSTED, action)

    @pytest.mark.parametrize("status", [
        EntryStatus.PENDING_APPROVAL, EntryStatus.APPROVED, EntryStatus.POSTED,
    ])
    @pytest.mark.parametrize("action", [
        WorkflowAction.SAVE_DRAFT, WorkflowAction.SUBMIT, WorkflowAction.POST,
    ])
    def test_only_draft_and_rejected_entries_are_editable(self, machine, status, action):
        admin = actor(UserRole.ADMINISTRATOR)
        with pytest.raises(IllegalTransition) as exc_info:
            machine.resolve_edit(status, action, admin, created_by=admin.user_id)
        assert exc_info.value.action == "edit"

    def test_approved_entry_post_needs_no_edit(self, machine):
        manager = actor(UserRole.MANAGER)
        assert machine.resolve(EntryStatus.APPROVED, WorkflowAction.POST, manager).is_posting
        with pytest.raises(IllegalTransition):
            machine.resolve_edit(EntryStatus.APPROVED, WorkflowAction.POST, manager)

    def test_delete_targets_nothing(self, machine):
        transition = machine.resolve(
            EntryStatus.DRAFT, WorkflowAction.DELETE, actor(UserRole.MANAGER)
        )
        assert transition.target is None


class TestPermissions:

    @pytest.mark.parametrize("role", [UserRole.ADMINISTRATOR, UserRole.MANAGER])
    def test_privileged_roles_post_directly(self, machine, role):
        transition = machine.resolve(None, WorkflowAction.POST, actor(role))
        assert transition.target == EntryStatus.POSTED
        assert transition.is_posting
        assert not transition.downgraded

    def test_accountant_direct_post_is_downgraded(self, machine):
        transition = machine.resolve(None, WorkflowAction.POST, actor(UserRole.ACCOUNTANT))
        assert transition.target == EntryStatus.PENDING_APPROVAL
        assert transition.downgraded

    def test_accountant_posting_own_draft_is_downgraded(self, machine):
        accountant = actor(UserRole.ACCOUNTANT)
        transition = machine.resolve(
            EntryStatus.DRAFT, WorkflowAction.POST, accountant, created_by=accountant.user_id
        )
        assert transition.target == EntryStatus.PENDING_APPROVAL
        assert transition.downgraded

    def test_accountant_cannot_post_someone_elses_draft(self, machine):
        with pytest.raises(UnauthorizedTransition):
            machine.resolve(
                EntryStatus.DRAFT, WorkflowAction.POST, actor(UserRole.ACCOUNTANT),
                created_by="someone-else",
            )

    def test_accountant_cannot_post_approved_entry(self, machine):
        with pytest.raises(UnauthorizedTransition):
            machine.resolve(EntryStatus.APPROVED, WorkflowAction.POST, actor(UserRole.ACCOUNTANT))

    @pytest.mark.parametrize("action", [WorkflowAction.APPROVE, WorkflowAction.REJECT])
    def test_accountant_cannot_review(self, machine, action):
        with pytest.raises(UnauthorizedTransition) as exc_info:
            machine.resolve(EntryStatus.PENDING_APPROVAL, action, actor(UserRole.ACCOUNTANT))
        assert exc_info.value.status_code == 403

    def test_creator_may_edit_and_delete_own_draft(self, machine):
        accountant = actor(UserRole.ACCOUNTANT)
        for action in (WorkflowAction.SAVE_DRAFT, WorkflowAction.SUBMIT, WorkflowAction.DELETE):
            machine.resolve(EntryStatus.DRAFT, action, accountant, created_by=accountant.user_id)

    @pytest.mark.parametrize(
        "action", [WorkflowAction.SAVE_DRAFT, WorkflowAction.SUBMIT, WorkflowAction.DELETE]
    )
    def test_other_accountant_cannot_touch_draft(self, machine, action):
        with pytest.raises(UnauthorizedTransition):
            machine.resolve(
                EntryStatus.DRAFT, action, actor(UserRole.ACCOUNTANT, "u-2"), created_by="u-1"
            )

    def test_manager_may_edit_any_draft(self, machine):
        transition = machine.resolve(
            EntryStatus.DRAFT, WorkflowAction.SAVE_DRAFT, actor(UserRole.MANAGER), created_by="u-9"
        )
        assert transition.target == EntryStatus.DRAFT

    def test_only_creator_resubmits_rejected_entry(self, machine):
        creator = actor(UserRole.ACCOUNTANT, "creator")
        transition = machine.resolve(
            EntryStatus.REJECTED, WorkflowAction.SUBMIT, creator, created_by="creator"
        )
        assert transition.target == EntryStatus.PENDING_APPROVAL
        with pytest.raises(UnauthorizedTransition):
            machine.resolve(
                EntryStatus.REJECTED, WorkflowAction.SUBMIT, actor(UserRole.ADMINISTRATOR),
                created_by="creator",
            )


class TestRBACService:

    def test_role_permissions(self):
        rbac = RBACService()
        assert rbac.has_permission(UserRole.MANAGER, Permission.ENTRY_POST)
        assert not rbac.has_permission(UserRole.ACCOUNTANT, Permission.ENTRY_POST)
        assert all(rbac.has_permission(UserRole.ADMINISTRATOR, p) for p in Permission)
        assert rbac.has_permission(UserRole.ACCOUNTANT, Permission.LEDGER_VIEW)

    @pytest.mark.parametrize("value,expected", [
        ("manager", UserRole.MANAGER),
        (" Administrator ", UserRole.ADMINISTRATOR),
        ("Auditor", None),
        (None, None),
    ])
    def test_parse_role(self, value, expected):
        assert UserRole.parse(value) is expected
