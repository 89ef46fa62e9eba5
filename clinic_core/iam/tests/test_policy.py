import uuid

import pytest

from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.audit.models import AuditEntry
from clinic_core.audit.services import AuditTrail
from clinic_core.common.api.exceptions import Forbidden
from clinic_core.common.request_context import RequestContext
from clinic_core.conftest import make_account
from clinic_core.iam.evaluator import FORBIDDEN_OWNERSHIP, FORBIDDEN_ROLE, AccessEvaluator, ResourceOwner
from clinic_core.iam.policy import OWNERSHIP_RULES, ROLE_TABLE, VISIBILITY_RULES, Action
from clinic_core.iam.principal import Principal
from clinic_core.iam.roles import ALL_ROLES, CLINICAL_ROLES, STAFF_ROLES, Role


class RecordingAudit:
    def __init__(self):
        self.calls = []

    def record(self, *args, **kwargs):
        self.calls.append((args, kwargs))


def _principal(role, **kwargs):
    return Principal(account_id=uuid.uuid4(), role=role, **kwargs)


def test_every_action_has_a_role_entry():
    assert set(ROLE_TABLE) == set(Action)
    for action, roles in ROLE_TABLE.items():
        assert roles, action
        assert roles <= ALL_ROLES


def test_role_groups_drive_the_table():
    assert ROLE_TABLE[Action.PATIENT_CREATE] == STAFF_ROLES
    assert ROLE_TABLE[Action.APPOINTMENT_COMPLETE] == CLINICAL_ROLES | {Role.ADMIN}
    assert Role.RECEPTIONIST not in ROLE_TABLE[Action.APPOINTMENT_COMPLETE]


def test_ownership_rules_only_narrow_allowed_roles():
    for action, rules in OWNERSHIP_RULES.items():
        assert set(rules) <= ROLE_TABLE[action], action
        assert Role.ADMIN not in rules


def test_every_resource_has_a_visibility_rule():
    assert {a.resource for a in Action if a.resource in ("patients", "professionals", "appointments")} <= set(VISIBILITY_RULES)


@pytest.mark.parametrize("action", list(Action))
def test_admin_is_allowed_everything(action):
    evaluator = AccessEvaluator(audit=RecordingAudit())
    decision = evaluator.evaluate(_principal(Role.ADMIN), action, ResourceOwner(patient_id=uuid.uuid4()))
    assert decision.allowed


def test_role_denial_is_audited_with_required_roles():
    audit = RecordingAudit()
    evaluator = AccessEvaluator(audit=audit)
    caller = _principal(Role.PATIENT)

    with pytest.raises(Forbidden) as exc:
        evaluator.authorize(caller, Action.PROFESSIONAL_CREATE, request_context=RequestContext(path="/api/v1/professionals/"))

    assert exc.value.reason == FORBIDDEN_ROLE
    assert len(audit.calls) == 1
    args, kwargs = audit.calls[0]
    assert args[:3] == (caller.account_id, AuditAction.UNAUTHORIZED_ACCESS, ResourceType.API)
    assert kwargs["success"] is False
    assert kwargs["context"]["required_roles"] == [Role.ADMIN.value]


def test_ownership_denial_for_foreign_patient():
    audit = RecordingAudit()
    evaluator = AccessEvaluator(audit=audit)
    caller = _principal(Role.PATIENT, patient_id=uuid.uuid4())
    target = uuid.uuid4()

    with pytest.raises(Forbidden) as exc:
        evaluator.authorize(caller, Action.PATIENT_RETRIEVE, ResourceOwner(patient_id=target), resource_id=target)

    assert exc.value.reason == FORBIDDEN_OWNERSHIP
    args, kwargs = audit.calls[0]
    assert args[3] == target
    assert kwargs["context"]["required_owner"] == "patient"


def test_owner_sees_plaintext_others_masked():
    evaluator = AccessEvaluator(audit=RecordingAudit())
    mine = uuid.uuid4()

    own = evaluator.evaluate(_principal(Role.PATIENT, patient_id=mine), Action.PATIENT_RETRIEVE, ResourceOwner(patient_id=mine))
    assert own.allowed and own.visibility.plaintext

    desk = evaluator.evaluate(_principal(Role.RECEPTIONIST), Action.PATIENT_RETRIEVE, ResourceOwner(patient_id=mine))
    assert desk.allowed and not desk.visibility.plaintext
    assert desk.visibility.render("12345678909", "national_id") == "123.***.**-09"


def test_clinician_limited_to_own_appointments():
    evaluator = AccessEvaluator(audit=RecordingAudit())
    doctor = uuid.uuid4()
    caller = _principal(Role.PHYSICIAN, professional_id=doctor)

    assert evaluator.evaluate(caller, Action.APPOINTMENT_COMPLETE, ResourceOwner(professional_id=doctor)).allowed
    assert not evaluator.evaluate(caller, Action.APPOINTMENT_COMPLETE, ResourceOwner(professional_id=uuid.uuid4())).allowed


def test_receptionist_can_cancel_any_appointment():
    evaluator = AccessEvaluator(audit=RecordingAudit())
    decision = evaluator.evaluate(_principal(Role.RECEPTIONIST), Action.APPOINTMENT_CANCEL, ResourceOwner(patient_id=uuid.uuid4()))
    assert decision.allowed


@pytest.mark.django_db
def test_denial_writes_exactly_one_audit_row():
    account = make_account("p@example.com")
    evaluator = AccessEvaluator(audit=AuditTrail())
    caller = Principal(account_id=account.id, role=Role.PATIENT)

    with pytest.raises(Forbidden):
        evaluator.authorize(caller, Action.AUDIT_LIST, request_context=RequestContext(path="/api/v1/audit/", method="GET"))

    entry = AuditEntry.objects.get()
    assert entry.action == AuditAction.UNAUTHORIZED_ACCESS
    assert entry.resource_id is None
    assert entry.context["path"] == "/api/v1/audit/"
    assert entry.error_message == FORBIDDEN_ROLE
