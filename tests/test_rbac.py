"""
Unit tests for RBAC – access scope resolution and role checks.
"""

import pytest

from healpath.errors import Forbidden, NotLinked
from healpath.models import AccessScope, Identity
from healpath.rbac import require_role, resolve_access_scope


# ── Helpers ──────────────────────────────────────────────────────────

def make_identity(role, linked_patient_id=None, id="u1"):
    return Identity(
        id=id, name="Someone", email=f"{id}@example.com", role=role,
        linked_patient_id=linked_patient_id,
    )


# ── Tests: resolve_access_scope ──────────────────────────────────────

def test_patient_scope_is_self():
    scope = resolve_access_scope(make_identity("patient", id="p1"))
    assert scope == AccessScope(identity_id="p1", role="patient", patient_id="p1")


def test_patient_scope_ignores_linked_patient_id():
    # A stray link on a patient row must not widen the scope.
    scope = resolve_access_scope(make_identity("patient", linked_patient_id="p2", id="p1"))
    assert scope.patient_id == "p1"


def test_linked_caregiver_scope_is_linked_patient():
    scope = resolve_access_scope(make_identity("caregiver", linked_patient_id="p9", id="c1"))
    assert scope.identity_id == "c1"
    assert scope.role == "caregiver"
    assert scope.patient_id == "p9"


def test_unlinked_caregiver_not_linked():
    with pytest.raises(NotLinked) as e:
        resolve_access_scope(make_identity("caregiver"))
    assert e.value.status_code == 403
    assert e.value.code == "NOT_LINKED"
    assert e.value.message == "Caregiver not linked to any patient"


@pytest.mark.parametrize("role", ["admin", "doctor", ""])
def test_other_roles_forbidden(role):
    with pytest.raises(Forbidden) as e:
        resolve_access_scope(make_identity(role))
    assert e.value.status_code == 403


def test_scope_is_immutable():
    scope = resolve_access_scope(make_identity("patient"))
    with pytest.raises(Exception):
        scope.patient_id = "someone-else"


# ── Tests: require_role ──────────────────────────────────────────────

def test_require_role_allows_listed_role():
    require_role(make_identity("caregiver"), "caregiver", "admin")


def test_require_role_rejects_other_role():
    with pytest.raises(Forbidden, match="Role 'patient' is not authorized"):
        require_role(make_identity("patient"), "caregiver")
