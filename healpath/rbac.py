"""
Role-Based Access Control – resolving the patient partition an identity may touch.
"""

from healpath.errors import Forbidden, NotLinked
from healpath.models import AccessScope, Identity


def resolve_access_scope(identity: Identity) -> AccessScope:
    """Derive the single effective patient id for *identity*.

    Patients see their own records, caregivers see only the patient they are
    currently linked to. Anything else is refused; there is no default scope.
    """
    if identity.role == "patient":
        return AccessScope(identity_id=identity.id, role="patient", patient_id=identity.id)

    if identity.role == "caregiver":
        if not identity.linked_patient_id:
            raise NotLinked()
        return AccessScope(
            identity_id=identity.id,
            role="caregiver",
            patient_id=identity.linked_patient_id,
        )

    raise Forbidden(f"Role '{identity.role}' has no patient data scope")


def require_role(identity: Identity, *roles: str) -> None:
    """Raise Forbidden unless *identity* holds one of *roles*."""
    if identity.role not in roles:
        raise Forbidden(f"Role '{identity.role}' is not authorized to access this route")
