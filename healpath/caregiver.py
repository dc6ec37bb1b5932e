"""
Caregiver linking via patient access codes.
"""

from typing import Any, Dict

from sqlalchemy.engine import Engine

from healpath import identities
from healpath.errors import NotFoundError, NotLinked
from healpath.models import Identity
from healpath.rbac import require_role


def get_access_code(engine: Engine, patient: Identity) -> str:
    """Return the patient's access code, generating one on first use."""
    require_role(patient, "patient")
    if patient.access_code:
        return patient.access_code
    code = identities.assign_access_code(engine, patient.id)
    patient.access_code = code
    return code


def link_caregiver(engine: Engine, caregiver: Identity, access_code: str) -> Dict[str, Any]:
    """Point *caregiver* at the patient owning *access_code*.

    Unconditional overwrite: relinking to another code switches the caregiver's
    whole visible data set with no confirmation step.
    """
    require_role(caregiver, "caregiver")

    patient = identities.find_patient_by_access_code(engine, access_code.strip().upper())
    if patient is None:
        raise NotFoundError("Invalid access code. No patient found.")

    identities.set_linked_patient(engine, caregiver.id, patient.id)
    caregiver.linked_patient_id = patient.id
    print(f"[auth] Caregiver {caregiver.id} linked to patient {patient.id}")
    return {"patientId": patient.id, "patientName": patient.name}


def get_linked_patient(engine: Engine, caregiver: Identity) -> Dict[str, Any]:
    require_role(caregiver, "caregiver")
    if not caregiver.linked_patient_id:
        raise NotLinked()

    patient = identities.get_identity(engine, caregiver.linked_patient_id)
    if patient is None:
        raise NotFoundError("Linked patient not found")
    return {"id": patient.id, "name": patient.name, "email": patient.email, "phone": patient.phone}
