#!/usr/bin/env python3
"""
Seed a development database with fake patients, caregivers and their records.

Every patient gets the password DEMO_PASSWORD; half of them get a caregiver
already linked through the patient's access code.
"""

import random
from datetime import timedelta

from faker import Faker

from healpath import caregiver
from healpath.database import init_engine
from healpath.gateway import AuthGateway
from healpath.models import utcnow
from healpath.records import (
    AppointmentRepository,
    FollowUpRepository,
    MedicationRepository,
    SymptomLogRepository,
)

# --------------------------------------------------------------------
# CONFIG
# --------------------------------------------------------------------
NUM_PATIENTS = 10
DEMO_PASSWORD = "healpath-demo"

# how many rows for each record table, per patient
PER_PATIENT = {
    "appointments": (1, 4),              # min, max per patient
    "medications": (1, 3),
    "symptom_logs": (3, 10),
    "follow_ups": (0, 3),
}

DEPARTMENTS = ["Cardiology", "Oncology", "Orthopedics", "Neurology", "General Surgery"]
DRUGS = [("Paracetamol", "500mg"), ("Ibuprofen", "400mg"), ("Amoxicillin", "250mg"), ("Metformin", "850mg")]
SYMPTOMS = ["headache", "nausea", "fatigue", "swelling", "dizziness", "fever"]

# --------------------------------------------------------------------
# SETUP
# --------------------------------------------------------------------
fake = Faker()
random.seed(42)
Faker.seed(42)


def per_patient_count(table):
    lo, hi = PER_PATIENT[table]
    return random.randint(lo, hi)


def random_datetime_within(days, future=False):
    offset = timedelta(days=random.randint(0, days), hours=random.randint(0, 23))
    return utcnow() + offset if future else utcnow() - offset


# --------------------------------------------------------------------
# SEEDERS
# --------------------------------------------------------------------
def seed_appointments(repo, patient_id):
    for _ in range(per_patient_count("appointments")):
        repo.create(patient_id, {
            "doctor_name": f"Dr. {fake.last_name()}",
            "department": random.choice(DEPARTMENTS),
            "date": random_datetime_within(60, future=True),
            "location": fake.city(),
            "status": "upcoming",
            "notes": fake.sentence(),
        })


def seed_medications(repo, patient_id):
    for name, dosage in random.sample(DRUGS, per_patient_count("medications")):
        repo.create(patient_id, {
            "name": name,
            "dosage": dosage,
            "frequency": random.choice(["once_daily", "twice_daily", "as_needed"]),
            "times": ["08:00", "20:00"],
            "active": True,
            "instructions": "Take with food",
        })


def seed_symptom_logs(repo, patient_id):
    for _ in range(per_patient_count("symptom_logs")):
        repo.create_log(patient_id, {
            "date": random_datetime_within(30),
            "mood": random.choice(["great", "good", "okay", "bad", "terrible"]),
            "pain_level": random.randint(0, 10),
            "symptoms": random.sample(SYMPTOMS, random.randint(0, 3)),
            "notes": fake.text(max_nb_chars=80),
        })


def seed_follow_ups(repo, patient_id):
    for _ in range(per_patient_count("follow_ups")):
        repo.create(patient_id, {
            "title": random.choice(["Post-op scan", "Blood work", "Wound check"]),
            "scheduled_date": random_datetime_within(90, future=True),
            "type": random.choice(["scan", "doctor_visit", "lab_test", "other"]),
            "status": "pending",
            "location": fake.city(),
        })


# --------------------------------------------------------------------
# MAIN
# --------------------------------------------------------------------
def main():
    engine = init_engine()
    gateway = AuthGateway(engine)
    appointments = AppointmentRepository(engine)
    medications = MedicationRepository(engine)
    symptoms = SymptomLogRepository(engine)
    followups = FollowUpRepository(engine)

    print("Seeding patients...")
    for i in range(NUM_PATIENTS):
        patient, _ = gateway.register(
            name=fake.name(),
            email=fake.unique.email(),
            password=DEMO_PASSWORD,
            role="patient",
            phone=fake.phone_number(),
        )
        seed_appointments(appointments, patient.id)
        seed_medications(medications, patient.id)
        seed_symptom_logs(symptoms, patient.id)
        seed_follow_ups(followups, patient.id)

        if i % 2 == 0:
            carer, _ = gateway.register(
                name=fake.name(),
                email=fake.unique.email(),
                password=DEMO_PASSWORD,
                role="caregiver",
            )
            caregiver.link_caregiver(engine, carer, patient.access_code)
            print(f"  {patient.email} (code {patient.access_code}) <- caregiver {carer.email}")
        else:
            print(f"  {patient.email} (code {patient.access_code})")

    print(f"Done! All accounts use the password '{DEMO_PASSWORD}'.")


if __name__ == "__main__":
    main()
