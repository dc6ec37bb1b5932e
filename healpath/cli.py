"""
Interactive CLI for HealPath.
Log in, browse the effective patient's records and log symptoms, online or offline.
"""

import asyncio

from healpath.client.offline import QueuedLocally, SymptomStore
from healpath.client.pipeline import RequestPipeline
from healpath.client.session import SessionContext
from healpath.client.storage import JsonFileStore
from healpath.client.stores import AppointmentStore, MedicationStore
from healpath.client.vault import TokenVault
from healpath.config import API_BASE_URL, CLIENT_STATE_PATH
from healpath.errors import AccessError, HealPathError, SessionExpired

COMMANDS = """
Commands:
  appointments         list upcoming appointments
  medications          list active medications
  taken <id> <HH:MM>   record a medication dose
  log                  log how you feel today
  symptoms             list recent symptom logs
  sync                 upload symptom logs saved while offline
  code                 show your caregiver access code (patients)
  link <CODE>          link to a patient (caregivers)
  patient              show the linked patient (caregivers)
  logout | quit
"""


async def prompt(text: str) -> str:
    return (await asyncio.to_thread(input, text)).strip()


def print_records(title, items, fields):
    print(f"\n[{title}] {len(items)} record(s)")
    if not items:
        print("(nothing to show)")
    for item in items:
        print("  " + " | ".join(str(item.get(f, "")) for f in fields))


async def login(session: SessionContext) -> bool:
    await session.hydrate()
    if session.session.is_authenticated:
        return True

    email = await prompt("Email (or 'quit'): ")
    if not email or email.lower() in {"quit", "exit"}:
        return False
    password = await prompt("Password: ")
    try:
        await session.login(email, password)
    except HealPathError as e:
        print("\n[ERROR] Login failed.")
        print("Details:", e.message)
        return False
    return True


async def log_symptom(symptoms: SymptomStore):
    mood = await prompt("Mood (great/good/okay/bad/terrible): ")
    pain = await prompt("Pain level 0-10: ")
    names = await prompt("Symptoms (comma separated): ")
    notes = await prompt("Notes: ")
    data = {
        "mood": mood,
        "painLevel": int(pain) if pain.isdigit() else pain,
        "symptoms": [s.strip() for s in names.split(",") if s.strip()],
    }
    if notes:
        data["notes"] = notes

    result = await symptoms.create_log(data)
    if isinstance(result, QueuedLocally):
        print("[sync] Saved on this device; run 'sync' once you are back online.")
    else:
        print("[symptoms] Logged.")


async def run():
    print("=== HealPath: patient & caregiver console ===\n")
    print(f"[init] API: {API_BASE_URL}")

    store = JsonFileStore(CLIENT_STATE_PATH)
    vault = TokenVault(store)

    async with RequestPipeline(vault) as pipeline:
        session = SessionContext(vault, pipeline)
        appointments = AppointmentStore(pipeline, store)
        medications = MedicationStore(pipeline, store)
        symptoms = SymptomStore(pipeline, store)

        if not await login(session):
            print("Goodbye.")
            return

        user = session.identity
        print(f"\n[auth] Logged in as: {user['name']} (role={user['role']})")
        print(COMMANDS)

        # ── REPL ─────────────────────────────────────────────────────
        while True:
            try:
                line = await prompt("\nhealpath> ")
            except (EOFError, KeyboardInterrupt):
                print("\nExiting.")
                break

            if not line:
                continue
            command, *args = line.split()
            command = command.lower()
            if command in {"quit", "exit"}:
                print("Goodbye.")
                break

            try:
                if command == "appointments":
                    await appointments.fetch(status="upcoming")
                    print_records("appointments", appointments.items, ["id", "date", "doctorName", "location"])
                elif command == "medications":
                    await medications.fetch()
                    print_records("medications", medications.items, ["id", "name", "dosage", "frequency"])
                elif command == "taken" and len(args) == 2:
                    record = await medications.mark_taken(args[0], args[1])
                    print(f"[medications] {record['name']}: {len(record['takenLog'])} dose(s) logged")
                elif command == "log":
                    await log_symptom(symptoms)
                elif command == "symptoms":
                    await symptoms.fetch(limit=10)
                    print_records("symptoms", symptoms.items, ["date", "mood", "painLevel", "symptoms"])
                elif command == "sync":
                    result = await symptoms.sync()
                    print(f"[sync] {result.synced} synced, {len(result.rejected)} rejected, {result.remaining} pending")
                elif command == "code":
                    data = (await pipeline.get("/caregiver/access-code"))["data"]
                    print(f"[caregiver] Share this code with your caregiver: {data['accessCode']}")
                elif command == "link" and len(args) == 1:
                    data = (await pipeline.post("/caregiver/link", {"accessCode": args[0]}))["data"]
                    print(f"[caregiver] Linked to {data['patientName']}")
                    await session.reload_identity()
                elif command == "patient":
                    data = (await pipeline.get("/caregiver/patient"))["data"]
                    print(f"[caregiver] {data['name']} <{data['email']}>")
                elif command == "logout":
                    await session.logout()
                    print("Logged out.")
                    break
                else:
                    print(COMMANDS)
            except SessionExpired:
                print("\n[auth] Your session has expired. Please log in again.")
                break
            except AccessError as e:
                print(f"\n[ACCESS] {e.message}")
            except HealPathError as e:
                print(f"\n[ERROR] {e.message}")
                if getattr(e, "errors", None):
                    for err in e.errors:
                        print(f"  - {err.get('field')}: {err.get('message')}")


def main():
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        print("\nExiting.")


if __name__ == "__main__":
    main()
