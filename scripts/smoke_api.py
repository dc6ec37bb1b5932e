#!/usr/bin/env python3
"""
Smoke test for a running HealPath API.
Start the server first: healpath-server
Then run this: python scripts/smoke_api.py
"""

import json
import os
import uuid

import requests

BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5001/api").rstrip("/")
PASSWORD = "smoke-test-password"


def show(title, response):
    print("\n" + "=" * 50)
    print(f"TEST: {title}")
    print("=" * 50)
    print(f"Status Code: {response.status_code}")
    print(f"Response: {json.dumps(response.json(), indent=2)}")


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def test_health():
    response = requests.get(f"{BASE_URL}/health")
    show("Health Check", response)
    return response.status_code == 200


def register(role):
    response = requests.post(f"{BASE_URL}/auth/register", json={
        "name": f"Smoke {role.title()}",
        "email": f"smoke-{role}-{uuid.uuid4().hex[:8]}@example.com",
        "password": PASSWORD,
        "role": role,
    })
    show(f"Register {role}", response)
    if response.status_code != 201:
        return None
    return response.json()["data"]


def test_login_invalid():
    response = requests.post(f"{BASE_URL}/auth/login", json={"email": "nobody@example.com", "password": "wrong-pass"})
    show("Login with Invalid Credentials", response)
    return response.status_code == 401


def test_unlinked_caregiver(token):
    response = requests.get(f"{BASE_URL}/appointments", headers=auth(token))
    show("Unlinked Caregiver Reads Appointments", response)
    return response.status_code == 403 and response.json().get("code") == "NOT_LINKED"


def test_link(token, code):
    response = requests.post(f"{BASE_URL}/caregiver/link", json={"accessCode": code}, headers=auth(token))
    show("Link Caregiver", response)
    return response.status_code == 200


def test_bulk_sync(token):
    client_id = uuid.uuid4().hex
    body = {"logs": [{"clientId": client_id, "mood": "good", "painLevel": 2, "symptoms": ["fatigue"]}]}
    first = requests.post(f"{BASE_URL}/symptoms/bulk", json=body, headers=auth(token))
    show("Bulk Sync", first)
    again = requests.post(f"{BASE_URL}/symptoms/bulk", json=body, headers=auth(token))
    show("Bulk Sync Replay", again)
    return (
        first.json()["data"]["results"][0]["status"] == "created"
        and again.json()["data"]["results"][0]["status"] == "duplicate"
    )


def test_refresh_rotation(refresh_token):
    first = requests.post(f"{BASE_URL}/auth/refresh", json={"refreshToken": refresh_token})
    show("Refresh", first)
    reuse = requests.post(f"{BASE_URL}/auth/refresh", json={"refreshToken": refresh_token})
    show("Refresh Token Reuse", reuse)
    return first.status_code == 200 and reuse.status_code == 401


def main():
    print("=" * 50)
    print("HealPath API Smoke Test")
    print("=" * 50)
    print(f"Base URL: {BASE_URL}")
    print("Make sure the API server is running!")

    results = {}
    try:
        results["Health Check"] = test_health()
        results["Login Invalid"] = test_login_invalid()

        patient = register("patient")
        carer = register("caregiver")
        if patient and carer:
            results["Register"] = True
            results["Unlinked Caregiver"] = test_unlinked_caregiver(carer["accessToken"])
            results["Link"] = test_link(carer["accessToken"], patient["user"]["accessCode"])
            results["Bulk Sync"] = test_bulk_sync(carer["accessToken"])
            results["Refresh Rotation"] = test_refresh_rotation(patient["refreshToken"])
        else:
            results["Register"] = False
            print("\nERROR: Could not register. Remaining tests skipped.")
    except requests.RequestException as e:
        print(f"\n\nERROR: {e}")

    print("\n" + "=" * 50)
    print("TEST SUMMARY")
    print("=" * 50)
    passed = sum(1 for v in results.values() if v)
    for test, result in results.items():
        print(f"{'PASS' if result else 'FAIL'}: {test}")
    print(f"\nTotal: {passed}/{len(results)} tests passed")
    print("=" * 50)


if __name__ == "__main__":
    main()
