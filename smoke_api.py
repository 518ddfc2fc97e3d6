#!/usr/bin/env python3
"""
Smoke test against a running server.

Logs in as each test user (see ``manage.py ensure_test_users``), calls
the endpoints that role should reach, and reports every unexpected
status code.  Exits non-zero when anything failed.

    python manage.py seed_data
    python manage.py ensure_test_users
    python manage.py runserver
    python smoke_api.py --base-url http://127.0.0.1:8000
"""
import argparse
import sys
import time
from dataclasses import dataclass
from typing import Optional

import requests

BASE_URL = "http://127.0.0.1:8000"
PASSWORD = "test1234"

TEST_USERS = {
    "admin": "admin.test@hospital.ch",
    "doctor": "doctor.test@hospital.ch",
    "nurse": "nurse.test@hospital.ch",
    "reception": "reception.test@hospital.ch",
}

COMMON_CASES = [
    ("GET", "/api/healthz", None, 200),
    ("GET", "/api/user/role", None, 200),
    ("GET", "/api/patients", None, 200),
    ("GET", "/api/appointments", None, 200),
]

ROLE_CASES = {
    "admin": [
        ("GET", "/api/prescriptions", None, 200),
        ("GET", "/api/inventory", None, 200),
        ("GET", "/api/inventory/generate-code", None, 200),
        ("GET", "/api/billing", None, 200),
        ("GET", "/api/dashboard", None, 200),
        ("GET", "/api/dashboard/live", None, 200),
        ("GET", "/api/admin/users", None, 200),
        ("GET", "/api/admin/roles", None, 200),
        ("GET", "/api/admin/settings", None, 200),
        ("GET", "/api/admin/custom-fields", None, 200),
        ("GET", "/api/admin/company-info", None, 200),
    ],
    "doctor": [
        ("GET", "/api/prescriptions", None, 200),
        ("GET", "/api/inventory", None, 200),
        ("GET", "/api/dashboard", None, 200),
        ("GET", "/api/billing", None, 403),
        ("GET", "/api/admin/users", None, 403),
    ],
    "nurse": [
        ("GET", "/api/prescriptions", None, 200),
        ("POST", "/api/patients", {"firstName": "Smoke", "lastName": "Test"}, 403),
        ("GET", "/api/admin/settings", None, 403),
    ],
    "reception": [
        ("GET", "/api/billing", None, 200),
        ("POST", "/api/billing", {}, 403),
        ("GET", "/api/prescriptions", None, 403),
    ],
}


@dataclass
class CaseResult:
    role: str
    method: str
    endpoint: str
    status_code: int
    expected: int
    elapsed: float
    error: str = ""

    @property
    def success(self) -> bool:
        return self.status_code == self.expected


class SmokeTester:
    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.headers = {}
        self.results: list[CaseResult] = []

    def login(self, email: str) -> Optional[str]:
        try:
            resp = self.session.post(f"{self.base_url}/api/auth/login",
                                     json={"email": email, "password": PASSWORD}, timeout=10)
        except requests.RequestException as e:
            print(f"login {email}: {e}")
            return None
        if resp.status_code != 200:
            print(f"login {email}: {resp.status_code} {resp.text[:100]}")
            return None
        token = resp.json()["token"]
        self.headers = {"Authorization": f"Token {token}"}
        return token

    def call(self, role: str, method: str, endpoint: str, data, expected: int) -> CaseResult:
        started = time.time()
        error = ""
        try:
            resp = self.session.request(method, f"{self.base_url}{endpoint}", json=data,
                                        headers=self.headers, timeout=10)
            status_code = resp.status_code
            if status_code != expected:
                error = resp.text[:200]
        except requests.RequestException as e:
            status_code, error = 0, str(e)
        result = CaseResult(role, method, endpoint, status_code, expected, time.time() - started, error)
        mark = "ok  " if result.success else "FAIL"
        print(f"{mark} [{role}] {method} {endpoint} -> {status_code} (want {expected}, {result.elapsed:.2f}s)")
        self.results.append(result)
        return result

    def run_role(self, role: str) -> None:
        if not self.login(TEST_USERS[role]):
            self.results.append(CaseResult(role, "POST", "/api/auth/login", 0, 200, 0, "login failed"))
            return
        for method, endpoint, data, expected in COMMON_CASES + ROLE_CASES[role]:
            self.call(role, method, endpoint, data, expected)
        self.call(role, "POST", "/api/auth/logout", {}, 200)
        self.session.cookies.clear()
        self.headers = {}

    def run(self) -> int:
        for role in TEST_USERS:
            self.run_role(role)
        failed = [r for r in self.results if not r.success]
        print(f"\n{len(self.results) - len(failed)}/{len(self.results)} checks passed")
        for r in failed:
            print(f"  [{r.role}] {r.method} {r.endpoint}: {r.status_code} != {r.expected} {r.error}")
        return 1 if failed else 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--base-url", default=BASE_URL)
    args = parser.parse_args()
    return SmokeTester(args.base_url).run()


if __name__ == "__main__":
    sys.exit(main())
