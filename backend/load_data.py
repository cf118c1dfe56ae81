"""
Data Loader Script - Loads sample_courses.json into the catalog via API.

Logs in with an admin account and creates each course through the courses
endpoint. Courses whose code already exists are reported and skipped, so the
script can be re-run against the same database.

Usage:
    python load_data.py                              # Uses default URL
    python load_data.py http://localhost:8000         # Custom API URL

Credentials are read from SIMS_ADMIN_USERNAME / SIMS_ADMIN_PASSWORD, falling
back to the bootstrap admin variables.
"""

import json
import os
import sys

import httpx


def login(client: httpx.Client, api_url: str, username: str, password: str) -> str:
    resp = client.post(f"{api_url}/api/auth/login",
                       json={"username": username, "password": password})
    if resp.status_code != 200:
        print(f"Login failed ({resp.status_code}): {resp.text}")
        sys.exit(1)
    return resp.json()["token"]


def main():
    # Determine API base URL
    api_url = sys.argv[1] if len(sys.argv) > 1 else os.getenv("API_URL", "http://localhost:8000")
    username = os.getenv("SIMS_ADMIN_USERNAME", os.getenv("SIMS_BOOTSTRAP_ADMIN_USERNAME", "admin"))
    password = os.getenv("SIMS_ADMIN_PASSWORD", os.getenv("SIMS_BOOTSTRAP_ADMIN_PASSWORD"))
    if not password:
        print("Error: set SIMS_ADMIN_PASSWORD")
        sys.exit(1)

    # Locate the data file
    data_file = os.path.join(os.path.dirname(os.path.abspath(__file__)), "sample_courses.json")
    if not os.path.exists(data_file):
        # Try current directory
        data_file = "sample_courses.json"

    if not os.path.exists(data_file):
        print("Error: Could not find sample_courses.json")
        sys.exit(1)

    print(f"Loading data from: {data_file}")
    with open(data_file, 'r') as f:
        courses = json.load(f)

    print(f"Found {len(courses)} courses to load")
    print(f"Sending to: {api_url}/api/courses")
    print()

    created, skipped, failed = 0, 0, 0
    with httpx.Client(timeout=30.0) as client:
        token = login(client, api_url, username, password)
        headers = {"Authorization": f"Bearer {token}"}

        for course in courses:
            code = course.get("course_code", "?")
            resp = client.post(f"{api_url}/api/courses", json=course, headers=headers)
            if resp.status_code == 201:
                created += 1
                print(f"  ✅ {code}: created ({resp.json()['id']})")
            elif resp.status_code == 400 and "already exists" in resp.text:
                skipped += 1
                print(f"  🔁 {code}: already exists")
            else:
                failed += 1
                print(f"  ❌ {code}: {resp.status_code} {resp.text}")

    print()
    print("=" * 60)
    print("CATALOG LOAD SUMMARY")
    print("=" * 60)
    print(f"  Total Courses:   {len(courses)}")
    print(f"  Created:         {created}")
    print(f"  Already Present: {skipped}")
    print(f"  Errors:          {failed}")
    print("=" * 60)

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
