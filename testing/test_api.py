"""
Quick API smoke test for GatherGuru against a locally running backend.
Tests: register organizer, login, create event, banner, ticketing, publish, public read.
"""

import struct
import zlib

import requests

BASE = "http://localhost:5000/api"


def tiny_png():
    def chunk(kind, data):
        body = kind + data
        return struct.pack(">I", len(data)) + body + struct.pack(">I", zlib.crc32(body) & 0xFFFFFFFF)

    header = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
    pixels = zlib.compress(b"\x00\xff\x00\x00")
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", header) + chunk(b"IDAT", pixels) + chunk(b"IEND", b"")


# The session keeps the httpOnly token cookie between calls
s = requests.Session()

# 1) Register an organizer
r = s.post(f"{BASE}/organizer/register", json={
    "email": "organizer@example.com",
    "password": "password123",
    "name": "Test Organizer",
    "organization": "Smoke Test Co"
})
print("REGISTER:", r.status_code, r.json())

# 2) Login with same credentials
r = s.post(f"{BASE}/organizer/login", json={
    "email": "organizer@example.com",
    "password": "password123"
})
print("LOGIN:", r.status_code, r.json())

# 3) Create the event basics
r = s.post(f"{BASE}/events", json={
    "title": "First Test Event",
    "description": "Simple test",
    "category": "Technology",
    "start_date": "2030-10-20T10:00:00Z",
    "end_date": "2030-10-20T11:00:00Z",
    "location": "Room 101"
})
print("CREATE EVENT:", r.status_code, r.json())
event_id = r.json()["event"]["id"]

# 4) Attach a banner
r = s.patch(f"{BASE}/events/{event_id}/banner",
            files={"eventBanner": ("banner.png", tiny_png(), "image/png")})
print("BANNER:", r.status_code, r.json())

# 5) Ticketing
r = s.patch(f"{BASE}/events/{event_id}/ticketing", json={
    "ticket_type": "free",
    "tiers": [{"name": "General", "price": 0, "quantity": 50}]
})
print("TICKETING:", r.status_code, r.json())

# 6) Publish
r = s.patch(f"{BASE}/events/{event_id}/publish")
print("PUBLISH:", r.status_code, r.json())

# 7) Read it back without a session
r = requests.get(f"{BASE}/events/{event_id}")
print("PUBLIC EVENT:", r.status_code, r.json())

r = requests.get(f"{BASE}/events/all")
print("LIST EVENTS:", r.status_code, r.json())
