"""Reusable test helpers for the ticket lifecycle API to reduce duplication.

Patterns unified:
 - Auth header creation using direct JWT claims (no login endpoint exists).
 - Creation + status transition sequencing with assertion helpers.
"""
from __future__ import annotations
from typing import Dict, List
from flask_jwt_extended import create_access_token

STAFF_PERMS = ['RPR.READ', 'RPR.MANAGE']
MANAGER_PERMS = ['RPR.READ', 'RPR.MANAGE', 'RPR.OVERRIDE']

TICKET_PAYLOAD = {
    'customer_name': 'Alice Walker',
    'customer_email': 'alice@example.com',
    'customer_phone': '+1 555 0100',
    'device_type': 'Smartphone',
    'device_brand': 'Apple',
    'device_model': 'iPhone 13 Pro',
    'issue_description': 'Cracked screen',
}

# ---------- Generic Auth Helpers ---------- #

def jwt_headers(user_id: int, perms: List[str]):
    token = create_access_token(identity=str(user_id), additional_claims={'perms': perms})
    return {'Authorization': f'Bearer {token}'}

# ---------- Assertion Helpers ---------- #

def create_ticket_and_assert(client, headers: Dict[str, str], **overrides):
    resp = client.post('/repairs/tickets', json={**TICKET_PAYLOAD, **overrides}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['status'] == 'received'
    return body


def assert_status_change(client, ticket_id: int, headers: Dict[str, str], target: str, expected_status: int = 200, override: bool = False):
    payload = {'status': target}
    if override:
        payload['override'] = True
    resp = client.patch(f'/repairs/tickets/{ticket_id}', json=payload, headers=headers)
    assert resp.status_code == expected_status, resp.get_json()
    if expected_status < 400:
        assert resp.get_json()['status'] == target
    return resp


def exercise_ticket_lifecycle(client, headers):
    ticket = create_ticket_and_assert(client, headers)
    tid = ticket['id']
    for target in ['diagnosing', 'awaiting_parts', 'repairing', 'quality_check', 'ready', 'completed']:
        assert_status_change(client, tid, headers, target)
    return tid

__all__ = [
    'STAFF_PERMS', 'MANAGER_PERMS', 'TICKET_PAYLOAD', 'jwt_headers',
    'create_ticket_and_assert', 'assert_status_change', 'exercise_ticket_lifecycle',
]
