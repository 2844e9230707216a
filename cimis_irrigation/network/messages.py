"""
Wire format of the relay command/acknowledgment exchange.

Command (one topic per controller):
    "<relay_id> <duration_ms>"                  legacy
    "<relay_id> <duration_ms> <request_id>"     firmware reading two integers ignores the third

Acknowledgment (shared topic):
    "<controller_id> <relay_id> <request_id>"
    "<controller_id> <relay_id>"
    "<combined>"    multi-digit: first digit is the controller, the rest the relay ("14" -> 1, 4)
                    single digit: relay only, controller unknown
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import cimis_irrigation.utils.time_utils as time_utils


@dataclass(frozen=True)
class ActuationRequest:
    request_id: int
    zone_name: str
    relay_id: int
    controller_id: int
    duration_ms: int

    def matches(self, ack: "Acknowledgment") -> bool:
        """
        True if the acknowledgment refers to this command. Fields missing from the
        acknowledgment (legacy payloads) are not compared.
        """
        if ack.relay_id != self.relay_id:
            return False
        if ack.controller_id is not None and ack.controller_id != self.controller_id:
            return False
        if ack.request_id is not None and ack.request_id != self.request_id:
            return False
        return True


@dataclass(frozen=True)
class Acknowledgment:
    relay_id: int
    controller_id: Optional[int] = None
    request_id: Optional[int] = None
    received_at: datetime = field(default_factory=time_utils.now, compare=False)


def encode_command(request: ActuationRequest, include_request_id: bool = True) -> str:
    if include_request_id:
        return f"{request.relay_id} {request.duration_ms} {request.request_id}"
    return f"{request.relay_id} {request.duration_ms}"


def parse_acknowledgment(payload: str) -> Acknowledgment:
    """
    Normalizes every supported acknowledgment form.

    :raises ValueError: if the payload is empty, not made of integers, or has too many fields.
    """
    tokens = payload.strip().split()
    if not tokens:
        raise ValueError("Empty acknowledgment payload.")
    if len(tokens) > 3:
        raise ValueError(f"Unexpected acknowledgment payload '{payload}'.")
    if not all(token.isdigit() for token in tokens):
        raise ValueError(f"Acknowledgment payload '{payload}' is not made of non-negative integers.")

    if len(tokens) == 3:
        return Acknowledgment(controller_id=int(tokens[0]), relay_id=int(tokens[1]), request_id=int(tokens[2]))
    if len(tokens) == 2:
        return Acknowledgment(controller_id=int(tokens[0]), relay_id=int(tokens[1]))

    combined = tokens[0].lstrip("0") or "0"
    if len(combined) == 1:
        return Acknowledgment(relay_id=int(combined))
    return Acknowledgment(controller_id=int(combined[0]), relay_id=int(combined[1:]))
