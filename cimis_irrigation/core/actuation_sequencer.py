# cimis_irrigation/core/actuation_sequencer.py

import itertools
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from cimis_irrigation.config.global_config import ActuationSettings
from cimis_irrigation.core.acknowledgments import AcknowledgmentQueue
from cimis_irrigation.core.enums import SequencerState, ZoneActuationState
from cimis_irrigation.core.zone import Zone
from cimis_irrigation.exceptions import ActuationTimeout, ChannelConnectError
from cimis_irrigation.interfaces import CommandChannelLike
from cimis_irrigation.network.messages import Acknowledgment, ActuationRequest
from cimis_irrigation.utils.logger import get_logger
import cimis_irrigation.utils.time_utils as time_utils


@dataclass
class ActuationResult:
    """Outcome of one zone's command/acknowledgment transaction."""
    request: ActuationRequest
    state: ZoneActuationState
    sent_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    waited_ms: int = 0
    error: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.state == ZoneActuationState.CONFIRMED


class ActuationSequencer:
    """
    Drives relays one zone at a time: publish a command, wait for the matching
    acknowledgment up to duration + grace, then move on whatever the outcome.

    Zones never overlap: the next command is not published before the previous
    zone's full duration has elapsed, even if its acknowledgment came early.
    """

    def __init__(self,
                 channel: CommandChannelLike,
                 acknowledgments: AcknowledgmentQueue,
                 settings: ActuationSettings,
                 first_request_id: int = 1):
        self.channel = channel
        self.acknowledgments = acknowledgments
        self.settings = settings
        self.logger = get_logger(self.__class__.__name__)

        self._state = SequencerState.IDLE
        self._request_ids = itertools.count(first_request_id)

    @property
    def state(self) -> SequencerState:
        return self._state

    # ==================================================================================================================
    # Public API
    # ==================================================================================================================

    def run(self, zones: list[Zone]) -> list[ActuationResult]:
        """
        Actuate the given zones strictly in order. Blocking.

        :param zones: eligible zones (positive demand, online hardware), in registry order.
        :return: one result per zone.
        :raises ChannelConnectError: if the channel is not connected when the run starts.
        :raises RuntimeError: if the sequencer already ran.
        """
        if self._state != SequencerState.IDLE:
            raise RuntimeError(f"Sequencer cannot start from state {self._state.value}.")

        if not zones:
            self.logger.info("No zones eligible for actuation.")
            self._state = SequencerState.DONE
            return []

        if not self.channel.is_connected():
            raise ChannelConnectError("Messaging channel is not connected, refusing to actuate without acknowledgments.")

        self._state = SequencerState.RUNNING
        self.logger.info(f"Actuating {len(zones)} zones sequentially.")

        results = []
        for zone in zones:
            results.append(self._actuate(zone))

        self._state = SequencerState.DONE
        confirmed = sum(1 for r in results if r.confirmed)
        self.logger.info(f"Actuation finished: {confirmed}/{len(results)} zones confirmed.")
        return results

    # ==================================================================================================================
    # Private methods
    # ==================================================================================================================

    def _actuate(self, zone: Zone) -> ActuationResult:
        request = ActuationRequest(
            request_id=next(self._request_ids),
            zone_name=zone.name,
            relay_id=zone.relay_id,
            controller_id=zone.controller_id,
            duration_ms=self.settings.duration_ms(zone.computed_demand),
        )

        stale = self.acknowledgments.drain()
        if stale:
            self.logger.warning(f"Discarding {len(stale)} stale acknowledgment(s) before zone {zone.name}: {stale}")

        self.logger.info(
            f"Zone {zone.name} will be watered for {request.duration_ms} ms "
            f"(relay {request.relay_id}, controller {request.controller_id}, request {request.request_id})."
        )
        if not self.channel.publish_command(request):
            self.logger.error(f"Command for zone {zone.name} was rejected by the messaging channel. Zone skipped.")
            return ActuationResult(request=request, state=ZoneActuationState.PENDING, error="publish rejected")

        sent_monotonic = time.monotonic()
        zone.actuation_state = ZoneActuationState.COMMAND_SENT
        result = ActuationResult(request=request, state=ZoneActuationState.COMMAND_SENT, sent_at=time_utils.now())

        try:
            ack = self._await_acknowledgment(request, sent_monotonic)
        except ActuationTimeout as e:
            self.logger.warning(str(e))
            zone.actuation_state = ZoneActuationState.TIMED_OUT
            result.state = ZoneActuationState.TIMED_OUT
            result.waited_ms = e.waited_ms
            result.error = str(e)
        else:
            self.logger.info(f"Zone {zone.name} successfully watered (acknowledged {ack}).")
            zone.actuation_state = ZoneActuationState.CONFIRMED
            zone.last_confirmed_at = ack.received_at
            result.state = ZoneActuationState.CONFIRMED
            result.confirmed_at = ack.received_at
            result.waited_ms = int((time.monotonic() - sent_monotonic) * 1000)

        self._hold_until_duration_elapsed(request, sent_monotonic)
        return result

    def _await_acknowledgment(self, request: ActuationRequest, sent_monotonic: float) -> Acknowledgment:
        """
        Wait for an acknowledgment matching the request, up to duration + grace after publish.

        :raises ActuationTimeout: if the deadline passes first.
        """
        deadline = sent_monotonic + (request.duration_ms + self.settings.grace_ms) / 1000.0
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                waited_ms = int((time.monotonic() - sent_monotonic) * 1000)
                raise ActuationTimeout(
                    f"No acknowledgment for zone {request.zone_name} (relay {request.relay_id}, "
                    f"controller {request.controller_id}) after {waited_ms} ms.",
                    zone_name=request.zone_name,
                    waited_ms=waited_ms,
                )

            ack = self.acknowledgments.get(timeout=remaining)
            if ack is None:
                continue
            if request.matches(ack):
                return ack
            self.logger.debug(f"Ignoring acknowledgment {ack} not matching request {request.request_id}.")

    def _hold_until_duration_elapsed(self, request: ActuationRequest, sent_monotonic: float) -> None:
        remaining = request.duration_ms / 1000.0 - (time.monotonic() - sent_monotonic)
        if remaining > 0:
            self.logger.debug(f"Acknowledged early, holding {remaining:.3f} s before the next zone.")
            time.sleep(remaining)
