import threading
from collections.abc import Callable

import paho.mqtt.client as mqtt

from cimis_irrigation.config.global_config import MqttSettings
from cimis_irrigation.exceptions import ChannelConnectError
from cimis_irrigation.network.messages import Acknowledgment, ActuationRequest, encode_command, parse_acknowledgment
from cimis_irrigation.utils.logger import get_logger


class MQTTChannel:
    """
    Publishes relay commands and receives acknowledgments. paho-mqtt runs its network
    loop on its own thread; received acknowledgments are handed to on_acknowledgment
    from that thread.
    """

    def __init__(self, settings: MqttSettings, on_acknowledgment: Callable[[Acknowledgment], object]):
        self.settings = settings
        self.on_acknowledgment = on_acknowledgment
        self.logger = get_logger("MQTTChannel")

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=settings.client_id)
        if settings.username is not None:
            self.client.username_pw_set(settings.username, settings.password)

        self._connected = threading.Event()
        self._loop_started = False

        # MQTT callbacks
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

    # MQTT callbacks
    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code == 0:
            self.logger.info(f"Connected to broker. Subscribing to {self.settings.ack_topic}")
            client.subscribe(self.settings.ack_topic)
            self._connected.set()
        else:
            self.logger.error(f"MQTT connection failed with code {reason_code}")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):
        self._connected.clear()
        if reason_code != 0:
            self.logger.warning(f"Unexpectedly disconnected from broker ({reason_code}).")

    def _on_message(self, client, userdata, msg):
        try:
            payload = msg.payload.decode("utf-8")
        except UnicodeDecodeError:
            self.logger.warning(f"Ignoring undecodable message on {msg.topic}.")
            return
        self.logger.debug(f"Received message on {msg.topic}: {payload}")
        try:
            ack = parse_acknowledgment(payload)
        except ValueError as e:
            self.logger.warning(f"Ignoring malformed acknowledgment: {e}")
            return
        self.on_acknowledgment(ack)

    # ------------------- Public methods ------------------- #

    def connect(self) -> None:
        """
        Connects, starts the network loop and waits for the broker to accept the session.

        :raises ChannelConnectError: if the broker cannot be reached within connect_timeout.
        """
        try:
            self.client.connect(self.settings.host, self.settings.port, keepalive=self.settings.keepalive)
        except (OSError, ValueError) as e:
            raise ChannelConnectError(
                f"Connecting to MQTT broker {self.settings.host}:{self.settings.port} failed: {e}"
            ) from e

        self.client.loop_start()
        self._loop_started = True
        self.logger.info("MQTT loop started.")

        if not self._connected.wait(self.settings.connect_timeout):
            self.disconnect()
            raise ChannelConnectError(
                f"MQTT broker {self.settings.host}:{self.settings.port} did not accept the connection "
                f"within {self.settings.connect_timeout} s."
            )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def publish_command(self, request: ActuationRequest) -> bool:
        """Publish a command to the controller of the request."""
        topic = self.settings.command_topic_for(request.controller_id)
        payload = encode_command(request, include_request_id=self.settings.include_request_id)
        info = self.client.publish(topic, payload, qos=0, retain=False)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self.logger.error(f"Publishing to {topic} failed with code {info.rc}")
            return False
        self.logger.info(f"Command published to {topic}: {payload}")
        return True

    def disconnect(self) -> None:
        if self._loop_started:
            self.client.loop_stop()
            self._loop_started = False
        self.client.disconnect()
        self._connected.clear()
        self.logger.info("MQTT client stopped.")
