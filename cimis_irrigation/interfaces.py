# cimis_irrigation/interfaces.py

from typing import Protocol

from cimis_irrigation.network.messages import ActuationRequest


# ==================================================================================================================
# MESSAGING CHANNEL INTERFACE
# ==================================================================================================================

class CommandChannelLike(Protocol):
    """
    Sequencer's view of the publish/subscribe transport. Acknowledgments flow back
    separately, through an AcknowledgmentQueue fed by the transport's receive thread.
    """

    def is_connected(self) -> bool:
        ...

    def publish_command(self, request: ActuationRequest) -> bool:
        """Publish the command on the controller's topic. Returns False if the transport rejected it."""
        ...
