"""
mDNS Session Errors

Transport failures that end a discovery session. Malformed datagrams are not
errors at this level; they are reported through the listener's decode-error
hook and the session carries on.
"""


class MDNSError(Exception):
    """Base class for session-fatal mDNS transport errors"""


class SocketSetupError(MDNSError):
    """Socket creation, option configuration or bind failed"""


class MulticastJoinError(MDNSError):
    """Joining the mDNS multicast group failed"""


class SendError(MDNSError):
    """Transmitting a query failed"""


class ReceiveError(MDNSError):
    """Receiving from the multicast socket failed"""
