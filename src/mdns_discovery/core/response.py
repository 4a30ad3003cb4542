"""
Discovery Response Model

A read-only view over the resource records of one decoded mDNS packet.
"""

import ipaddress
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple, Union

from .message import (
    DNSMessage,
    DNSQuestion,
    DNSRecordType,
    DNSResourceRecord,
    names_equal,
)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True)
class SocketAddress:
    """IP address and port of an advertised service"""

    ip: IPAddress
    port: int

    def __str__(self) -> str:
        if self.ip.version == 6:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


@dataclass
class Response:
    """Records from one mDNS packet.

    ``hostname`` and ``socket_address`` are derived lazily and are ``None``
    when the packet does not carry correlatable SRV and address records. That
    is a valid outcome (the responder did not advertise an address), not an
    error.
    """

    answers: List[DNSResourceRecord] = field(default_factory=list)
    authority: List[DNSResourceRecord] = field(default_factory=list)
    additional: List[DNSResourceRecord] = field(default_factory=list)
    questions: List[DNSQuestion] = field(default_factory=list)
    source_address: Optional[Tuple[str, int]] = None

    @classmethod
    def from_message(
        cls, message: DNSMessage, source_address: Optional[Tuple[str, int]] = None
    ) -> "Response":
        """Build a response from a decoded packet"""
        return cls(
            questions=list(message.questions),
            answers=list(message.answers),
            authority=list(message.authority),
            additional=list(message.additional),
            source_address=source_address,
        )

    def records(self) -> Iterator[DNSResourceRecord]:
        """Iterate over answer, authority and additional records in order"""
        yield from self.answers
        yield from self.authority
        yield from self.additional

    def is_empty(self) -> bool:
        return not (self.answers or self.authority or self.additional)

    def _first_srv(self) -> Optional[DNSResourceRecord]:
        for record in self.records():
            if record.rtype == DNSRecordType.SRV and record.target:
                return record
        return None

    @property
    def hostname(self) -> Optional[str]:
        """Target host of the first SRV record, without the trailing dot"""
        srv = self._first_srv()
        if srv is None or srv.target == ".":
            return None
        return srv.target.rstrip(".")

    @property
    def port(self) -> Optional[int]:
        srv = self._first_srv()
        return srv.port if srv is not None else None

    @property
    def ip_addr(self) -> Optional[IPAddress]:
        """Address of the first A/AAAA record owned by ``hostname``"""
        hostname = self.hostname
        if hostname is None:
            return None

        for record in self.records():
            if (
                record.rtype in (DNSRecordType.A, DNSRecordType.AAAA)
                and record.address is not None
                and names_equal(record.name, hostname)
            ):
                return record.address
        return None

    @property
    def socket_address(self) -> Optional[SocketAddress]:
        ip = self.ip_addr
        port = self.port
        if ip is None or port is None:
            return None
        return SocketAddress(ip, port)

    def txt_records(self) -> Iterator[str]:
        """Decoded strings of every TXT record"""
        for record in self.records():
            if record.rtype == DNSRecordType.TXT:
                for text in record.texts:
                    yield text.decode("utf-8", errors="replace")
