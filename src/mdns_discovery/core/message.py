"""
DNS Message Codec Module

This module implements the RFC 1035 wire format as used by multicast DNS
(RFC 6762):
- DNS header parsing/construction
- Question section handling, including the mDNS unicast-response bit
- Answer/Authority/Additional sections, including the mDNS cache-flush bit
- Typed record data for the records service discovery relies on
  (A, AAAA, PTR, SRV, TXT)
"""

import ipaddress
import logging
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

# Top bit of the class field: QU in questions, cache-flush in records.
MDNS_CLASS_FLAG = 0x8000
MAX_NAME_LENGTH = 255
MAX_LABEL_LENGTH = 63
MAX_POINTER_JUMPS = 64


class DNSFormatError(ValueError):
    """Raised when bytes cannot be decoded as a DNS message"""


class DNSRecordType(IntEnum):
    """DNS Record Types"""

    A = 1
    NS = 2
    CNAME = 5
    SOA = 6
    PTR = 12
    MX = 15
    TXT = 16
    AAAA = 28
    SRV = 33
    NSEC = 47
    ANY = 255


class DNSClass(IntEnum):
    """DNS Classes"""

    IN = 1
    CS = 2
    CH = 3
    HS = 4
    ANY = 255


@dataclass
class DNSHeader:
    """DNS Message Header"""

    transaction_id: int
    flags: int
    question_count: int = 0
    answer_count: int = 0
    authority_count: int = 0
    additional_count: int = 0

    # Flag field components
    qr: bool = False  # Query/Response bit
    opcode: int = 0  # Operation code
    aa: bool = False  # Authoritative Answer
    tc: bool = False  # Truncation
    rd: bool = False  # Recursion Desired, always clear in mDNS queries
    ra: bool = False  # Recursion Available
    z: int = 0  # Reserved (must be zero)
    rcode: int = 0  # Response code

    def __post_init__(self):
        """Update flags based on individual flag components"""
        self.flags = (
            (int(self.qr) << 15)
            | (self.opcode << 11)
            | (int(self.aa) << 10)
            | (int(self.tc) << 9)
            | (int(self.rd) << 8)
            | (int(self.ra) << 7)
            | (self.z << 4)
            | self.rcode
        )

    @classmethod
    def parse_flags(cls, flags: int) -> Dict[str, Union[bool, int]]:
        """Parse flags field into individual components"""
        return {
            "qr": bool(flags & 0x8000),
            "opcode": (flags >> 11) & 0x0F,
            "aa": bool(flags & 0x0400),
            "tc": bool(flags & 0x0200),
            "rd": bool(flags & 0x0100),
            "ra": bool(flags & 0x0080),
            "z": (flags >> 4) & 0x07,
            "rcode": flags & 0x0F,
        }

    def to_bytes(self) -> bytes:
        """Convert header to bytes"""
        return struct.pack(
            "!HHHHHH",
            self.transaction_id,
            self.flags,
            self.question_count,
            self.answer_count,
            self.authority_count,
            self.additional_count,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "DNSHeader":
        """Parse header from bytes"""
        if len(data) < 12:
            raise DNSFormatError("Invalid DNS header: too short")

        tid, flags, qcount, acount, authcount, addcount = struct.unpack(
            "!HHHHHH", data[:12]
        )

        return cls(
            transaction_id=tid,
            flags=flags,
            question_count=qcount,
            answer_count=acount,
            authority_count=authcount,
            additional_count=addcount,
            **cls.parse_flags(flags),
        )


def encode_name(name: str) -> bytes:
    """Encode domain name using DNS label encoding"""
    if name in ("", "."):
        return b"\x00"

    labels = name[:-1].split(".") if name.endswith(".") else name.split(".")
    result = b""
    for label in labels:
        label_bytes = label.encode("utf-8")
        if not label_bytes:
            raise ValueError(f"Empty label in name: {name!r}")
        if len(label_bytes) > MAX_LABEL_LENGTH:
            raise ValueError(f"Label too long: {label}")
        result += struct.pack("!B", len(label_bytes)) + label_bytes
    result += b"\x00"  # Root label

    if len(result) > MAX_NAME_LENGTH:
        raise ValueError(f"Name too long: {name!r}")
    return result


def decode_name(data: bytes, offset: int) -> Tuple[str, int]:
    """Decode DNS name with compression support.

    Compression pointers may only point backwards, and at most
    ``MAX_POINTER_JUMPS`` of them are followed, so pointer loops in hostile
    packets terminate with a ``DNSFormatError``.

    Returns:
        Tuple of (name with trailing dot, offset just past the name)
    """
    labels = []
    end_offset = None
    jumps = 0
    encoded_length = 1

    while True:
        if offset >= len(data):
            raise DNSFormatError("Invalid name: offset out of bounds")

        length = data[offset]

        if length == 0:
            offset += 1
            break
        elif (length & 0xC0) == 0xC0:
            if offset + 1 >= len(data):
                raise DNSFormatError("Invalid compression pointer")
            pointer = ((length & 0x3F) << 8) | data[offset + 1]
            if pointer >= offset:
                raise DNSFormatError(f"Forward compression pointer at {offset}")
            jumps += 1
            if jumps > MAX_POINTER_JUMPS:
                raise DNSFormatError("Too many compression pointers")
            if end_offset is None:
                end_offset = offset + 2
            offset = pointer
        elif length & 0xC0:
            raise DNSFormatError(f"Unsupported label type 0x{length:02x}")
        else:
            if offset + length + 1 > len(data):
                raise DNSFormatError("Invalid label: length exceeds data")
            encoded_length += length + 1
            if encoded_length > MAX_NAME_LENGTH:
                raise DNSFormatError("Invalid name: longer than 255 octets")
            label = data[offset + 1 : offset + 1 + length]
            labels.append(label.decode("utf-8", errors="replace"))
            offset += length + 1

    name = ".".join(labels) + "." if labels else "."
    return name, end_offset if end_offset is not None else offset


def names_equal(first: str, second: str) -> bool:
    """Compare two domain names case-insensitively, ignoring the root dot"""
    return first.rstrip(".").lower() == second.rstrip(".").lower()


@dataclass
class DNSQuestion:
    """DNS Question Section"""

    name: str
    qtype: int
    qclass: int
    unicast_response: bool = False  # mDNS "QU" bit

    def to_bytes(self) -> bytes:
        """Convert question to bytes"""
        qclass = self.qclass | (MDNS_CLASS_FLAG if self.unicast_response else 0)
        return encode_name(self.name) + struct.pack("!HH", self.qtype, qclass)

    @classmethod
    def parse(cls, data: bytes, offset: int) -> Tuple["DNSQuestion", int]:
        """Parse question from bytes at given offset"""
        name, new_offset = decode_name(data, offset)
        if new_offset + 4 > len(data):
            raise DNSFormatError("Invalid question: not enough data for type and class")

        qtype, qclass = struct.unpack("!HH", data[new_offset : new_offset + 4])
        question = cls(
            name=name,
            qtype=qtype,
            qclass=qclass & ~MDNS_CLASS_FLAG,
            unicast_response=bool(qclass & MDNS_CLASS_FLAG),
        )
        return question, new_offset + 4


@dataclass
class DNSResourceRecord:
    """DNS Resource Record

    ``rdata`` holds the raw record data. Typed fields are filled in by
    ``parse`` for the record types service discovery needs; names inside
    record data are resolved against the whole packet so that compression
    pointers work.
    """

    name: str
    rtype: int
    rclass: int
    ttl: int
    rdata: bytes
    cache_flush: bool = False  # mDNS cache-flush bit

    address: Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]] = None
    target: Optional[str] = None
    port: Optional[int] = None
    priority: Optional[int] = None
    weight: Optional[int] = None
    texts: List[bytes] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        """Convert resource record to bytes (without name compression)"""
        rclass = self.rclass | (MDNS_CLASS_FLAG if self.cache_flush else 0)
        header = struct.pack("!HHIH", self.rtype, rclass, self.ttl, len(self.rdata))
        return encode_name(self.name) + header + self.rdata

    @classmethod
    def parse(cls, data: bytes, offset: int) -> Tuple["DNSResourceRecord", int]:
        """Parse resource record from bytes at given offset"""
        name, new_offset = decode_name(data, offset)

        if new_offset + 10 > len(data):
            raise DNSFormatError("Invalid resource record: not enough data for header")

        rtype, rclass, ttl, rdlength = struct.unpack(
            "!HHIH", data[new_offset : new_offset + 10]
        )
        new_offset += 10

        if new_offset + rdlength > len(data):
            raise DNSFormatError("Invalid resource record: not enough data for rdata")

        record = cls(
            name=name,
            rtype=rtype,
            rclass=rclass & ~MDNS_CLASS_FLAG,
            ttl=ttl,
            rdata=data[new_offset : new_offset + rdlength],
            cache_flush=bool(rclass & MDNS_CLASS_FLAG),
        )
        record._decode_rdata(data, new_offset)

        return record, new_offset + rdlength

    def _decode_rdata(self, packet: bytes, offset: int) -> None:
        """Fill typed fields from rdata located at ``offset`` in ``packet``"""
        rdata = self.rdata
        if self.rtype == DNSRecordType.A:
            if len(rdata) != 4:
                raise DNSFormatError(f"Invalid A record length: {len(rdata)}")
            self.address = ipaddress.IPv4Address(rdata)
        elif self.rtype == DNSRecordType.AAAA:
            if len(rdata) != 16:
                raise DNSFormatError(f"Invalid AAAA record length: {len(rdata)}")
            self.address = ipaddress.IPv6Address(rdata)
        elif self.rtype in (DNSRecordType.PTR, DNSRecordType.CNAME, DNSRecordType.NS):
            self.target, _ = decode_name(packet[: offset + len(rdata)], offset)
        elif self.rtype == DNSRecordType.SRV:
            if len(rdata) < 7:
                raise DNSFormatError(f"Invalid SRV record length: {len(rdata)}")
            self.priority, self.weight, self.port = struct.unpack("!HHH", rdata[:6])
            self.target, _ = decode_name(packet[: offset + len(rdata)], offset + 6)
        elif self.rtype == DNSRecordType.TXT:
            position = 0
            while position < len(rdata):
                length = rdata[position]
                if position + length + 1 > len(rdata):
                    raise DNSFormatError("Invalid TXT record: string exceeds rdata")
                self.texts.append(rdata[position + 1 : position + 1 + length])
                position += length + 1

    def get_readable_rdata(self) -> str:
        """Get human-readable representation of rdata"""
        if self.address is not None:
            return str(self.address)
        if self.rtype == DNSRecordType.SRV:
            return f"{self.priority} {self.weight} {self.port} {self.target}"
        if self.target is not None:
            return self.target
        if self.rtype == DNSRecordType.TXT:
            strings = [text.decode("utf-8", errors="replace") for text in self.texts]
            return '"' + '" "'.join(strings) + '"'
        return self.rdata.hex()


@dataclass
class DNSMessage:
    """Complete DNS Message"""

    header: DNSHeader
    questions: List[DNSQuestion]
    answers: List[DNSResourceRecord]
    authority: List[DNSResourceRecord]
    additional: List[DNSResourceRecord]

    def to_bytes(self) -> bytes:
        """Convert entire message to bytes"""
        # Update counts in header
        self.header.question_count = len(self.questions)
        self.header.answer_count = len(self.answers)
        self.header.authority_count = len(self.authority)
        self.header.additional_count = len(self.additional)

        result = self.header.to_bytes()

        for question in self.questions:
            result += question.to_bytes()

        for record in self.answers + self.authority + self.additional:
            result += record.to_bytes()

        return result

    @classmethod
    def from_bytes(cls, data: bytes) -> "DNSMessage":
        """Parse complete DNS message from bytes

        Raises:
            DNSFormatError: If the bytes are not a well-formed DNS message
        """
        if len(data) < 12:
            raise DNSFormatError("Invalid DNS message: too short")

        header = DNSHeader.from_bytes(data)
        offset = 12

        questions = []
        for _ in range(header.question_count):
            question, offset = DNSQuestion.parse(data, offset)
            questions.append(question)

        sections = []
        for count in (
            header.answer_count,
            header.authority_count,
            header.additional_count,
        ):
            records = []
            for _ in range(count):
                record, offset = DNSResourceRecord.parse(data, offset)
                records.append(record)
            sections.append(records)

        answers, authority, additional = sections
        return cls(
            header=header,
            questions=questions,
            answers=answers,
            authority=authority,
            additional=additional,
        )

    def is_query(self) -> bool:
        """Check if this is a query message"""
        return not self.header.qr

    def is_response(self) -> bool:
        """Check if this is a response message"""
        return self.header.qr

    def records(self) -> List[DNSResourceRecord]:
        """All resource records: answers, then authority, then additional"""
        return self.answers + self.authority + self.additional


def build_query(service_name: str, unicast_response: bool = False) -> bytes:
    """Build the mDNS discovery query for ``service_name``.

    One PTR/IN question, transaction id 0 and no recursion; mDNS responders
    ignore the id, so responses are matched by content.
    """
    header = DNSHeader(transaction_id=0, flags=0)
    question = DNSQuestion(
        service_name, DNSRecordType.PTR, DNSClass.IN, unicast_response
    )
    message = DNSMessage(
        header=header, questions=[question], answers=[], authority=[], additional=[]
    )
    return message.to_bytes()


def create_a_record(name: str, ip: str, ttl: int = 120) -> DNSResourceRecord:
    """Create an A record"""
    address = ipaddress.IPv4Address(ip)
    return DNSResourceRecord(
        name=name,
        rtype=DNSRecordType.A,
        rclass=DNSClass.IN,
        ttl=ttl,
        rdata=address.packed,
        address=address,
    )


def create_aaaa_record(name: str, ip: str, ttl: int = 120) -> DNSResourceRecord:
    """Create an AAAA record"""
    address = ipaddress.IPv6Address(ip)
    return DNSResourceRecord(
        name=name,
        rtype=DNSRecordType.AAAA,
        rclass=DNSClass.IN,
        ttl=ttl,
        rdata=address.packed,
        address=address,
    )


def create_ptr_record(name: str, target: str, ttl: int = 4500) -> DNSResourceRecord:
    """Create a PTR record"""
    return DNSResourceRecord(
        name=name,
        rtype=DNSRecordType.PTR,
        rclass=DNSClass.IN,
        ttl=ttl,
        rdata=encode_name(target),
        target=target,
    )


def create_srv_record(
    name: str,
    target: str,
    port: int,
    priority: int = 0,
    weight: int = 0,
    ttl: int = 120,
) -> DNSResourceRecord:
    """Create an SRV record"""
    rdata = struct.pack("!HHH", priority, weight, port) + encode_name(target)
    return DNSResourceRecord(
        name=name,
        rtype=DNSRecordType.SRV,
        rclass=DNSClass.IN,
        ttl=ttl,
        rdata=rdata,
        target=target,
        port=port,
        priority=priority,
        weight=weight,
    )


def create_txt_record(name: str, *texts: str, ttl: int = 4500) -> DNSResourceRecord:
    """Create a TXT record, one character-string per entry"""
    chunks = [text.encode("utf-8")[:255] for text in texts] or [b""]
    rdata = b"".join(struct.pack("!B", len(chunk)) + chunk for chunk in chunks)
    return DNSResourceRecord(
        name=name,
        rtype=DNSRecordType.TXT,
        rclass=DNSClass.IN,
        ttl=ttl,
        rdata=rdata,
        texts=chunks,
    )
