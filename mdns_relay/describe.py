import logging

from dnslib import QTYPE, DNSRecord
from dnslib.dns import DNSError

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


def _label(name) -> str:
    return str(name).rstrip(".")


def describe_message(payload: bytes) -> str:
    """Return e.g. "query:PTR _http._tcp.local" for log lines.

    Only the first question (or first answer) is described. Anything dnslib
    cannot decode yields "unknown"; the caller forwards the bytes regardless.
    """
    try:
        record = DNSRecord.parse(payload)
    except (DNSError, ValueError, IndexError, UnicodeDecodeError) as err:
        logger.debug("Cannot decode mDNS payload (%d bytes): %s", len(payload), err)
        return UNKNOWN

    if record.questions:
        question = record.questions[0]
        return f"query:{QTYPE.get(question.qtype)} {_label(question.qname)}"
    if record.rr:
        answer = record.rr[0]
        return f"answer:{QTYPE.get(answer.rtype)} {_label(answer.rname)}"
    return UNKNOWN
