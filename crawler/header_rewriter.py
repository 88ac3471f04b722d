"""
Rewrite security reporting headers so browser reports reach the telemetry endpoint.

Every function takes one header value and returns the new value. CSP and
Reporting-Endpoints are parsed into directive/member lists first; anything
that is not edited is serialized back exactly as received.

See:
- https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/Content-Security-Policy
- https://developer.mozilla.org/en-US/docs/Web/HTTP/Network_Error_Logging
- https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/Expect-CT
- https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/Content-Security-Policy/report-to
"""

import json
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional
from urllib.parse import urlsplit

REPORT_MAX_AGE = 1800
REPORT_GROUP = "default"

# Directives that need the endpoint origin to allow the reporting fetch
CSP_SOURCE_DIRECTIVES = ("default-src", "connect-src")
CSP_HEADERS = ("content-security-policy", "content-security-policy-report-only")

_LEADING_WS = re.compile(r"^\s*")
_TRAILING_WS = re.compile(r"\s*$")


def report_url(endpoint: str) -> str:
    return f"{endpoint}/report"


def endpoint_origin(endpoint: str) -> str:
    parts = urlsplit(endpoint)
    return f"{parts.scheme}://{parts.netloc}"


@dataclass
class _Segment:
    """One ";" or "," separated piece of a header, whitespace kept aside."""

    raw: str
    leading: str = ""
    body: str = ""
    trailing: str = ""
    dirty: bool = False

    @classmethod
    def parse(cls, raw: str) -> "_Segment":
        leading = _LEADING_WS.match(raw).group(0)
        rest = raw[len(leading):]
        trailing = _TRAILING_WS.search(rest).group(0)
        body = rest[:len(rest) - len(trailing)] if trailing else rest
        return cls(raw=raw, leading=leading, body=body, trailing=trailing)


@dataclass
class CSPDirective(_Segment):
    """A CSP directive: name plus source/value tokens."""

    name: str = ""
    values: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, raw: str) -> "CSPDirective":
        segment = _Segment.parse(raw)
        tokens = segment.body.split()
        return cls(
            raw=raw,
            leading=segment.leading,
            body=segment.body,
            trailing=segment.trailing,
            name=tokens[0].lower() if tokens else "",
            values=tokens[1:],
        )

    def set_values(self, values: List[str]) -> None:
        self.values = list(values)
        self.dirty = True

    def serialize(self) -> str:
        if not self.dirty:
            return self.raw
        body = " ".join([self.name] + self.values)
        return f"{self.leading}{body}{self.trailing}"


def parse_csp(header: str) -> List[CSPDirective]:
    """Split a CSP header into directives (empty pieces are kept for round trips)."""
    return [CSPDirective.parse(piece) for piece in header.split(";")]


def serialize_csp(directives: List[CSPDirective]) -> str:
    return ";".join(directive.serialize() for directive in directives)


def _find_directive(directives: List[CSPDirective], name: str) -> Optional[CSPDirective]:
    for directive in directives:
        if directive.name == name:
            return directive
    return None


def modify_csp_header(header: str, endpoint: str) -> str:
    """
    Let a Content-Security-Policy header report to the endpoint.

    - default-src and connect-src (each, when present) also allow the
      endpoint origin
    - an existing report-uri is pointed at the endpoint, otherwise one is
      appended
    """
    directives = parse_csp(header)
    origin = endpoint_origin(endpoint)

    for name in CSP_SOURCE_DIRECTIVES:
        directive = _find_directive(directives, name)
        if directive is not None:
            directive.set_values(directive.values + [origin])

    report_uri = _find_directive(directives, "report-uri")
    if report_uri is not None:
        report_uri.set_values([report_url(endpoint)])
        # Drop the trailing whitespace so the next ";" follows directly
        report_uri.trailing = ""
        return serialize_csp(directives)

    return f"{serialize_csp(directives)};report-uri {report_url(endpoint)}"


def nel_header() -> str:
    """Network Error Logging policy reporting to the default group."""
    return json.dumps(
        {"report_to": REPORT_GROUP, "max_age": REPORT_MAX_AGE},
        separators=(",", ":"),
    )


def expect_ct_header(endpoint: str) -> str:
    return f'max-age={REPORT_MAX_AGE}, report-uri="{report_url(endpoint)}"'


def modify_report_to_header(header: Optional[str], endpoint: str) -> str:
    """Prepend the default reporting group to any existing Report-To groups."""
    group = json.dumps(
        {
            "max_age": REPORT_MAX_AGE,
            "endpoints": [{"url": report_url(endpoint)}],
            "group": REPORT_GROUP,
        },
        separators=(",", ":"),
    )
    if not header:
        return group
    return f"{group},{header}"


@dataclass
class ReportingEndpoint(_Segment):
    """One name=url member of a Reporting-Endpoints header."""

    name: str = ""

    @classmethod
    def parse(cls, raw: str) -> "ReportingEndpoint":
        segment = _Segment.parse(raw)
        name = segment.body.split("=", 1)[0].strip() if "=" in segment.body else ""
        return cls(
            raw=raw,
            leading=segment.leading,
            body=segment.body,
            trailing=segment.trailing,
            name=name,
        )

    def set_url(self, url: str) -> None:
        self.body = f"{self.name}={url}"
        self.trailing = ""
        self.dirty = True

    def serialize(self) -> str:
        if not self.dirty:
            return self.raw
        return f"{self.leading}{self.body}{self.trailing}"


def modify_reporting_endpoints_header(header: Optional[str], endpoint: str) -> str:
    """
    Point the "default" reporting endpoint at the endpoint.

    An existing default member is replaced in place, other members are kept.
    """
    if not header:
        return f'{REPORT_GROUP}="{report_url(endpoint)}"'

    members = [ReportingEndpoint.parse(piece) for piece in header.split(",")]

    for member in members:
        if member.name == REPORT_GROUP:
            member.set_url(report_url(endpoint))
            return ",".join(m.serialize() for m in members)

    return f'{header}, {REPORT_GROUP}="{report_url(endpoint)}"'


def rewrite_response_headers(headers: Mapping[str, str], endpoint: str) -> Dict[str, str]:
    """
    Apply every reporting header rewrite to a response header mapping.

    Args:
        headers: Response headers with lower-case names
        endpoint: Telemetry API endpoint (no trailing slash)

    Returns:
        New header dict
    """
    new_headers = dict(headers)

    for name in CSP_HEADERS:
        if new_headers.get(name):
            new_headers[name] = modify_csp_header(new_headers[name], endpoint)

    new_headers["expect-ct"] = expect_ct_header(endpoint)
    new_headers["nel"] = nel_header()
    new_headers["report-to"] = modify_report_to_header(new_headers.get("report-to"), endpoint)
    new_headers["reporting-endpoints"] = modify_reporting_endpoints_header(
        new_headers.get("reporting-endpoints"), endpoint
    )

    return new_headers
