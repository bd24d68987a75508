"""
FoxTab - Data Model
Captured request snapshot and the option set a scan is configured with.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, field_validator


# Numeric option ranges: (default, minimum, maximum)
WORKERS_RANGE = (100, 1, 500)
TIMEOUT_RANGE = (10, 1, 120)
DELAY_RANGE = (0, 0, 10000)
SCAN_TIMEOUT_RANGE = (30, 1, 120)


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


@dataclass(frozen=True)
class Header:
    """A single request header; names compare case-insensitively."""
    name: str
    value: str

    def is_named(self, name: str) -> bool:
        return self.name.lower() == name.lower()

    def __str__(self) -> str:
        return f"{self.name}: {self.value}"


@dataclass(frozen=True)
class RequestContext:
    """Immutable snapshot of the request a scan targets."""
    method: str
    url: str
    body: str = ""
    headers: Tuple[Header, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept bytes bodies and (name, value) pairs; store canonical forms
        if isinstance(self.body, (bytes, bytearray)):
            object.__setattr__(self, "body", bytes(self.body).decode("utf-8", errors="replace"))
        elif self.body is None:
            object.__setattr__(self, "body", "")
        object.__setattr__(self, "headers", tuple(
            h if isinstance(h, Header) else Header(str(h[0]), str(h[1]))
            for h in self.headers
        ))

    def header(self, name: str) -> Optional[str]:
        """Value of the first header called `name`, or None."""
        for h in self.headers:
            if h.is_named(name):
                return h.value
        return None

    @property
    def content_type(self) -> str:
        return (self.header("Content-Type") or "").lower()

    def render_details(self) -> str:
        """Human-readable request block shown next to a scan's output."""
        lines = [f"{self.method} {self.url}", ""]
        lines.extend(str(h) for h in self.headers)
        lines.append("")
        lines.append(self.body)
        return "\n".join(lines)


class ScanMode(str, Enum):
    URL = "url"
    STORED = "sxss"


class PocType(str, Enum):
    PLAIN = "plain"
    CURL = "curl"
    HTTPIE = "httpie"
    HTTP_REQUEST = "http-request"


class ScanOptions(BaseModel):
    """Every option an operator can set for one scan.

    Numeric fields are clamped into their ranges on construction, so a
    ScanOptions instance never carries an out-of-range value.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    # Scan mode
    scan_mode: ScanMode = ScanMode.URL
    trigger_url: str = ""

    # Detection
    context_aware: bool = False
    deep_domxss: bool = False
    waf_evasion: bool = False
    follow_redirects: bool = False
    fast_scan: bool = False
    skip_discovery: bool = False
    skip_headless: bool = False

    # Mining
    skip_bav: bool = False
    skip_mining_all: bool = False
    mining_dict: bool = False
    mining_dom: bool = False
    remote_payloads: bool = False

    # Output
    no_color: bool = True
    silence: bool = False
    report: bool = False
    debug: bool = False
    poc_type: PocType = PocType.PLAIN

    # Advanced
    workers: int = WORKERS_RANGE[0]
    timeout: int = TIMEOUT_RANGE[0]
    delay: int = DELAY_RANGE[0]
    scan_timeout_minutes: int = SCAN_TIMEOUT_RANGE[0]
    proxy: str = ""
    ignore_return: str = ""

    # Blind XSS
    blind_url: str = ""

    @field_validator("trigger_url", "proxy", "ignore_return", "blind_url", mode="before")
    @classmethod
    def _strip_text(cls, v):
        return "" if v is None else str(v).strip()

    @field_validator("workers")
    @classmethod
    def _clamp_workers(cls, v: int) -> int:
        return clamp(v, *WORKERS_RANGE[1:])

    @field_validator("timeout")
    @classmethod
    def _clamp_timeout(cls, v: int) -> int:
        return clamp(v, *TIMEOUT_RANGE[1:])

    @field_validator("delay")
    @classmethod
    def _clamp_delay(cls, v: int) -> int:
        return clamp(v, *DELAY_RANGE[1:])

    @field_validator("scan_timeout_minutes")
    @classmethod
    def _clamp_scan_timeout(cls, v: int) -> int:
        return clamp(v, *SCAN_TIMEOUT_RANGE[1:])

    @property
    def stored(self) -> bool:
        return self.scan_mode == ScanMode.STORED

    # Skipping all mining switches the individual miners off regardless of their flags
    @property
    def effective_mining_dict(self) -> bool:
        return self.mining_dict and not self.skip_mining_all

    @property
    def effective_mining_dom(self) -> bool:
        return self.mining_dom and not self.skip_mining_all


def order_parameters(known: Sequence[str], selected: Optional[Iterable[str]]) -> List[str]:
    """Order a parameter selection by where each name first appears in the request.

    `known` is the request's parameters in source order. Selected names the
    request does not contain keep their given order after the known ones.
    None selects every known parameter.
    """
    if selected is None:
        return list(dict.fromkeys(known))

    chosen = list(dict.fromkeys(n for n in selected if n))
    position = {name: i for i, name in reversed(list(enumerate(known)))}
    in_request = sorted((n for n in chosen if n in position), key=position.__getitem__)
    extra = [n for n in chosen if n not in position]
    return in_request + extra
