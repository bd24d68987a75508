"""
FoxTab - Argument Builder
Translates a captured request plus scan options into a Dalfox argument vector.

The vector is handed to the process layer as a list and never goes through a
shell, so no token is escaped here. `render_preview` quotes for humans only.
"""

import logging
from typing import List, Optional, Sequence

from foxtab import flags
from foxtab.config import DALFOX_BIN
from foxtab.errors import ConfigurationError
from foxtab.models import (
    DELAY_RANGE, TIMEOUT_RANGE, WORKERS_RANGE,
    PocType, RequestContext, ScanMode, ScanOptions, clamp,
)


logger = logging.getLogger(__name__)

# Headers that are handled elsewhere or confuse Dalfox's own parsing
DROPPED_HEADERS = {"host", "content-length", "connection", "accept-encoding"}
DROPPED_HEADER_PREFIXES = ("sec-ch-", "sec-fetch-")

PREVIEW_QUOTE_CHARS = (" ", "&", ";")


def should_include_header(name: str, value: str) -> bool:
    """Whether a header may be passed through with -H.

    Sec-Ch-* and any value containing a double quote break Dalfox's header
    parser, so those are dropped whole rather than escaped.
    """
    lowered = name.lower()
    if lowered in DROPPED_HEADERS:
        return False
    if lowered.startswith(DROPPED_HEADER_PREFIXES):
        return False
    if '"' in value:
        return False
    return True


def validate_options(options: ScanOptions):
    """Raise ConfigurationError for option sets that must not be scanned."""
    if options.scan_mode == ScanMode.STORED and not options.trigger_url:
        raise ConfigurationError(
            "Stored XSS mode requires a Trigger URL "
            "(the URL where the stored payload is rendered)."
        )


def render_preview(args: Sequence[str]) -> str:
    """Join tokens for display, single-quoting any with a space, & or ;."""
    parts = []
    for arg in args:
        if any(c in arg for c in PREVIEW_QUOTE_CHARS):
            parts.append("'" + arg.replace("'", "'\\''") + "'")
        else:
            parts.append(arg)
    return " ".join(parts)


class ArgumentBuilder:
    """Builds Dalfox argument vectors. Stateless apart from the binary path and policy."""

    def __init__(self, binary: str = DALFOX_BIN, strict: bool = False):
        self.binary = binary
        # strict: refuse sxss without trigger instead of omitting --trigger
        self.strict = strict

    def build(
        self,
        request: RequestContext,
        params: Sequence[str] = (),
        options: Optional[ScanOptions] = None,
    ) -> List[str]:
        options = options or ScanOptions()
        if self.strict:
            validate_options(options)

        cookie = None
        user_agent = None
        other_headers: List[str] = []
        for header in request.headers:
            if header.is_named("Cookie"):
                cookie = header.value
            elif header.is_named("User-Agent"):
                user_agent = header.value
            elif should_include_header(header.name, header.value):
                other_headers.append(f"{header.name}: {header.value}")

        args = [self.binary]

        # Scan mode + target
        if options.stored:
            args.append(flags.MODE_SXSS)
        else:
            args.append(flags.MODE_URL)
        args.append(request.url)

        if options.stored:
            if options.trigger_url:
                args += [flags.TRIGGER, options.trigger_url]
            else:
                logger.warning("Stored XSS mode without trigger URL; omitting %s", flags.TRIGGER)

        # Output
        if options.no_color:
            args.append(flags.NO_COLOR)
        if options.silence:
            args.append(flags.SILENCE)
        if options.report:
            args.append(flags.REPORT)
        if options.debug:
            args.append(flags.DEBUG)
        if options.poc_type != PocType.PLAIN:
            args += [flags.POC_TYPE, options.poc_type.value]

        if options.blind_url:
            args += [flags.BLIND, options.blind_url]

        # Request shape
        if request.method.upper() != "GET":
            args += [flags.METHOD, request.method]
        if request.body:
            args += [flags.DATA, request.body]
        if cookie:
            args += [flags.COOKIE, cookie]
        if user_agent:
            args += [flags.USER_AGENT, user_agent]
        for h in other_headers:
            args += [flags.HEADER, h]

        # One -p per parameter
        for param in params:
            args += [flags.PARAM, param]

        # Detection
        for enabled, flag in (
            (options.context_aware, flags.CONTEXT_AWARE),
            (options.deep_domxss, flags.DEEP_DOMXSS),
            (options.waf_evasion, flags.WAF_EVASION),
            (options.follow_redirects, flags.FOLLOW_REDIRECTS),
            (options.fast_scan, flags.FAST_SCAN),
            (options.skip_discovery, flags.SKIP_DISCOVERY),
            (options.skip_headless, flags.SKIP_HEADLESS),
        ):
            if enabled:
                args.append(flag)

        # Mining: dict/dom mining are opt-in, so their skip flags are the default
        if options.skip_bav:
            args.append(flags.SKIP_BAV)
        if options.skip_mining_all:
            args.append(flags.SKIP_MINING_ALL)
        if not options.effective_mining_dict:
            args.append(flags.SKIP_MINING_DICT)
        if not options.effective_mining_dom:
            args.append(flags.SKIP_MINING_DOM)

        if options.remote_payloads:
            args.append(flags.REMOTE_PAYLOADS)

        # Advanced, only when changed from Dalfox's defaults.
        # Clamped again here: model_copy and model_construct skip validation.
        workers = clamp(options.workers, *WORKERS_RANGE[1:])
        timeout = clamp(options.timeout, *TIMEOUT_RANGE[1:])
        delay = clamp(options.delay, *DELAY_RANGE[1:])
        if workers != WORKERS_RANGE[0]:
            args += [flags.WORKER, str(workers)]
        if timeout != TIMEOUT_RANGE[0]:
            args += [flags.TIMEOUT, str(timeout)]
        if delay > DELAY_RANGE[0]:
            args += [flags.DELAY, str(delay)]
        if options.proxy:
            args += [flags.PROXY, options.proxy]
        if options.ignore_return:
            args += [flags.IGNORE_RETURN, options.ignore_return]

        return args

    def preview(
        self,
        request: RequestContext,
        params: Sequence[str] = (),
        options: Optional[ScanOptions] = None,
    ) -> str:
        """Display string for the vector `build` would return."""
        return render_preview(self.build(request, params, options))
