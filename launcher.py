#!/usr/bin/env python3
"""
FoxTab - Command Line Launcher
Scan a raw HTTP request file with Dalfox from the terminal:
1. Parses the request and picks the parameters to test
2. Builds the Dalfox argument vector (or just prints it with --preview)
3. Streams the scan, Ctrl+C cancels it
"""

import argparse
import signal
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.text import Text

from foxtab.builder import ArgumentBuilder, render_preview, validate_options
from foxtab.config import DALFOX_BIN, get_config
from foxtab.errors import ConfigurationError, RequestParseError
from foxtab.logger import configure_logging
from foxtab.models import PocType, ScanMode, ScanOptions, order_parameters
from foxtab.request_parser import discover_parameters, parse_raw_request
from foxtab.runner import ScanState, ScanSupervisor, check_binary

console = Console(highlight=False)


BANNER = r"""
   ___         _____     _
  | __|____ __|_   _|_ _| |__
  | _/ _ \ \ /  | |/ _` | '_ \
  |_|\___/_\_\  |_|\__,_|_.__/

        Dalfox scan launcher
"""

# Checked in order; first match decides the style
LINE_STYLES = [
    (("[POC]", "[V]", "VULN"), "bold red"),
    (("[ERROR]", "[E]"), "red"),
    (("TIMEOUT", "cancelled by user"), "yellow"),
    (("Finished",), "green"),
    (("[I]", "[*]"), "cyan"),
]


def line_style(line: str) -> str:
    for markers, style in LINE_STYLES:
        if any(m in line for m in markers):
            return style
    return ""


def build_parser() -> argparse.ArgumentParser:
    cfg = get_config()
    p = argparse.ArgumentParser(prog="foxtab", description="Run Dalfox against a captured HTTP request.")
    p.add_argument("-r", "--request", required=True, type=Path, help="Raw HTTP request file")
    p.add_argument("--http", action="store_true", help="Target uses plain HTTP (default HTTPS)")
    p.add_argument("--base-url", default="", help="Base URL for origin-form request targets")
    p.add_argument("-p", "--param", action="append", dest="params",
                   help="Parameter to test (repeatable; default: all found in the request)")
    p.add_argument("--preview", action="store_true", help="Print the command and exit")
    p.add_argument("--dalfox", default=DALFOX_BIN, help="Dalfox binary (default: %(default)s)")
    p.add_argument("-v", "--verbose", action="store_true")

    mode = p.add_argument_group("scan mode")
    mode.add_argument("--stored", action="store_true", help="Stored XSS mode (sxss)")
    mode.add_argument("--trigger", default="", help="Trigger URL for stored XSS")

    det = p.add_argument_group("detection")
    det.add_argument("--context-aware", action="store_true")
    det.add_argument("--deep-domxss", action="store_true")
    det.add_argument("--waf-evasion", action="store_true")
    det.add_argument("--follow-redirects", action="store_true")
    det.add_argument("--fast-scan", action="store_true")
    det.add_argument("--skip-discovery", action="store_true")
    det.add_argument("--skip-headless", action="store_true")

    mining = p.add_argument_group("mining")
    mining.add_argument("--skip-bav", action="store_true")
    mining.add_argument("--skip-mining-all", action="store_true")
    mining.add_argument("--mining-dict", action="store_true")
    mining.add_argument("--mining-dom", action="store_true")
    mining.add_argument("--remote-payloads", action="store_true")

    out = p.add_argument_group("output")
    out.add_argument("--color", action="store_true", help="Let Dalfox colorize its output")
    out.add_argument("-S", "--silence", action="store_true")
    out.add_argument("--report", action="store_true")
    out.add_argument("--debug", action="store_true")
    out.add_argument("--poc-type", default=PocType.PLAIN.value, choices=[t.value for t in PocType])
    out.add_argument("--blind", default="", help="Blind XSS callback URL")

    adv = p.add_argument_group("advanced")
    adv.add_argument("-w", "--workers", type=int, default=100)
    adv.add_argument("--timeout", type=int, default=10, help="Per-request timeout (seconds)")
    adv.add_argument("--delay", type=int, default=0, help="Delay between requests (ms)")
    adv.add_argument("--scan-timeout", type=int, default=cfg.scan.scan_timeout_minutes,
                     help="Overall scan timeout (minutes)")
    adv.add_argument("--proxy", default="")
    adv.add_argument("--ignore-return", default="", help="Status codes to ignore, comma separated")
    return p


def options_from_args(args: argparse.Namespace) -> ScanOptions:
    return ScanOptions(
        scan_mode=ScanMode.STORED if args.stored else ScanMode.URL,
        trigger_url=args.trigger,
        context_aware=args.context_aware,
        deep_domxss=args.deep_domxss,
        waf_evasion=args.waf_evasion,
        follow_redirects=args.follow_redirects,
        fast_scan=args.fast_scan,
        skip_discovery=args.skip_discovery,
        skip_headless=args.skip_headless,
        skip_bav=args.skip_bav,
        skip_mining_all=args.skip_mining_all,
        mining_dict=args.mining_dict,
        mining_dom=args.mining_dom,
        remote_payloads=args.remote_payloads,
        no_color=not args.color,
        silence=args.silence,
        report=args.report,
        debug=args.debug,
        poc_type=PocType(args.poc_type),
        workers=args.workers,
        timeout=args.timeout,
        delay=args.delay,
        scan_timeout_minutes=args.scan_timeout,
        proxy=args.proxy,
        ignore_return=args.ignore_return,
        blind_url=args.blind,
    )


def print_line(line: str):
    console.print(Text(line, style=line_style(line)))


def main(argv=None) -> int:
    """Main entry point. Returns the process exit status."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    cfg = get_config()

    try:
        raw = args.request.read_text(encoding="utf-8", errors="replace")
        context = parse_raw_request(raw, https=not args.http, base_url=args.base_url)
        options = options_from_args(args)
        validate_options(options)
    except OSError as e:
        console.print(f"[red]✗ Cannot read request file: {escape(str(e))}[/red]")
        return 2
    except (ConfigurationError, RequestParseError) as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        return 2

    params = order_parameters(discover_parameters(context), args.params)
    command = ArgumentBuilder(args.dalfox).build(context, params, options)

    if args.preview:
        console.print(render_preview(command), soft_wrap=True, markup=False, highlight=False)
        return 0

    console.print(BANNER, style="bold cyan")

    console.print("\n[bold]Preflight Checks[/bold]")
    console.print("─" * 40)
    if check_binary(args.dalfox, cfg.scan.preflight_timeout):
        console.print("[green]✓ Dalfox binary found[/green]")
    else:
        console.print(f"[yellow]! Dalfox did not answer at: {escape(args.dalfox)}[/yellow]")

    console.print("\n[bold]Configuration[/bold]")
    console.print("─" * 40)
    console.print(f"  Target:      {context.method} {context.url}")
    console.print(f"  Parameters:  {', '.join(params) if params else '(none, full URL)'}")
    console.print(f"  Timeout:     {options.scan_timeout_minutes} min")
    console.print()

    supervisor = ScanSupervisor(
        command,
        print_line,
        method=context.method,
        url=context.url,
        timeout_minutes=options.scan_timeout_minutes,
        preflight_timeout=cfg.scan.preflight_timeout,
    )

    interrupted = []

    def signal_handler(sig, frame):
        console.print("\n[yellow]Received shutdown signal...[/yellow]")
        interrupted.append(sig)
        supervisor.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    supervisor.start()
    # Short waits keep the main thread responsive to signals
    while not supervisor.done:
        supervisor.wait(0.5)

    if interrupted:
        return 130
    if supervisor.state == ScanState.COMPLETED:
        return 0
    return 1


def run():
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
