"""
FoxTab - Dalfox Flags
Command-line tokens understood by the Dalfox scanner.
"""

# Scan modes
MODE_URL = "url"
MODE_SXSS = "sxss"

# Options
TRIGGER = "--trigger"
METHOD = "-X"
DATA = "-d"
COOKIE = "-C"
USER_AGENT = "--user-agent"
HEADER = "-H"
PARAM = "-p"

# Output
NO_COLOR = "--no-color"
SILENCE = "-S"
REPORT = "--report"
DEBUG = "--debug"
POC_TYPE = "--poc-type"

# Blind XSS
BLIND = "--blind"

# Detection
CONTEXT_AWARE = "--context-aware"
DEEP_DOMXSS = "--deep-domxss"
WAF_EVASION = "--waf-evasion"
FOLLOW_REDIRECTS = "--follow-redirects"
FAST_SCAN = "--fast-scan"
SKIP_DISCOVERY = "--skip-discovery"
SKIP_HEADLESS = "--skip-headless"

# Mining
SKIP_BAV = "--skip-bav"
SKIP_MINING_ALL = "--skip-mining-all"
SKIP_MINING_DICT = "--skip-mining-dict"
SKIP_MINING_DOM = "--skip-mining-dom"

# Remote payload providers are part of the token
REMOTE_PAYLOADS = "--remote-payloads=portswigger,payloadbox"

# Advanced
WORKER = "-w"
TIMEOUT = "--timeout"
DELAY = "--delay"
PROXY = "--proxy"
IGNORE_RETURN = "--ignore-return"

# Health check subcommand
VERSION = "version"
