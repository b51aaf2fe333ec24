"""
Project constants definitions
"""

# ============================================================
# SSH Defaults
# ============================================================

DEFAULT_SSH_TIMEOUT = 10.0
DIRECT_TCPIP_CHANNEL = "direct-tcpip"
DEFAULT_CHANNEL_ORIGIN = ("127.0.0.1", 0)

# ============================================================
# Tunnel Defaults
# ============================================================

DEFAULT_LOCAL_ADDRESS = "localhost:33333"
LISTEN_BACKLOG = 128
ACCEPT_POLL_INTERVAL = 0.5
BUFFER_SIZE = 32 * 1024
SHUTDOWN_GRACE_SECONDS = 2.0

# ============================================================
# Configuration
# ============================================================

ENV_PREFIX = "SSHFWD_"
