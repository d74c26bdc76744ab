"""Sample configuration files written by ``sctl init``."""

from pathlib import Path

GLOBAL_TEMPLATE = """\
# sctl global configuration
# Hosts defined here are available from anywhere on your system.
# Location: ~/.config/sctl/sctl.toml

# ============================================================================
# HOSTS
# ============================================================================
# Define your remote hosts here. These can be referenced by name in tasks.

[hosts.server1]
address = "server1.example.com"
user = "admin"
# port = 22                    # default: 22
# key_file = "~/.ssh/id_rsa"   # default: ssh-agent, then ~/.ssh/id_*

[hosts.server2]
address = "server2.example.com"
user = "admin"

# ============================================================================
# GLOBAL TASKS
# ============================================================================
# Tasks defined here are available from anywhere on your system.

[tasks.system-check]
hosts = ["server1"]
steps = [
    "uptime",
    "df -h",
    "free -m",
]

[tasks.update-system]
hosts = ["server1"]
steps = [
    "sudo apt update",
    "sudo apt upgrade -y",
]
"""

LOCAL_TEMPLATE = """\
# sctl project configuration
# Tasks defined here are specific to this project.
# Location: ./sctl.toml (in your project directory)
#
# Hosts from ~/.config/sctl/sctl.toml are automatically available.

# ============================================================================
# PROJECT TASKS
# ============================================================================

[tasks.deploy]
hosts = ["server1"]           # Reference hosts from global config
workdir = "/var/www/myapp"
before = ["backup"]           # Run backup task first
steps = [
    "git pull origin main",
    "npm install",
    "npm run build",
    "systemctl restart myapp",
]

[tasks.backup]
hosts = ["server1"]
steps = [
    "tar -czf /backups/myapp-$(date +%Y%m%d).tar.gz /var/www/myapp",
]

[tasks.logs]
hosts = ["server1"]
steps = [
    "journalctl -u myapp -n 50 --no-pager",
]
"""


def write_sample_config(path: Path, local: bool, force: bool = False) -> bool:
    """Write the sample global or local config to ``path``.

    Parent directories are created as needed.

    Returns:
        True if the file was written, False if it exists and ``force``
        is not set
    """
    if path.exists() and not force:
        return False

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(LOCAL_TEMPLATE if local else GLOBAL_TEMPLATE)
    return True
