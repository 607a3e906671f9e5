"""
meetsite - lifecycle tool for a self-hosted Jitsi Meet deployment.

Templates the nginx site, obtains a TLS certificate (falling back to a
temporary self-signed one), manages the systemd unit for the
docker-compose stack and reports status.
"""

__version__ = "0.1.0"
