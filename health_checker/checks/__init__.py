"""Reachability checks."""

from .tcp_probe import TcpProbeResult, check_tcp, probe

__all__ = ["TcpProbeResult", "check_tcp", "probe"]
