"""Height probes — single-endpoint status queries and quorum sampling."""

from heightwatch.probe.exceptions import ProbeError, ProtocolError, TransportError
from heightwatch.probe.height import HeightProber, parse_status_height
from heightwatch.probe.sampler import QuorumSampler

__all__ = [
    "HeightProber",
    "ProbeError",
    "ProtocolError",
    "QuorumSampler",
    "TransportError",
    "parse_status_height",
]
