"""kubetopo -- traffic-flow and change-impact analysis for Kubernetes."""

__version__ = "0.1.0"
