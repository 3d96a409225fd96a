"""
Spacegun - Continuous Delivery for Kubernetes

Promotes container images between registries and clusters according to
cron-scheduled pipelines.

Architecture:
- Each module is self-contained with clear interfaces
- Every module operation is registered with the dispatcher
- The same operations run in-process (standalone/server) or remotely (client)

Modules:
- cache: TTL memoization with single-flight recomputation
- dispatcher: operation registry, local/remote routing, HTTP surface
- cluster: cluster gateway and snapshot diffing
- images: image registry gateway
- events: event sinks (logging, Slack)
- jobs: pipelines, schedules, plan and apply
- views: dashboard aggregation
"""

__version__ = "1.0.0"
