"""
Bridge daemon package for the Growatt Noah to MQTT pipeline.

Logs in to the Growatt cloud, discovers the Noah battery units under the
account, announces them to Home Assistant via MQTT discovery and republishes
device and battery telemetry to the local MQTT broker on a fixed interval.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-001)

TODO:
- None
"""
