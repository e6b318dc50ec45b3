"""
Trading Engine Components

Core position-tracking components:
- PositionLedger: Owns open/closed positions and their lifecycle
- ActivityFeed: Bounded log of entries, pyramids, exits and alerts
- risk_checks: Erosion-cap, underwater and profitable-collapse evaluations
"""
