"""
pulseh2h - Community head-to-head custom match ingestion

Discovers custom (non-ladder) games between known community players on
SC2 Pulse, scores how trustworthy each game looks, and stores the new ones
partitioned by day.

Main components:
- roster: Community player snapshot (CSV source)
- pulse: Upstream SC2 Pulse client and payload models
- services: Discovery, validation, scoring, deduplication, storage
- tasks: Run results and the interval scheduler
- orchestrator: Ingestion cycle, lifecycle and stats
- web: FastAPI control surface
"""

__version__ = "1.0.0"
