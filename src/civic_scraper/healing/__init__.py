# ABOUTME: Self-healing layer of the scraping pipeline
# ABOUTME: Decides when a manifest must be re-derived after a failed extraction

from .self_healing import SelfHealingService

__all__ = ["SelfHealingService"]
