"""Background workers: the enrichment job queue and the cron scheduler."""

from songscout.application.workers.enrichment_queue import EnrichmentQueue
from songscout.application.workers.scheduler import PipelineScheduler, ScheduledJob

__all__ = ["EnrichmentQueue", "PipelineScheduler", "ScheduledJob"]
