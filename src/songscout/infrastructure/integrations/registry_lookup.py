"""Two-tier registry lookup: authenticated API first, public portal second."""

import logging

from songscout.config import PortalFallbackPolicy
from songscout.domain.exceptions import ConfigurationMissingError, SourceError
from songscout.domain.ports import IRegistrySource, RegistryWork
from songscout.infrastructure.integrations.mlc_client import MLCApiClient
from songscout.infrastructure.integrations.mlc_portal_scraper import MLCPortalScraper

logger = logging.getLogger(__name__)


class RegistryLookup(IRegistrySource):
    """Registry source combining the API client and the portal scraper.

    Hey future me - the fallback policy decides when the (slow, heuristic) portal runs:
      ALWAYS   -> after ANY API outcome that isn't a work: nothing found, missing creds or
                  an API error (the error is logged and swallowed in favour of the portal)
      ON_EMPTY -> only when the API answered "nothing" or has no creds; API errors propagate
                  so the track is marked failed and retried later
      NEVER    -> API only; missing creds raise ConfigurationMissingError (phase skipped)
    """

    def __init__(
        self,
        api_client: MLCApiClient,
        portal_scraper: MLCPortalScraper | None,
        policy: PortalFallbackPolicy = PortalFallbackPolicy.ON_EMPTY,
    ) -> None:
        self.api_client = api_client
        self.portal_scraper = portal_scraper
        self.policy = policy

    def _portal_enabled(self) -> bool:
        return self.portal_scraper is not None and self.policy is not PortalFallbackPolicy.NEVER

    async def lookup_by_isrc(self, isrc: str) -> RegistryWork | None:
        """Work registered for an ISRC, or None when neither tier found anything."""
        work: RegistryWork | None = None

        if self.api_client.is_configured():
            try:
                work = await self.api_client.lookup_by_isrc(isrc)
            except SourceError as e:
                if self.policy is not PortalFallbackPolicy.ALWAYS or not self._portal_enabled():
                    raise
                logger.warning(f"Registry API failed for {isrc} ({e}), trying the portal")
        elif not self._portal_enabled():
            raise ConfigurationMissingError(
                "Registry API credentials not configured and portal fallback disabled",
                "mlc_api",
            )

        if work is not None and (work.publishers or work.writers):
            return work
        scraper = self.portal_scraper
        if scraper is None or not self._portal_enabled():
            return work

        logger.debug(f"Registry API had nothing for {isrc}, searching the portal")
        portal_work = await scraper.lookup_by_isrc(isrc)
        return portal_work or work
