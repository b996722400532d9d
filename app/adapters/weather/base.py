from abc import ABC, abstractmethod
from typing import Any

from app.schemas.weather import WeatherQuery


class AbstractWeatherClient(ABC):
	"""Interface for clients of a current-weather provider."""

	@abstractmethod
	async def fetch_current(self, query: WeatherQuery) -> dict[str, Any]:
		"""Fetch the raw current-weather payload for a location.

		Args:
			query: Validated location and unit system.

		Returns:
			dict[str, Any]: Provider JSON payload, not yet normalized.

		Raises:
			ConfigurationAppError: If the provider credential is not configured.
			UpstreamAppError: If the provider rejects the call or cannot be reached.
		"""
		...

	@property
	@abstractmethod
	def is_configured(self) -> bool:
		"""Whether the client holds the credential it needs."""
		...

	async def aclose(self) -> None:
		"""Release network resources held by the client."""
		return None
