import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

import aiohttp

from vision_gateway.models.schemas import AnalysisType, ProviderPayload
from vision_gateway.utils.config import Settings
from vision_gateway.utils.errors import UpstreamFailureError, UpstreamTimeoutError

logger = logging.getLogger(__name__)


class CloudinaryVisionClient:
    """Client for the Cloudinary AI Vision analyze endpoints.

    Every call is a single attempt; retry policy belongs to the caller.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        api_base: str = "https://api.cloudinary.com",
        timeout_seconds: float = 30.0,
    ):
        self.cloud_name = cloud_name
        self.api_base = api_base.rstrip("/")
        self.timeout_seconds = timeout_seconds
        if hasattr(aiohttp, "encode_basic_auth"):
            authorization = aiohttp.encode_basic_auth(api_key, api_secret)
        else:
            authorization = aiohttp.BasicAuth(api_key, api_secret).encode()
        self._headers = {"Authorization": authorization}
        self.call_count = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudinaryVisionClient":
        if not settings.provider_configured():
            logger.warning("Cloudinary credentials are not fully configured")
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            api_base=settings.cloudinary_api_base,
            timeout_seconds=settings.upstream_timeout_seconds,
        )

    def endpoint_for(self, analysis_type: AnalysisType) -> str:
        return f"{self.api_base}/v2/analysis/{self.cloud_name}/analyze/{analysis_type.value}"

    async def analyze(
        self,
        payload: ProviderPayload,
        analysis_type: AnalysisType
    ) -> Dict[str, Any]:
        """POST the payload to the provider and return its parsed JSON body"""
        url = self.endpoint_for(analysis_type)
        self.call_count += 1
        logger.info(f"Forwarding {analysis_type.value} analysis to provider")

        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=self._headers) as session:
                async with session.post(url, json=payload.to_wire()) as response:
                    body, is_json = await self._read_body(response)
                    if response.status < 200 or response.status >= 300:
                        logger.error(
                            f"Provider returned HTTP {response.status} for {analysis_type.value}: {body}"
                        )
                        raise UpstreamFailureError(details=body)
                    if not is_json or body is None:
                        logger.error(f"Provider returned a non-JSON body for {analysis_type.value}")
                        raise UpstreamFailureError(
                            "Provider returned an unreadable response",
                            details=body,
                        )
                    return body
        except asyncio.TimeoutError:
            logger.error(f"Provider request timed out after {self.timeout_seconds}s")
            raise UpstreamTimeoutError()
        except aiohttp.ServerDisconnectedError as e:
            logger.error(f"Provider connection aborted: {e}")
            raise UpstreamTimeoutError()
        except aiohttp.ClientError as e:
            logger.error(f"Provider request failed: {e}")
            raise UpstreamFailureError(details=str(e))

    @staticmethod
    async def _read_body(response: aiohttp.ClientResponse) -> Tuple[Optional[Any], bool]:
        """Return the decoded body and whether it parsed as JSON"""
        try:
            return await response.json(content_type=None), True
        except ValueError:
            text = await response.text(errors="replace")
            return text or None, False
