import asyncio
import os
from typing import Any, Dict

import aiohttp
from loguru import logger

from tokenlist_builder.errors import MissingCredentials, PublishError

PIN_JSON_URL = "https://api.pinata.cloud/pinning/pinJSONToIPFS"


class IpfsPublisher:
    def __init__(
        self,
        api_key: str,
        api_secret: str,
        url: str = PIN_JSON_URL,
        timeout: float = 60,
        max_retries: int = 5,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries

    @staticmethod
    def from_env(config: Dict[str, Any], timeout: float = 60) -> "IpfsPublisher":
        return IpfsPublisher(
            api_key=os.environ.get("IPFS_API_KEY", ""),
            api_secret=os.environ.get("IPFS_API_SECRET", ""),
            url=config.get("url", PIN_JSON_URL),
            timeout=timeout,
            max_retries=int(config.get("max_retries", 5)),
        )

    async def pin(self, key: str, document: Dict[str, Any]) -> str:
        """
        Pin a JSON document under `key` and return its IPFS hash.
        """
        if not self.api_key or not self.api_secret:
            raise MissingCredentials("No IPFS credentials provided")

        headers = {
            "pinata_api_key": self.api_key,
            "pinata_secret_api_key": self.api_secret,
        }
        data = {"pinataMetadata": {"name": key}, "pinataContent": document}

        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as session:
                retries = 0
                while True:
                    async with session.post(self.url, json=data, headers=headers) as response:
                        if 200 <= response.status < 300:
                            body = await response.json()
                            return body["IpfsHash"]
                        if response.status == 429 and retries < self.max_retries:
                            retries += 1
                            sleeptime = min(30, 2**retries)
                            logger.warning(
                                f"Received 429 Too Many Requests pinning {key}. Retrying in {sleeptime} s..."
                            )
                            await asyncio.sleep(sleeptime)
                            continue
                        response_text = await response.text()
                        raise PublishError(
                            f"{response.status} Failed to pin {key}: {response_text}"
                        )
        except (aiohttp.ClientError, asyncio.TimeoutError, KeyError, ValueError) as exc:
            raise PublishError(f"Failed to pin {key}: {exc}") from exc
