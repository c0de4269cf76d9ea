"""
Pinata pinning client for the upload relay.

The browser never sees PINATA_JWT: it posts a multipart body to our relay,
which forwards the exact bytes (same content-type, boundary intact) to
Pinata and hands back the public gateway URL.
"""

import logging
from dataclasses import dataclass

import aiohttp

logger = logging.getLogger("ghost.pinning")

PINATA_PIN_FILE_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"
PINATA_GATEWAY = "https://gateway.pinata.cloud/ipfs"


@dataclass
class PinResult:
    success: bool
    ipfs_hash: str = ""
    status: int = 0
    error: str = ""

    @property
    def url(self) -> str:
        return f"{PINATA_GATEWAY}/{self.ipfs_hash}" if self.ipfs_hash else ""


class PinataClient:
    def __init__(self, jwt: str, endpoint: str = PINATA_PIN_FILE_URL, timeout: float = 60):
        self._jwt = jwt
        self._endpoint = endpoint
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._jwt)

    async def pin_file(self, body: bytes, content_type: str) -> PinResult:
        """
        Forward a raw multipart body to pinFileToIPFS.

        Non-2xx answers come back as PinResult(success=False); transport
        errors propagate to the caller.
        """
        async with aiohttp.ClientSession() as session:
            async with session.post(
                self._endpoint,
                data=body,
                headers={
                    "Authorization": f"Bearer {self._jwt}",
                    "Content-Type": content_type,
                },
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status >= 300:
                    detail = await resp.text()
                    logger.error(f"Pinata error ({resp.status}): {detail[:200]}")
                    return PinResult(success=False, status=resp.status, error=detail)
                result = await resp.json(content_type=None)

        ipfs_hash = result.get("IpfsHash", "")
        if not ipfs_hash:
            return PinResult(success=False, status=502, error=f"no IpfsHash in response: {result}")
        logger.info(f"Pinned {ipfs_hash}")
        return PinResult(success=True, ipfs_hash=ipfs_hash, status=200)
