from typing import BinaryIO, Optional


class StorageProvider:
    def save(self, stream: BinaryIO, key: str) -> int:
        """Store the stream under ``key`` and return the number of bytes written."""
        raise NotImplementedError

    def public_url(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError
