from __future__ import annotations


class AssetLifecycleError(Exception):
    """Base error carrying a stable machine-readable ``code``."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class NotFoundError(AssetLifecycleError):
    pass


class InvalidStateError(AssetLifecycleError):
    pass


class ValidationError(AssetLifecycleError):
    pass


class ConflictError(AssetLifecycleError):
    pass


class StaleAssetVersionError(InvalidStateError):
    def __init__(self, asset_id: str, expected_version: int) -> None:
        super().__init__(
            "stale_asset_version",
            f"asset {asset_id} changed since version {expected_version}",
        )
        self.asset_id = asset_id
        self.expected_version = expected_version
