# feedstore/core/errors.py

class FeedStoreError(Exception): ...


class InvalidVersion(FeedStoreError, ValueError):
    def __init__(self, text):
        super().__init__(f"'{text}' is not a valid version string")
        self.text = text


class DuplicatePackage(FeedStoreError):
    def __init__(self, package_id: str, version: str):
        super().__init__(
            f"Package {package_id} {version} already exists. "
            "The server is configured to not allow overwriting packages that already exist."
        )
        self.package_id = package_id
        self.version = version


class SymbolsPackageRejected(FeedStoreError):
    def __init__(self, package_id: str, version: str):
        super().__init__(
            f"Package {package_id} {version} is a symbols package. "
            "The server is configured to ignore symbols packages."
        )
        self.package_id = package_id
        self.version = version


class StorageFailure(FeedStoreError):
    """The durable store rejected or aborted the operation; nothing was applied."""
