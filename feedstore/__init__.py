from .core.errors import DuplicatePackage, FeedStoreError, InvalidVersion, StorageFailure, SymbolsPackageRejected
from .core.versioning import SemanticVersion, VersionRange
from .domain.models import ServerPackage
from .domain.policy import ClientCompatibility, RepositoryPolicy
from .domain.repos import PackageRepository, get_repo
from .domain.schemas import PackageMetadata

__version__ = "1.0.0"
