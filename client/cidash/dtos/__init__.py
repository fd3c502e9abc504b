from .imagebuilder import (
    BranchListResponse,
    BuildMultipleRequest,
    BuildMultipleResponse,
    DetectChangesRequest,
    DetectChangesResponse,
    DetectCommitChangesRequest,
    ServiceBuildResult,
)
from .registry import (
    ConnectionStatusFrame,
    CopyImageRequest,
    CreateRegistryRequest,
    DockerImage,
    DockerImageDetail,
    ImageConfig,
    ImageHistory,
    ImageLayer,
    RetagImageRequest,
    TestConnectionResult,
    UpdateRegistryRequest,
)
from .repository import (
    CheckoutBranchRequest,
    CloneRepositoryRequest,
    CommitListResponse,
    RepositoryListResponse,
)
