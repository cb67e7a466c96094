# Storage package
from .base import ContentStore, RemoteFile
from .document_store import DocumentStore, FetchResult, UpdateResult
from .github import GitHubContentStore
from .memory import InMemoryContentStore, git_blob_sha
