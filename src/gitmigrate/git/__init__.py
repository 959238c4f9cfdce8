"""Git origin, history reading and change integration."""

from .errors import (
	CannotIntegrateError,
	CannotResolveRevisionError,
	EmptyChangeError,
	GitError,
	RepoError,
	ValidationError,
)
from .integrate import GitIntegrateChanges, IntegrateLabel, MessageInfo, Strategy
from .origin import GitOrigin, GitOriginOptions, GitOriginReader, SubmoduleStrategy
from .path_filter import PathFilter
from .repo_cache import GitOptions, RepositoryCache
from .repo_type import GitRepoType
from .repository import GitRepository
from .revision import Author, Change, GitRevision, VisitResult

__all__ = [
	"Author",
	"CannotIntegrateError",
	"CannotResolveRevisionError",
	"Change",
	"EmptyChangeError",
	"GitError",
	"GitIntegrateChanges",
	"GitOptions",
	"GitOrigin",
	"GitOriginOptions",
	"GitOriginReader",
	"GitRepoType",
	"GitRepository",
	"GitRevision",
	"IntegrateLabel",
	"MessageInfo",
	"PathFilter",
	"RepoError",
	"RepositoryCache",
	"Strategy",
	"SubmoduleStrategy",
	"ValidationError",
	"VisitResult",
]
